"""Tests for the JSONL run store."""

from __future__ import annotations

import pytest

from eis_dashboard.errors import RetrievalError
from eis_dashboard.history.store import RunStore
from eis_dashboard.models.conversation import SavedRun, StructuredReport, Turn
from eis_dashboard.models.measurement import MeasurementPoint
from tests.conftest import REPORT, days_ago


def _run(subject: str, age_days: int, **kwargs) -> SavedRun:
    return SavedRun(
        subject=subject,
        created_at=days_ago(age_days),
        points=[MeasurementPoint(frequency=100, magnitude=10 + age_days, phase_degrees=-5)],
        **kwargs,
    )


def test_round_trip_keeps_structured_turns(store: RunStore):
    conversation = [
        Turn(role="requester", content="analyze"),
        Turn(role="responder", content=StructuredReport.model_validate(REPORT)),
        Turn(role="requester", content="why?"),
        Turn(role="responder", content="Because."),
    ]
    store.save("tester", _run("Plot 3", 0, conversation=conversation, calibration={"MAG1_A": 1.0}))
    [loaded] = store.query("tester")
    assert loaded.conversation[1].is_structured
    assert loaded.conversation[1].content.title == REPORT["title"]
    assert loaded.conversation[3].content == "Because."
    assert loaded.calibration == {"MAG1_A": 1.0}
    assert loaded.points[0].real == pytest.approx(loaded.points[0].magnitude * 0.9961946980917455)


def test_query_filters_orders_and_limits(store: RunStore):
    for age in (3, 1, 2):
        store.save("tester", _run("Plot 3", age))
    store.save("tester", _run("Ficus", 0))

    runs = store.query("tester", subject="Plot 3", limit=2)
    assert [r.created_at for r in runs] == [days_ago(1), days_ago(2)]
    assert len(store.query("tester")) == 4


def test_subject_match_is_exact(store: RunStore):
    store.save("tester", _run("Plot 3", 0))
    assert store.query("tester", subject="plot 3") == []


def test_owners_are_isolated(store: RunStore):
    store.save("alice", _run("Plot 3", 0))
    assert store.query("bob") == []


def test_owner_cannot_escape_data_dir(store: RunStore, tmp_path):
    store.save("../evil", _run("Plot 3", 0))
    assert all(tmp_path in p.parents for p in tmp_path.rglob("runs.jsonl"))


def test_missing_file_is_empty(store: RunStore):
    assert store.query("nobody") == []


def test_corrupt_file_raises_retrieval_error(store: RunStore, tmp_path):
    store.save("tester", _run("Plot 3", 0))
    with open(tmp_path / "tester" / "runs.jsonl", "a", encoding="utf-8") as f:
        f.write("{not json\n")
    with pytest.raises(RetrievalError):
        store.query("tester")


def test_records_without_offset_sort_with_newer_ones(store: RunStore, tmp_path):
    store.save("tester", _run("Plot 3", 0))
    with open(tmp_path / "tester" / "runs.jsonl", "a", encoding="utf-8") as f:
        f.write('{"subject": "Plot 3", "created_at": "2024-01-01T00:00:00"}\n')

    runs = store.query("tester", subject="Plot 3")

    assert [r.created_at.year for r in runs] == [2025, 2024]
    assert runs[1].created_at.tzinfo is not None
