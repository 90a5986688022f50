"""Context retriever: digest of prior saved runs for the same subject.

Saved runs come in three shapes for digest purposes: a sweep, a map, or
either of those with a saved conversation. A conversation contributes the
summary of its last answer, and only when that answer was a structured report.
Retrieval is a soft dependency: storage failures produce an empty digest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from eis_dashboard.config import settings
from eis_dashboard.errors import RetrievalError
from eis_dashboard.history.store import RunStore, get_run_store
from eis_dashboard.models.conversation import SavedRun, StructuredReport, Turn
from eis_dashboard.models.measurement import MeasurementPoint

logger = logging.getLogger(__name__)

DIGEST_HEADER = "--- Historical Context for Subject ---"
DIGEST_FOOTER = "--- End of Historical Context ---"


@dataclass(frozen=True)
class Sweep:
    points: list[MeasurementPoint]


@dataclass(frozen=True)
class Map:
    points: list[MeasurementPoint]


@dataclass(frozen=True)
class WithConversation:
    turns: list[Turn]


SavedRunPayload = Sweep | Map | WithConversation


def classify_run(run: SavedRun) -> SavedRunPayload:
    if run.conversation:
        return WithConversation(run.conversation)
    return Map(run.points) if run.kind == "map" else Sweep(run.points)


def _last_report(turns: list[Turn]) -> StructuredReport | None:
    """Structured content of the last responder turn, if it has any."""
    for turn in reversed(turns):
        if turn.role == "responder":
            return turn.content if isinstance(turn.content, StructuredReport) else None
    return None


def render_payload(payload: SavedRunPayload) -> str:
    """One digest line for a saved run, or "" when there is nothing to report."""
    if isinstance(payload, WithConversation):
        report = _last_report(payload.turns)
        if report is not None and report.summary:
            return f"Summary: {report.summary}"
        return ""
    if isinstance(payload, Map):
        return f"Data (2D): {len(payload.points)} data points."
    if not payload.points:
        return "Data (1D): 0 points."
    first, last = payload.points[0], payload.points[-1]
    return (
        f"Data (1D): {len(payload.points)} points. "
        f"LF: {first.magnitude:.0f}Ω, HF: {last.magnitude:.0f}Ω"
    )


def _format_date(created_at: datetime) -> str:
    return created_at.strftime("%Y-%m-%d %H:%M")


def render_digest(runs: list[SavedRun]) -> str:
    """Render runs (already oldest first) into the digest block."""
    if not runs:
        return ""
    lines = [DIGEST_HEADER]
    for run in runs:
        lines.append("")
        lines.append(f"[{_format_date(run.created_at)}]")
        line = render_payload(classify_run(run))
        if line:
            lines.append(line)
    lines.append(DIGEST_FOOTER)
    return "\n".join(lines) + "\n\n"


class ContextRetriever:
    def __init__(
        self,
        store: RunStore | None = None,
        owner: str | None = None,
        limit: int | None = None,
    ) -> None:
        self.store = store or get_run_store()
        self.owner = owner or settings.eis_owner
        self.limit = limit or settings.eis_history_limit

    def fetch_digest(self, subject: str) -> str:
        """Digest of the most recent runs for ``subject``, oldest first. Never raises."""
        if not subject or not subject.strip():
            return ""
        try:
            runs = self.store.query(self.owner, subject=subject, limit=self.limit)
        except RetrievalError as e:
            logger.warning("History lookup for %r failed, continuing without context: %s", subject, e)
            return ""
        if not runs:
            return ""
        logger.debug("Historical context for %r: %d run(s)", subject, len(runs))
        return render_digest(list(reversed(runs)))
