"""Signal normalizer: raw tabular rows -> canonical MeasurementPoint list.

Column names are matched case-insensitively against a synonym table, so
``Freq,Impedance,Phase`` and ``phase,frequency,mag,temp`` both resolve.
A dataset is either a sweep (one physical point over frequency) or a map
(sweeps at several x/y coordinates). Any bad row fails the whole file.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from functools import lru_cache
from typing import Any

from eis_dashboard.errors import InvalidValue, MissingColumn, WrongDatasetShape
from eis_dashboard.models.measurement import DatasetKind, MeasurementPoint

logger = logging.getLogger(__name__)

_SYNONYMS: dict[str, tuple[str, ...]] = {
    "frequency": ("frequency", "freq"),
    "magnitude": ("impedance", "mag", "magnitude"),
    "phase": ("phase",),
    "x": ("x",),
    "y": ("y",),
}

_SWEEP_COLUMNS = ("frequency", "magnitude", "phase")
_MAP_COLUMNS = ("x", "y", "frequency", "magnitude", "phase")


@lru_cache(maxsize=64)
def _resolve_columns(keys: tuple[str, ...]) -> dict[str, str]:
    """Map canonical column name -> actual key. First matching key wins."""
    resolved: dict[str, str] = {}
    for key in keys:
        lowered = key.strip().lower()
        for canonical, names in _SYNONYMS.items():
            if canonical not in resolved and lowered in names:
                resolved[canonical] = key
    return resolved


def _to_float(raw: Any, field: str, row: int) -> float:
    if isinstance(raw, bool) or raw is None:
        raise InvalidValue(field, raw, row)
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            raise InvalidValue(field, raw, row) from None
    else:
        raise InvalidValue(field, raw, row)
    if not math.isfinite(value):
        raise InvalidValue(field, raw, row, reason="value is not finite")
    return value


def _check_ranges(values: dict[str, float], row: int) -> None:
    if values["frequency"] <= 0:
        raise InvalidValue("frequency", values["frequency"], row, reason="frequency must be > 0")
    if values["magnitude"] < 0:
        raise InvalidValue("magnitude", values["magnitude"], row, reason="magnitude must be >= 0")
    if abs(values["phase"]) > 180:
        raise InvalidValue("phase", values["phase"], row, reason="phase must be within [-180, 180] degrees")


def normalize(rows: Sequence[Mapping[str, Any]], shape: DatasetKind = "sweep") -> list[MeasurementPoint]:
    """Parse raw rows into canonical points.

    Raises MissingColumn, InvalidValue or WrongDatasetShape. Never returns a
    partial dataset.
    """
    if shape not in ("sweep", "map"):
        raise ValueError(f"Unknown dataset shape: {shape!r}")
    if not rows:
        raise InvalidValue("rows", reason="dataset has no rows")

    required = _MAP_COLUMNS if shape == "map" else _SWEEP_COLUMNS
    points: list[MeasurementPoint] = []

    for index, row in enumerate(rows, start=1):
        columns = _resolve_columns(tuple(k for k in row.keys() if isinstance(k, str)))

        if shape == "sweep":
            for coord in ("x", "y"):
                if coord in columns:
                    raise WrongDatasetShape(
                        f"Column '{columns[coord]}' found: this looks like a 2D map, not a sweep",
                        field=coord,
                        row=index,
                    )

        for name in required:
            if name not in columns:
                raise MissingColumn(name, row=index)

        values = {name: _to_float(row[columns[name]], name, index) for name in required}
        _check_ranges(values, index)

        points.append(
            MeasurementPoint(
                frequency=values["frequency"],
                magnitude=values["magnitude"],
                phase_degrees=values["phase"],
                x=values.get("x"),
                y=values.get("y"),
            )
        )

    if shape == "sweep":
        points.sort(key=lambda p: p.frequency)
    else:
        points = _group_by_coordinate(points)

    logger.debug("Normalized %d rows into a %s", len(points), shape)
    return points


def _group_by_coordinate(points: list[MeasurementPoint]) -> list[MeasurementPoint]:
    groups: dict[tuple[float, float], list[MeasurementPoint]] = {}
    for p in points:
        groups.setdefault((p.x, p.y), []).append(p)  # type: ignore[arg-type]

    expected: frozenset[float] | None = None
    for coord, members in groups.items():
        freqs = frozenset(p.frequency for p in members)
        if len(freqs) != len(members):
            raise WrongDatasetShape(
                f"Coordinate (x:{coord[0]:g}, y:{coord[1]:g}) has more than one reading at the same frequency",
                field="frequency",
            )
        if expected is None:
            expected = freqs
        elif freqs != expected:
            raise WrongDatasetShape(
                f"Coordinate (x:{coord[0]:g}, y:{coord[1]:g}) has frequencies "
                f"{sorted(freqs)} but other coordinates have {sorted(expected)}",
                field="frequency",
            )

    return [p for members in groups.values() for p in members]


def read_csv(text: str) -> list[dict[str, Any]]:
    """Split CSV text (header row first) into row dicts, skipping blank lines."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    rows = []
    for row in reader:
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in row.values()):
            continue
        rows.append(row)
    return rows


def available_frequencies(points: Iterable[MeasurementPoint]) -> list[float]:
    return sorted({p.frequency for p in points})


def points_at_frequency(points: Iterable[MeasurementPoint], frequency: float) -> list[MeasurementPoint]:
    """One frequency slice of a map, in coordinate order."""
    return [p for p in points if math.isclose(p.frequency, frequency, rel_tol=1e-9)]
