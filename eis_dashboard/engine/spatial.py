"""Spatial aggregation for map heatmaps.

Points are scattered samples, not a raster: position and color are both
min/max normalized over whatever points are passed in. A zero-width range
maps to the midpoint 0.5.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field

from eis_dashboard.models.measurement import MeasurementPoint

_METRIC_ALIASES = {
    "magnitude": "magnitude",
    "mag": "magnitude",
    "phase_degrees": "phase_degrees",
    "phase": "phase_degrees",
}


class Bounds(BaseModel):
    min: float = 0.0
    max: float = 0.0

    @property
    def span(self) -> float:
        return self.max - self.min


class SpatialCell(BaseModel):
    x: float
    y: float
    frequency: float
    value: float
    normalized: float
    left: float
    top: float
    color: str


class SpatialMap(BaseModel):
    metric: str
    cells: list[SpatialCell] = Field(default_factory=list)
    value_bounds: Bounds = Field(default_factory=Bounds)
    x_bounds: Bounds = Field(default_factory=Bounds)
    y_bounds: Bounds = Field(default_factory=Bounds)


def resolve_metric(metric: str) -> str:
    try:
        return _METRIC_ALIASES[metric.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown metric {metric!r}; expected 'magnitude' or 'phase_degrees'") from None


def normalize_range(values: NDArray[np.float64]) -> tuple[NDArray[np.float64], Bounds]:
    """Scale to [0, 1]; degenerate spans become 0.5."""
    if values.size == 0:
        return values, Bounds()
    lo, hi = float(values.min()), float(values.max())
    span = hi - lo
    if span > 0:
        scaled = (values - lo) / span
    else:
        scaled = np.full_like(values, 0.5)
    return scaled, Bounds(min=lo, max=hi)


def heat_color(normalized: float) -> str:
    """Blue (low) through green to red (high)."""
    hue = (1.0 - normalized) * 240.0
    return f"hsl({hue:.0f}, 100%, 50%)"


def aggregate(points: Sequence[MeasurementPoint], metric: str = "magnitude") -> SpatialMap:
    """Normalize values and coordinates of ``points`` for a position/color mapping."""
    field = resolve_metric(metric)
    if not points:
        return SpatialMap(metric=field)

    missing = [i for i, p in enumerate(points) if p.coordinate is None]
    if missing:
        raise ValueError(f"{len(missing)} point(s) have no x/y coordinate; spatial aggregation needs a map")

    values = np.array([getattr(p, field) for p in points], dtype=np.float64)
    xs = np.array([p.x for p in points], dtype=np.float64)
    ys = np.array([p.y for p in points], dtype=np.float64)

    norm_v, value_bounds = normalize_range(values)
    norm_x, x_bounds = normalize_range(xs)
    norm_y, y_bounds = normalize_range(ys)

    cells = [
        SpatialCell(
            x=float(xs[i]),
            y=float(ys[i]),
            frequency=p.frequency,
            value=float(values[i]),
            normalized=float(norm_v[i]),
            left=float(norm_x[i]),
            top=float(norm_y[i]),
            color=heat_color(float(norm_v[i])),
        )
        for i, p in enumerate(points)
    ]
    return SpatialMap(
        metric=field,
        cells=cells,
        value_bounds=value_bounds,
        x_bounds=x_bounds,
        y_bounds=y_bounds,
    )
