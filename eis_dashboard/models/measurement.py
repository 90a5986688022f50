"""Canonical measurement point model."""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

DatasetKind = Literal["sweep", "map"]


class MeasurementPoint(BaseModel):
    """One impedance reading. Rectangular coordinates are always derived."""

    model_config = ConfigDict(frozen=True)

    frequency: float = Field(..., gt=0, description="Hz")
    magnitude: float = Field(..., ge=0, description="|Z| in ohms")
    phase_degrees: float = Field(..., ge=-180, le=180)
    x: float | None = None
    y: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def real(self) -> float:
        return self.magnitude * math.cos(math.radians(self.phase_degrees))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def imaginary(self) -> float:
        return self.magnitude * math.sin(math.radians(self.phase_degrees))

    @property
    def coordinate(self) -> tuple[float, float] | None:
        if self.x is None or self.y is None:
            return None
        return (self.x, self.y)
