"""API request models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from eis_dashboard.models.measurement import DatasetKind


class DatasetRequest(BaseModel):
    slot: str = Field(default="", description="View slot to load into (defaults to the dataset kind)")
    kind: DatasetKind = Field(default="sweep", description="'sweep' (1D) or 'map' (2D)")
    rows: list[dict[str, Any]] | None = Field(default=None, description="Raw rows keyed by column name")
    csv: str | None = Field(default=None, description="CSV text with a header row")
    calibration: dict[str, float] | None = Field(
        default=None,
        description="Calibration coefficients (MAG1_A, MAG1_B, ..., PHASE_D) to apply",
    )

    @model_validator(mode="after")
    def _one_source(self) -> DatasetRequest:
        if (self.rows is None) == (self.csv is None):
            raise ValueError("Provide exactly one of 'rows' or 'csv'")
        return self


class AnalysisRequest(BaseModel):
    subject: str = Field(default="", description="Subject / sample name used for history lookups")
    topic: str = Field(default="general", description="general, soil or plant")


class FollowUpRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Follow-up question")


class CommitRequest(BaseModel):
    subject: str | None = Field(default=None, description="Overrides the session subject")


class CalibrationRequest(BaseModel):
    coefficients: dict[str, float] = Field(default_factory=dict)
