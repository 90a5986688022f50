"""Conversation and saved-run models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from eis_dashboard.models.measurement import DatasetKind, MeasurementPoint

Role = Literal["requester", "responder"]


class ReportMetric(BaseModel):
    name: str
    value: str
    insight: str = ""

    @field_validator("name", "value", "insight", mode="before")
    @classmethod
    def _stringify(cls, v: object) -> object:
        # Models sometimes answer "value": 0.42 instead of "0.42"
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class StructuredReport(BaseModel):
    # Runs saved by the browser dashboard used "report_title"
    title: str = Field(..., validation_alias=AliasChoices("title", "report_title"))
    summary: str
    metrics: list[ReportMetric] = Field(default_factory=list)


class Turn(BaseModel):
    role: Role
    content: str | StructuredReport

    @property
    def is_structured(self) -> bool:
        return isinstance(self.content, StructuredReport)


class SavedRun(BaseModel):
    subject: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: DatasetKind = "sweep"
    points: list[MeasurementPoint] = Field(default_factory=list)
    calibration: dict[str, float] | None = None
    conversation: list[Turn] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Older records were written without an offset
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
