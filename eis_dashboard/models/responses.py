"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from eis_dashboard.models.conversation import SavedRun, Turn
from eis_dashboard.models.measurement import DatasetKind, MeasurementPoint


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    llm_configured: bool = False


class DatasetResponse(BaseModel):
    session_id: str
    slot: str
    kind: DatasetKind
    points: list[MeasurementPoint] = Field(default_factory=list)
    frequencies: list[float] = Field(default_factory=list)


class SessionResponse(BaseModel):
    session_id: str
    kind: DatasetKind
    state: str
    subject: str = ""
    topic: str = ""
    turns: list[Turn] = Field(default_factory=list)
    error: str | None = None


class HistoryResponse(BaseModel):
    runs: list[SavedRun] = Field(default_factory=list)
    count: int = 0


class CalibrationResponse(BaseModel):
    formulas: dict[str, str] = Field(default_factory=dict)
