"""Analysis session endpoints: conversation, spatial map and commit."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from eis_dashboard.api.errors import to_http
from eis_dashboard.config import settings
from eis_dashboard.dependencies import get_session_registry, get_store
from eis_dashboard.engine.normalizer import available_frequencies, points_at_frequency
from eis_dashboard.engine.session import AnalysisSession, SessionRegistry
from eis_dashboard.engine.spatial import SpatialMap, aggregate
from eis_dashboard.errors import CompletionError, SessionError
from eis_dashboard.history.store import RunStore
from eis_dashboard.models.conversation import SavedRun
from eis_dashboard.models.requests import AnalysisRequest, CommitRequest, FollowUpRequest
from eis_dashboard.models.responses import SessionResponse

router = APIRouter()


def _session(session_id: str, registry: SessionRegistry) -> AnalysisSession:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown or replaced session {session_id}") from None


def _describe(session: AnalysisSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        kind=session.kind,
        state=session.state.value,
        subject=session.subject,
        topic=session.topic,
        turns=session.turns,
        error=session.error,
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    return _describe(_session(session_id, registry))


@router.get("/sessions/{session_id}/spatial", response_model=SpatialMap)
async def get_spatial(
    session_id: str,
    metric: str = "magnitude",
    frequency: float | None = None,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SpatialMap:
    session = _session(session_id, registry)
    if session.kind != "map":
        raise HTTPException(status_code=422, detail="Spatial maps need a 2D dataset")
    if frequency is None:
        frequency = available_frequencies(session.points)[0]
    try:
        return aggregate(points_at_frequency(session.points, frequency), metric)
    except ValueError as e:
        raise to_http(e) from e


@router.post("/sessions/{session_id}/analysis", response_model=SessionResponse)
async def start_analysis(
    session_id: str,
    req: AnalysisRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    session = _session(session_id, registry)
    try:
        reply = await session.start_analysis(req.subject, req.topic)
    except (CompletionError, SessionError, ValueError) as e:
        raise to_http(e) from e
    if reply is None:
        raise HTTPException(status_code=409, detail="The dataset was replaced while the analysis was running")
    return _describe(session)


@router.post("/sessions/{session_id}/follow-up", response_model=SessionResponse)
async def follow_up(
    session_id: str,
    req: FollowUpRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    session = _session(session_id, registry)
    try:
        reply = await session.continue_analysis(req.text)
    except (CompletionError, SessionError, ValueError) as e:
        raise to_http(e) from e
    if reply is None:
        raise HTTPException(status_code=409, detail="The dataset was replaced while the analysis was running")
    return _describe(session)


@router.post("/sessions/{session_id}/commit", response_model=SavedRun)
async def commit(
    session_id: str,
    req: CommitRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    store: RunStore = Depends(get_store),
) -> SavedRun:
    session = _session(session_id, registry)
    try:
        return await asyncio.to_thread(session.commit, store, settings.eis_owner, req.subject)
    except SessionError as e:
        raise to_http(e) from e
