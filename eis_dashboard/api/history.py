"""GET /api/history: saved runs, newest first."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends

from eis_dashboard.api.errors import to_http
from eis_dashboard.config import settings
from eis_dashboard.dependencies import get_store
from eis_dashboard.errors import RetrievalError
from eis_dashboard.history.store import RunStore
from eis_dashboard.models.responses import HistoryResponse

router = APIRouter()


@router.get("/history", response_model=HistoryResponse)
async def history(
    subject: str | None = None,
    limit: int | None = None,
    store: RunStore = Depends(get_store),
) -> HistoryResponse:
    try:
        runs = await asyncio.to_thread(store.query, settings.eis_owner, subject, limit)
    except RetrievalError as e:
        raise to_http(e) from e
    return HistoryResponse(runs=runs, count=len(runs))
