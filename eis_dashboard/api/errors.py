"""Map engine errors onto HTTP responses with a single descriptive detail."""

from __future__ import annotations

from fastapi import HTTPException

from eis_dashboard.errors import (
    CompletionError,
    NotConfigured,
    ParseError,
    RetrievalError,
    SessionError,
)


def to_http(e: Exception) -> HTTPException:
    if isinstance(e, (ParseError, ValueError)):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, SessionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (NotConfigured, RetrievalError)):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, CompletionError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
