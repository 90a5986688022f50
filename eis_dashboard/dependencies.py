"""FastAPI dependency injection."""

from __future__ import annotations

from eis_dashboard.config import settings
from eis_dashboard.engine.session import SessionRegistry
from eis_dashboard.history.store import RunStore, get_run_store

_registry: SessionRegistry | None = None


def get_settings():
    return settings


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def get_store() -> RunStore:
    return get_run_store()
