"""Task → model selection. Mid-tier for the structured first analysis, cheap for follow-ups."""

from __future__ import annotations

from eis_dashboard.config import settings

_TASK_MODEL_MAP = {
    "analysis": "mid",
    "follow_up": "cheap",
}


def get_model_for_task(task: str) -> str:
    tier = _TASK_MODEL_MAP.get(task, "cheap")
    if tier == "mid":
        return settings.model_mid
    return settings.model_cheap
