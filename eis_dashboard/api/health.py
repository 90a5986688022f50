"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from eis_dashboard.config import settings
from eis_dashboard.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        llm_configured=bool(settings.anthropic_api_key),
    )


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    from eis_dashboard.llm.prompts import FOLLOW_UP_INSTRUCTIONS, TOPICS, topic_instructions

    templates = {topic: topic_instructions(topic, "sweep", has_history=False) for topic in TOPICS}
    templates["follow_up"] = FOLLOW_UP_INSTRUCTIONS
    return templates
