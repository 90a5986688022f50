"""Wire transports for the completion service.

A transport sends one request and returns the raw text payload. It does no
retrying: failures are raised as TransportError carrying the HTTP status
when the service answered, or no status when it could not be reached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from eis_dashboard.config import settings
from eis_dashboard.llm.model_router import get_model_for_task

logger = logging.getLogger(__name__)

WireRole = Literal["user", "assistant"]


@dataclass
class CompletionRequest:
    system: str
    messages: list[tuple[WireRole, str]] = field(default_factory=list)
    # None means plain-text response mode
    schema: dict[str, Any] | None = None
    task: str = "analysis"


class TransportError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        """Connection failures and 5xx are worth retrying; 4xx are not."""
        return self.status_code is None or self.status_code >= 500


class CompletionTransport(Protocol):
    async def send(self, request: CompletionRequest) -> str: ...


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


class AnthropicTransport:
    """LangChain ChatAnthropic transport with SDK-level retries switched off."""

    def __init__(self, api_key: str, max_tokens: int | None = None) -> None:
        self.api_key = api_key
        self.max_tokens = max_tokens or settings.eis_max_tokens

    async def send(self, request: CompletionRequest) -> str:
        import anthropic
        from langchain_anthropic import ChatAnthropic
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

        model_id = get_model_for_task(request.task)
        llm = ChatAnthropic(
            model=model_id,
            api_key=self.api_key,
            max_tokens=self.max_tokens,
            max_retries=0,
        )

        messages: list = [SystemMessage(content=request.system)]
        for role, text in request.messages:
            if role == "user":
                messages.append(HumanMessage(content=text))
            else:
                messages.append(AIMessage(content=text))

        logger.debug("Sending %d message(s) to %s", len(request.messages), model_id)
        try:
            response = await llm.ainvoke(messages)
        except anthropic.APIStatusError as e:
            raise TransportError(str(e), status_code=e.status_code) from e
        except anthropic.APIConnectionError as e:
            raise TransportError(f"Could not reach the completion service: {e}") from e
        except anthropic.APIError as e:
            # e.g. a response body the SDK could not validate
            raise TransportError(f"Completion service error: {e}") from e
        return _content_text(response.content)
