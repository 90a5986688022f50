"""Completion client: retry policy and response-contract parsing.

One call to ``complete`` is a single awaitable unit: it either returns the
parsed answer for this turn or raises a CompletionError. Retries and their
backoff sleeps happen inside it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable, Sequence

from pydantic import ValidationError

from eis_dashboard.config import settings
from eis_dashboard.errors import NotConfigured, Unavailable, Unparseable
from eis_dashboard.llm.contract import ResponseContract, Structured, select_contract
from eis_dashboard.llm.prompts import json_output_instruction
from eis_dashboard.llm.transport import (
    AnthropicTransport,
    CompletionRequest,
    CompletionTransport,
    TransportError,
)
from eis_dashboard.models.conversation import StructuredReport, Turn

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def serialize_content(turn: Turn) -> str:
    """Canonical text form of a turn's content."""
    if isinstance(turn.content, StructuredReport):
        return json.dumps(turn.content.model_dump(), sort_keys=True, ensure_ascii=False)
    return turn.content


def build_request(
    turns: Sequence[Turn],
    instructions: str,
    contract: ResponseContract,
    task: str = "analysis",
) -> CompletionRequest:
    system = instructions
    schema = None
    if isinstance(contract, Structured):
        schema = contract.schema
        system = f"{instructions}\n\n{json_output_instruction(schema)}"
    messages = [
        ("user" if t.role == "requester" else "assistant", serialize_content(t))
        for t in turns
    ]
    return CompletionRequest(system=system, messages=messages, schema=schema, task=task)


def parse_payload(text: str | None, contract: ResponseContract) -> str | StructuredReport:
    if text is None or not text.strip():
        raise Unparseable("The analysis service returned an empty response.")
    if not isinstance(contract, Structured):
        return text.strip()

    fenced = _FENCE.search(text)
    raw = fenced.group(1) if fenced else text
    try:
        data = json.loads(raw.strip())
        return StructuredReport.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise Unparseable(f"Could not parse the analysis from the response: {e}") from e


class CompletionClient:
    def __init__(
        self,
        transport: CompletionTransport | None = None,
        api_key: str | None = None,
        max_attempts: int | None = None,
        backoff: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = settings.anthropic_api_key if api_key is None else api_key
        self._transport = transport
        self.max_attempts = max_attempts or settings.eis_completion_max_attempts
        self.backoff = settings.eis_completion_backoff_seconds if backoff is None else backoff
        self._sleep = sleep

    @property
    def transport(self) -> CompletionTransport:
        if self._transport is None:
            self._transport = AnthropicTransport(self.api_key)
        return self._transport

    async def complete(
        self,
        turns: Sequence[Turn],
        instructions: str,
        contract: ResponseContract,
        task: str = "analysis",
    ) -> str | StructuredReport:
        """Send the conversation and parse the reply under the effective contract."""
        if not self.api_key:
            raise NotConfigured("AI analysis is not configured (set ANTHROPIC_API_KEY in .env).")
        if not turns:
            raise ValueError("A completion needs at least one turn")

        effective = select_contract(turns, contract)
        request = build_request(turns, instructions, effective, task=task)
        text = await self._send_with_retry(request)
        return parse_payload(text, effective)

    async def _send_with_retry(self, request: CompletionRequest) -> str:
        delay = self.backoff
        last_error: TransportError | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await self.transport.send(request)
                logger.debug("Completion succeeded on attempt %d", attempt)
                return text
            except TransportError as e:
                if not e.transient:
                    logger.warning("Completion rejected with status %s, not retrying", e.status_code)
                    raise Unavailable(
                        f"Analysis request failed with status {e.status_code}.",
                        status_code=e.status_code,
                    ) from e
                last_error = e
                if attempt == self.max_attempts:
                    break
                logger.warning(
                    "Completion attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt, self.max_attempts, e, delay,
                )
                await self._sleep(delay)
                delay *= 2
            except Exception as e:
                logger.exception("Unexpected failure from the completion transport")
                raise Unavailable(f"Analysis request failed unexpectedly: {e}") from e

        status = last_error.status_code if last_error else None
        raise Unavailable(
            f"Failed to get analysis after {self.max_attempts} attempts: {last_error}",
            status_code=status,
        ) from last_error
