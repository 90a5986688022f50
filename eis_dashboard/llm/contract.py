"""Response contracts and the per-turn selection rule."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from eis_dashboard.models.conversation import Turn

# Turns in the first requester/responder exchange
FIRST_EXCHANGE_TURNS = 2


@dataclass(frozen=True)
class Structured:
    schema: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class FreeText:
    pass


ResponseContract = Structured | FreeText

FREE_TEXT = FreeText()


def select_contract(turns: Sequence[Turn], requested: ResponseContract) -> ResponseContract:
    """Structured output only applies to the first exchange; later turns are free text."""
    if isinstance(requested, Structured) and len(turns) <= FIRST_EXCHANGE_TURNS:
        return requested
    return FREE_TEXT
