"""Analysis sessions: one conversation over one loaded dataset.

State machine:

    IDLE ──start──▶ REQUESTING ──▶ ANSWERED ──follow-up──▶ REQUESTING
                        │                                      │
                        └────────────▶ FAILED ◀────────────────┘

Any state ──close()──▶ CLOSED (terminal, turns discarded).

Only one request is in flight per session; a second call while REQUESTING
raises SessionBusyError. ``close()`` bumps a generation counter so a
response that lands after the session was replaced is dropped instead of
applied. Sessions share no mutable state with each other.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from enum import Enum

from eis_dashboard.errors import NothingToCommitError, SessionBusyError, SessionClosedError, SessionError
from eis_dashboard.history.retriever import ContextRetriever
from eis_dashboard.history.store import RunStore
from eis_dashboard.llm.client import CompletionClient
from eis_dashboard.llm.contract import FREE_TEXT, Structured
from eis_dashboard.llm.prompts import (
    FOLLOW_UP_INSTRUCTIONS,
    TOPICS,
    first_turn_text,
    render_dataset_summary,
    topic_instructions,
    topic_schema,
)
from eis_dashboard.models.conversation import SavedRun, Turn
from eis_dashboard.models.measurement import DatasetKind, MeasurementPoint

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    ANSWERED = "answered"
    FAILED = "failed"
    CLOSED = "closed"


class AnalysisSession:
    def __init__(
        self,
        points: Sequence[MeasurementPoint],
        kind: DatasetKind,
        client: CompletionClient | None = None,
        retriever: ContextRetriever | None = None,
        calibration: dict[str, float] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.points: tuple[MeasurementPoint, ...] = tuple(points)
        self.kind = kind
        self.calibration = calibration
        self.subject = ""
        self.topic = "soil" if kind == "map" else "general"
        self.state = SessionState.IDLE
        self.error: str | None = None
        self._turns: list[Turn] = []
        self._generation = 0
        self._client = client or CompletionClient()
        self._retriever = retriever or ContextRetriever()

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    @property
    def in_flight(self) -> bool:
        return self.state is SessionState.REQUESTING

    def _check_ready(self) -> None:
        if self.state is SessionState.CLOSED:
            raise SessionClosedError("This session was replaced by a newer dataset.")
        if self.state is SessionState.REQUESTING:
            raise SessionBusyError("An analysis request is already in progress.")

    def _begin(self) -> int:
        self._check_ready()
        self.state = SessionState.REQUESTING
        self.error = None
        return self._generation

    def _release(self, generation: int) -> None:
        # Cancellation skips the except clauses; never leave the session busy
        if generation == self._generation and self.state is SessionState.REQUESTING:
            self.state = SessionState.FAILED
            self.error = self.error or "The analysis request was cancelled."

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.warning("Discarding response for session %s: session was replaced", self.id)
            return True
        return False

    async def start_analysis(self, subject: str, topic: str = "general") -> Turn | None:
        """Open a new conversation with a structured first answer.

        On failure the conversation is cleared. Returns the responder turn,
        or None when the session was closed while the request was in flight.
        """
        if topic not in TOPICS:
            raise ValueError(f"Unknown analysis topic {topic!r}; expected one of {', '.join(TOPICS)}")
        if not self.points:
            raise SessionError("No data available to analyze.")

        generation = self._begin()
        self._turns = []
        self.subject = subject.strip()
        self.topic = topic

        try:
            digest = await asyncio.to_thread(self._retriever.fetch_digest, self.subject)
            instructions = topic_instructions(topic, self.kind, has_history=bool(digest))
            summary = render_dataset_summary(self.points, self.kind)
            request_turn = Turn(role="requester", content=first_turn_text(digest, summary))
            contract = Structured(topic_schema(topic, self.kind))
            content = await self._client.complete([request_turn], instructions, contract, task="analysis")
        except Exception as e:
            if self._is_stale(generation):
                return None
            self._turns = []
            self.state = SessionState.FAILED
            self.error = str(e)
            logger.warning("Analysis for %r failed: %s", self.subject or self.id, e)
            raise
        else:
            if self._is_stale(generation):
                return None
            reply = Turn(role="responder", content=content)
            self._turns = [request_turn, reply]
            self.state = SessionState.ANSWERED
            logger.info(
                "Analysis answered for %r (topic=%s, history=%s)", self.subject or self.id, topic, bool(digest)
            )
            return reply
        finally:
            self._release(generation)

    async def continue_analysis(self, text: str) -> Turn | None:
        """Ask a free-text follow-up over the whole conversation.

        The question is appended before the call and kept if the call fails.
        A question left unanswered by a failed call is replaced by the next one.
        """
        text = text.strip()
        if not text:
            raise ValueError("Follow-up question is empty")
        self._check_ready()
        if not self._turns:
            raise SessionError("Run an analysis before asking a follow-up question.")

        generation = self._begin()
        if self._turns[-1].role == "requester":
            self._turns.pop()
        self._turns.append(Turn(role="requester", content=text))

        try:
            content = await self._client.complete(
                list(self._turns), FOLLOW_UP_INSTRUCTIONS, FREE_TEXT, task="follow_up"
            )
        except Exception as e:
            if self._is_stale(generation):
                return None
            self.state = SessionState.FAILED
            self.error = str(e)
            logger.warning("Follow-up for %r failed: %s", self.subject or self.id, e)
            raise
        else:
            if self._is_stale(generation):
                return None
            reply = Turn(role="responder", content=content)
            self._turns.append(reply)
            self.state = SessionState.ANSWERED
            return reply
        finally:
            self._release(generation)

    def close(self) -> None:
        """Invalidate the session; any in-flight response will be discarded."""
        self._generation += 1
        self._turns = []
        self.state = SessionState.CLOSED

    def to_saved_run(self, subject: str | None = None) -> SavedRun:
        self._check_ready()
        subject = (subject if subject is not None else self.subject).strip()
        if not subject:
            raise NothingToCommitError("Enter a subject / sample name before saving.")
        return SavedRun(
            subject=subject,
            kind=self.kind,
            points=list(self.points),
            calibration=self.calibration,
            conversation=self.turns,
        )

    def commit(self, store: RunStore, owner: str, subject: str | None = None) -> SavedRun:
        """Persist the dataset and conversation as an immutable SavedRun."""
        return store.save(owner, self.to_saved_run(subject))


class SessionRegistry:
    """Live sessions, one per view slot (e.g. "sweep" and "map")."""

    def __init__(
        self,
        client: CompletionClient | None = None,
        retriever: ContextRetriever | None = None,
    ) -> None:
        self.client = client
        self.retriever = retriever
        self._by_slot: dict[str, AnalysisSession] = {}
        self._by_id: dict[str, AnalysisSession] = {}

    def open(
        self,
        slot: str,
        points: Sequence[MeasurementPoint],
        kind: DatasetKind,
        calibration: dict[str, float] | None = None,
    ) -> AnalysisSession:
        """Load a dataset into ``slot``, replacing (and closing) its previous session."""
        self.close(slot)
        session = AnalysisSession(
            points,
            kind,
            client=self.client,
            retriever=self.retriever,
            calibration=calibration,
        )
        self._by_slot[slot] = session
        self._by_id[session.id] = session
        logger.info("Loaded %s with %d points into slot %r (session %s)", kind, len(points), slot, session.id)
        return session

    def close(self, slot: str) -> None:
        old = self._by_slot.pop(slot, None)
        if old is not None:
            old.close()
            self._by_id.pop(old.id, None)

    def get(self, session_id: str) -> AnalysisSession:
        return self._by_id[session_id]

    def for_slot(self, slot: str) -> AnalysisSession | None:
        return self._by_slot.get(slot)
