"""
Pure domain models for the brainstorming pipeline.

These models carry no transport or vendor types. They represent the core
concepts that flow through ports and services: utterances, suggestions,
broadcast events and the request/result shapes of the generative capability.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


class SpeakerRole(str, Enum):
    """Who produced an utterance."""

    PARTICIPANT = "participant"
    ASSISTANT = "assistant"


class Utterance(BaseModel):
    """One captured unit of speech.

    Voice services label human speech ``user``; that role is accepted as an
    alias of ``participant``. Text is not validated here so that the
    transcript buffer can reject it with its own error.
    """

    role: SpeakerRole = SpeakerRole.PARTICIPANT
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    is_final: bool = True
    speaker: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def map_role_alias(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() == "user":
            return SpeakerRole.PARTICIPANT
        if isinstance(v, str):
            return v.strip().lower()
        return v


class SessionState(str, Enum):
    """Session lifecycle."""

    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class SessionSnapshot(BaseModel):
    """Read-only view of a session for API responses."""

    session_id: str
    created_at: datetime
    meeting_id: Optional[str] = None
    state: SessionState
    utterance_count: int = 0
    suggestion_count: int = 0
    pending_generations: int = 0


# ---------------------------------------------------------------------------
# Trigger detection
# ---------------------------------------------------------------------------


class TriggerDecision(BaseModel):
    """Outcome of evaluating an utterance for brainstorming intent."""

    triggered: bool = False
    reason: Optional[str] = None
    phrase: Optional[str] = None

    @classmethod
    def no_trigger(cls) -> "TriggerDecision":
        return cls()


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


class SuggestionOrigin(str, Enum):
    """Where a suggestion came from."""

    GENERATED = "generated"
    RELAYED = "relayed"


class Suggestion(BaseModel):
    """One brainstorming idea surfaced to participants."""

    text: str
    origin: SuggestionOrigin = SuggestionOrigin.GENERATED
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: str
    confidence: Optional[float] = None
    source: Optional[str] = None


# ---------------------------------------------------------------------------
# Broadcast
# ---------------------------------------------------------------------------


class EventKind(str, Enum):
    """Named events delivered to participants."""

    UTTERANCE = "utterance"
    BRAINSTORM_OPPORTUNITY = "brainstorm-opportunity"
    SUGGESTION_READY = "suggestion-ready"
    SESSION_JOINED = "session-joined"
    SESSION_LEFT = "session-left"


class BroadcastEvent(BaseModel):
    """A transcript update, suggestion or lifecycle notice for one session."""

    kind: EventKind
    session_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    payload: Dict[str, Any] = {}

    def to_wire(self) -> Dict[str, Any]:
        """JSON-safe envelope sent over the participant transport."""
        return {
            "event": self.kind.value,
            "sessionId": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "data": _jsonable(self.payload),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Generative capability
# ---------------------------------------------------------------------------


class GenerationRequest(BaseModel):
    """Structured request to the generative capability."""

    system_prompt: str
    context: str = ""
    prompt: str


class FunctionCall(BaseModel):
    """A function-style invocation returned instead of free text."""

    name: str
    arguments: Dict[str, Any] = {}


class GenerationResult(BaseModel):
    """Either free text or a function invocation."""

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None

    @property
    def is_function_call(self) -> bool:
        return self.function_call is not None


class BrainstormIdea(BaseModel):
    """Result of ``generate_brainstorm_idea(context, topic)``."""

    idea: str
    confidence: float
    timestamp: datetime = Field(default_factory=utc_now)
