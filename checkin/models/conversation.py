"""
Conversation turn and stream event models.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from checkin.models.stage import Stage


class TurnRole(str, Enum):
    """Author of a turn."""

    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """
    One message in the message log.

    Assistant turns start as empty placeholders and have their content
    mutated in place while the reply streams in.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: TurnRole
    content: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    def to_history(self) -> dict[str, str]:
        """Shape used in the responder's history list."""
        return {"role": self.role.value, "content": self.content.strip()}


# ============================================================================
# STREAM EVENTS
# ============================================================================

class TextDelta(BaseModel):
    """A fragment of reply text to append."""
    kind: Literal["text"] = "text"
    delta: str


class StageSignal(BaseModel):
    """The responder moved the interview to another stage."""
    kind: Literal["stage"] = "stage"
    stage: Stage


class StreamError(BaseModel):
    """The responder failed while producing this turn."""
    kind: Literal["error"] = "error"
    message: str


class StreamDone(BaseModel):
    """End-of-stream marker."""
    kind: Literal["done"] = "done"


class Discard(BaseModel):
    """A frame that carries nothing usable (heartbeat, malformed, unknown)."""
    kind: Literal["discard"] = "discard"
    raw: str = ""


StreamEvent = Union[TextDelta, StageSignal, StreamError, StreamDone, Discard]


class TurnOutcome(BaseModel):
    """Result of one conversation transport call."""

    turn_id: str
    completed: bool = False  # Stream reached [DONE] without an error frame
    failed: bool = False
    stage_signaled: Stage | None = None
    text: str = ""
