"""
Voice recording session model.
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field


class RecordingState(str, Enum):
    """Recording state machine states."""

    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"  # Terminal


class InvalidRecordingTransition(Exception):
    """Raised when a recording action is not valid in the current state."""
    pass


class RecordingSession(BaseModel):
    """
    One capture, from start to stop.

    idle → recording → (paused ⇄ recording)* → stopped
    """

    VALID_TRANSITIONS: ClassVar[dict[RecordingState, list[RecordingState]]] = {
        RecordingState.IDLE: [RecordingState.RECORDING],
        RecordingState.RECORDING: [RecordingState.PAUSED, RecordingState.STOPPED],
        RecordingState.PAUSED: [RecordingState.RECORDING, RecordingState.STOPPED],
        RecordingState.STOPPED: [],
    }

    state: RecordingState = RecordingState.IDLE
    chunks: list[bytes] = Field(default_factory=list)
    mime_type: str = "audio/webm"
    started_at: datetime | None = None
    stopped_at: datetime | None = None

    def transition(self, new_state: RecordingState) -> None:
        valid_next_states = self.VALID_TRANSITIONS[self.state]
        if new_state not in valid_next_states:
            raise InvalidRecordingTransition(
                f"Invalid transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in valid_next_states]}"
            )
        if new_state == RecordingState.RECORDING and self.started_at is None:
            self.started_at = datetime.utcnow()
        elif new_state == RecordingState.STOPPED:
            self.stopped_at = datetime.utcnow()
        self.state = new_state

    @property
    def is_active(self) -> bool:
        return self.state in (RecordingState.RECORDING, RecordingState.PAUSED)

    def package(self) -> bytes:
        """Join captured chunks into one audio payload."""
        return b"".join(self.chunks)
