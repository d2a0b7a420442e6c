"""
Message Log - ordered, append-only record of conversation turns.

Renderers subscribe to changes; every content mutation of a streaming turn
is published, not just its final state.
"""

import logging
from typing import Callable, Literal

from pydantic import BaseModel

from checkin.models.conversation import Turn, TurnRole

logger = logging.getLogger(__name__)


class LogChange(BaseModel):
    """Notification sent to log subscribers."""

    kind: Literal["appended", "mutated", "closed"]
    turn: Turn | None = None  # None for "closed"
    autoscroll: bool  # Renderer should scroll to the latest turn


LogListener = Callable[[LogChange], None]


class MessageLog:
    """
    Append-only turn list with change notifications.

    While a reply is streaming in, changes carry autoscroll=False so the
    reader keeps control of the scroll position.
    """

    def __init__(self):
        self._turns: list[Turn] = []
        self._listeners: list[LogListener] = []
        self.streaming = False
        self.closed = False

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def get(self, turn_id: str) -> Turn | None:
        for turn in self._turns:
            if turn.id == turn_id:
                return turn
        return None

    # =========================================================================
    # APPENDING
    # =========================================================================

    def append_user(self, content: str) -> Turn:
        """Append a user turn; called before any network activity."""
        turn = Turn(role=TurnRole.USER, content=content)
        self._append(turn)
        return turn

    def append_placeholder(self) -> Turn:
        """Append the empty assistant turn the transport will fill in."""
        turn = Turn(role=TurnRole.ASSISTANT, content="")
        self._append(turn)
        return turn

    def _append(self, turn: Turn) -> None:
        self._turns.append(turn)
        self._publish(LogChange(kind="appended", turn=turn, autoscroll=self.should_autoscroll))

    # =========================================================================
    # STREAMING
    # =========================================================================

    @property
    def should_autoscroll(self) -> bool:
        return not self.streaming

    def set_streaming(self, streaming: bool) -> None:
        self.streaming = streaming

    def handle_turn_mutated(self, turn: Turn) -> None:
        """Subscriber for the transport's turn-mutated notification."""
        if self.get(turn.id) is not turn:
            logger.warning(f"Mutation for turn not in log: {turn.id}")
            return
        self._publish(LogChange(kind="mutated", turn=turn, autoscroll=self.should_autoscroll))

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def close(self) -> None:
        """Publish the final "closed" change and drop every subscriber."""
        if self.closed:
            return
        self.closed = True
        self._publish(LogChange(kind="closed", autoscroll=False))
        self._listeners.clear()

    def _publish(self, change: LogChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Message log listener error: {e}")

    def history(self, limit: int, before: Turn | None = None) -> list[dict[str, str]]:
        """
        Recent non-empty turns in responder history shape.

        Args:
            limit: Maximum number of turns
            before: Only turns appended before this one
        """
        turns = self._turns
        if before is not None and before in turns:
            turns = turns[:turns.index(before)]
        recent = [t for t in turns if t.content.strip()]
        return [t.to_history() for t in recent[-limit:]]
