"""
Conversation Transport - sends one turn and streams the reply in.

Posts the interview request to the responder and applies the decoded
frames to the in-flight assistant turn as they arrive. The transport knows
nothing about rendering: it mutates the turn and notifies its listeners.
"""

import logging
from typing import Any, Callable

import httpx

from checkin.config.settings import Settings, get_settings
from checkin.core.stream_decoder import FrameDecoder
from checkin.models.context import UserContext
from checkin.models.conversation import (
    StageSignal,
    StreamDone,
    StreamError,
    StreamEvent,
    TextDelta,
    Turn,
    TurnOutcome,
)
from checkin.models.stage import Stage

logger = logging.getLogger(__name__)

# Shown in place of the reply whenever a turn fails
FALLBACK_REPLY = "I'm having trouble connecting. Please try again."


class TransportError(Exception):
    """Raised when the responder call fails below the frame protocol."""
    pass


class TransportBusyError(Exception):
    """Raised when a second call is started while one is in flight."""
    pass


class ConversationTransport:
    """
    Streaming client for the conversational responder.

    At most one call is active at a time. Failures never raise to the
    caller: the in-flight turn's content is replaced with FALLBACK_REPLY and
    the outcome is marked failed. No retries are made.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()

        # No client-side timeout beyond the httpx default
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            headers=self.settings.auth_headers,
        )

        self._active = False
        self._mutation_listeners: list[Callable[[Turn], None]] = []
        self._stage_listeners: list[Callable[[Stage], None]] = []

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @property
    def busy(self) -> bool:
        return self._active

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def on_turn_mutated(self, listener: Callable[[Turn], None]) -> None:
        """Register a listener for every content change of the in-flight turn."""
        self._mutation_listeners.append(listener)

    def on_stage_signal(self, listener: Callable[[Stage], None]) -> None:
        """Register a listener for responder stage signals."""
        self._stage_listeners.append(listener)

    def _notify_mutated(self, turn: Turn) -> None:
        for listener in self._mutation_listeners:
            try:
                listener(turn)
            except Exception as e:
                logger.error(f"Turn mutation listener error: {e}")

    def _notify_stage(self, stage: Stage) -> None:
        for listener in self._stage_listeners:
            try:
                listener(stage)
            except Exception as e:
                logger.error(f"Stage signal listener error: {e}")

    # =========================================================================
    # REQUEST
    # =========================================================================

    def build_payload(
        self,
        message: str,
        stage: Stage,
        exchange_count: int,
        history: list[dict[str, str]],
        context: UserContext,
        next_stage: Stage | None = None,
    ) -> dict[str, Any]:
        """
        Build the responder request body.

        Args:
            message: User text, or the start sentinel for the opening turn
            stage: Current interview stage
            exchange_count: Completed exchanges in the current stage
            history: Recent turns, oldest first
            context: User context snapshot
            next_stage: Upcoming stage hint, if any

        Returns:
            JSON-serializable payload
        """
        payload: dict[str, Any] = {
            "message": message,
            "stage": stage.value,
            "exchangeCount": exchange_count,
            "history": history[-self.settings.history_limit:],
            "context": context.to_wire(),
        }
        if next_stage is not None:
            payload["nextStage"] = next_stage.value
        return payload

    # =========================================================================
    # STREAMING
    # =========================================================================

    async def send(self, turn: Turn, payload: dict[str, Any]) -> TurnOutcome:
        """
        Send one request and stream the reply into `turn`.

        Args:
            turn: Assistant placeholder turn, mutated in place
            payload: Request body from build_payload

        Returns:
            Outcome of the call
        """
        if self._active:
            raise TransportBusyError("A reply is already streaming")

        self._active = True
        outcome = TurnOutcome(turn_id=turn.id)
        logger.info(f"Sending turn (stage={payload.get('stage')})")

        try:
            await self._stream(turn, payload, outcome)
        except (httpx.HTTPError, TransportError) as e:
            logger.error(f"Responder call failed: {e}")
            self._fail(turn, outcome)
        finally:
            self._active = False

        logger.info(
            f"Turn {turn.id} finished: completed={outcome.completed} "
            f"failed={outcome.failed} chars={len(outcome.text)}"
        )
        return outcome

    async def _stream(self, turn: Turn, payload: dict[str, Any], outcome: TurnOutcome) -> None:
        decoder = FrameDecoder()
        received = False

        async with self.client.stream(
            "POST",
            self.settings.responder_path,
            json=payload,
        ) as response:
            if not response.is_success:
                raise TransportError(f"Responder returned HTTP {response.status_code}")

            async for chunk in response.aiter_text():
                if not chunk:
                    continue
                received = True
                for event in decoder.feed(chunk):
                    if self._apply(turn, event, outcome):
                        return

        tail = decoder.reset()
        if tail.strip():
            logger.warning(f"Dropping incomplete frame at end of stream: {tail[:80]!r}")
        if not received:
            raise TransportError("Responder returned an empty body")
        raise TransportError("Stream ended before [DONE]")

    def _apply(self, turn: Turn, event: StreamEvent, outcome: TurnOutcome) -> bool:
        """Apply one event to the turn. Returns True when the turn is finished."""
        if isinstance(event, TextDelta):
            turn.content += event.delta
            outcome.text += event.delta
            self._notify_mutated(turn)
            return False

        if isinstance(event, StageSignal):
            outcome.stage_signaled = event.stage
            self._notify_stage(event.stage)
            return False

        if isinstance(event, StreamError):
            logger.error(f"Responder error frame: {event.message}")
            self._fail(turn, outcome)
            return True

        if isinstance(event, StreamDone):
            outcome.completed = True
            return True

        # Discard: heartbeat or malformed line
        return False

    def _fail(self, turn: Turn, outcome: TurnOutcome) -> None:
        turn.content = FALLBACK_REPLY
        outcome.failed = True
        outcome.completed = False
        outcome.text = ""
        self._notify_mutated(turn)
