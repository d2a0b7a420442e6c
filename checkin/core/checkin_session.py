"""
Check-in Session - coordinates one guided interview conversation.

This is the central coordinator for a session. It fetches the user
context once, runs the opening turn, accepts user submissions one at a
time, feeds completed exchanges to the stage controller and hands finished
replies to the speech player.
"""

import asyncio
import logging
from typing import Any, Callable
from uuid import uuid4

from checkin.config.settings import Settings, get_settings
from checkin.core.audio_processor import AudioProcessor
from checkin.core.context_gatherer import ContextGatherer
from checkin.core.dictation import ContinuousDictation, Recognizer
from checkin.core.conversation_transport import ConversationTransport
from checkin.core.message_log import MessageLog
from checkin.core.preferences import PreferenceStore
from checkin.core.speech_player import PlaybackFactory, SpeechPlayer
from checkin.core.stage_controller import StageController
from checkin.core.voice_recorder import AudioInput, VoiceRecorder
from checkin.models.context import UserContext
from checkin.models.conversation import Turn, TurnOutcome
from checkin.models.recording import InvalidRecordingTransition
from checkin.models.stage import Stage

logger = logging.getLogger(__name__)


class InputLockedError(Exception):
    """Raised when input is submitted while the session cannot accept it."""
    pass


class CheckinSession:
    """
    One interview session.

    Lifecycle:
        created → loading context → opening turn → ready ⇄ turn in flight

    Input is rejected, not queued, while the context is loading or a reply
    is streaming.
    """

    def __init__(
        self,
        gatherer: ContextGatherer,
        transport: ConversationTransport,
        processor: AudioProcessor,
        playback_factory: PlaybackFactory,
        input_factory: Callable[[], AudioInput],
        preferences: PreferenceStore,
        settings: Settings | None = None,
        initial_stage: Stage | None = None,
        on_stage_change: Callable[[Stage, Stage], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        recognizer: Recognizer | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_id = str(uuid4())

        self.gatherer = gatherer
        self.transport = transport
        self.context = UserContext()

        self.log = MessageLog()
        self.transport.on_turn_mutated(self.log.handle_turn_mutated)
        self.transport.on_stage_signal(self._on_stage_signal)

        stage = initial_stage or Stage.parse(self.settings.initial_stage) or Stage.MOOD
        self.controller = StageController(
            context=self.context,
            initial_stage=stage,
            on_stage_change=on_stage_change,
            on_complete=on_complete,
        )

        self.player = SpeechPlayer(processor, playback_factory, preferences)
        self.recorder = VoiceRecorder(processor, input_factory, on_transcript=self.append_to_input)
        self.dictation = ContinuousDictation(recognizer) if recognizer is not None else None

        self.pending_input = ""
        self.started = False
        self.ready = False  # Context loaded; input may be accepted
        self.closed = False

        self._in_flight = False
        self._tasks: set[asyncio.Task] = set()
        self._dictation_task: asyncio.Task | None = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def stage(self) -> Stage:
        return self.controller.stage

    @property
    def loading(self) -> bool:
        return self.started and not self.ready and not self.closed

    @property
    def busy(self) -> bool:
        """Whether input is currently locked."""
        return self.closed or not self.ready or self._in_flight or self.transport.busy

    @property
    def turns(self) -> list[Turn]:
        return self.log.turns

    def snapshot(self) -> dict[str, Any]:
        """Current session state for a renderer."""
        stage = self.stage
        return {
            "session_id": self.session_id,
            "stage": stage.value,
            "stage_label": stage.label,
            "stage_icon": stage.icon,
            "progress": stage.progress,
            "exchange_count": self.controller.exchange_count,
            "interview_complete": self.controller.interview_complete,
            "loading": self.loading,
            "busy": self.busy,
            "streaming": self.log.streaming,
            "turns": [turn.model_dump(mode="json") for turn in self.turns],
            "pending_input": self.pending_input,
            "muted": self.player.muted,
            "playing": self.player.is_playing,
            "recording_state": self.recorder.state.value,
            "transcribing": self.recorder.transcribing,
            "voice_error": self.recorder.last_error,
            "dictating": self.dictating,
        }

    def _check_input_open(self) -> None:
        if self.closed:
            raise InputLockedError("Session is closed")
        if not self.ready:
            raise InputLockedError("Session is still loading")
        if self._in_flight or self.transport.busy:
            raise InputLockedError("A reply is still streaming")

    # =========================================================================
    # INTERVIEW FLOW
    # =========================================================================

    async def start(self) -> TurnOutcome:
        """
        Load the user context and run the opening turn.

        Returns:
            Outcome of the opening turn
        """
        if self.started:
            raise InputLockedError("Session already started")
        self.started = True

        logger.info(f"Starting check-in session {self.session_id}")
        self.context = await self.gatherer.gather()
        self.controller.context = self.context
        if self.context.is_empty:
            logger.info("No user context available, running non-personalized stages")

        self.ready = True
        self._in_flight = True
        return await self._run_turn(self.settings.start_sentinel, user_turn=None)

    def _accept(self, text: str | None) -> tuple[Turn, str] | None:
        self._check_input_open()

        content = (text if text is not None else self.pending_input).strip()
        if not content:
            return None

        self._in_flight = True
        user_turn = self.log.append_user(content)
        self.pending_input = ""
        return user_turn, content

    async def submit(self, text: str | None = None) -> TurnOutcome | None:
        """
        Submit a user reply and stream the assistant's answer.

        Args:
            text: Reply text; defaults to the pending input

        Returns:
            Outcome of the turn, or None for empty input

        Raises:
            InputLockedError: Session is loading, closed or busy
        """
        accepted = self._accept(text)
        if accepted is None:
            return None
        user_turn, content = accepted
        return await self._complete_exchange(user_turn, content)

    def submit_nowait(self, text: str | None = None) -> asyncio.Task | None:
        """
        Accept a user reply now and stream the answer in the background.

        The user turn is appended and input is locked before returning, so
        a second call is rejected immediately.
        """
        accepted = self._accept(text)
        if accepted is None:
            return None
        user_turn, content = accepted
        return self._spawn(self._complete_exchange(user_turn, content))

    def start_nowait(self) -> asyncio.Task:
        if self.started:
            raise InputLockedError("Session already started")
        return self._spawn(self.start())

    async def _complete_exchange(self, user_turn: Turn, content: str) -> TurnOutcome:
        outcome = await self._run_turn(content, user_turn=user_turn)
        if outcome.completed:
            self.controller.record_exchange(stage_signaled=outcome.stage_signaled is not None)
        return outcome

    async def _run_turn(self, message: str, user_turn: Turn | None) -> TurnOutcome:
        try:
            placeholder = self.log.append_placeholder()
            history = self.log.history(
                self.settings.history_limit,
                before=user_turn or placeholder,
            )
            payload = self.transport.build_payload(
                message=message,
                stage=self.controller.stage,
                exchange_count=self.controller.exchange_count,
                history=history,
                context=self.context,
                next_stage=self.controller.next_stage_hint(),
            )

            self.log.set_streaming(True)
            try:
                outcome = await self.transport.send(placeholder, payload)
            finally:
                self.log.set_streaming(False)
        finally:
            self._in_flight = False

        if outcome.completed and outcome.text and not self.closed:
            self.player.speak_in_background(outcome.text)
        return outcome

    def _on_stage_signal(self, stage: Stage) -> None:
        self.controller.apply_signal(stage)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Session {self.session_id} task failed: {task.exception()}")

    # =========================================================================
    # INPUT
    # =========================================================================

    def set_input(self, text: str) -> None:
        """Replace the pending (typed) input."""
        self.pending_input = text

    def append_to_input(self, text: str) -> None:
        """Add transcribed text after whatever is already typed."""
        text = text.strip()
        if not text:
            return
        self.pending_input = f"{self.pending_input} {text}" if self.pending_input else text

    # =========================================================================
    # VOICE
    # =========================================================================

    def start_recording(self, mime_type: str = "audio/webm") -> bool:
        return self.recorder.start(mime_type=mime_type)

    def pause_recording(self) -> None:
        self.recorder.pause()

    def resume_recording(self) -> bool:
        return self.recorder.resume()

    async def stop_recording(self) -> str | None:
        return await self.recorder.stop()

    @property
    def dictating(self) -> bool:
        return self._dictation_task is not None and not self._dictation_task.done()

    def start_dictation(self) -> bool:
        """
        Start continuous dictation into the pending input.

        Each newly recognized segment is appended as it arrives.

        Returns:
            False if the session has no recognizer
        """
        if self.dictation is None:
            return False
        if self.dictating:
            raise InvalidRecordingTransition("Dictation is already running")

        self.dictation.start()
        dictated = ""

        def on_update(transcript: str) -> None:
            nonlocal dictated
            self.append_to_input(transcript[len(dictated):])
            dictated = transcript

        self.dictation.on_update = on_update
        self._dictation_task = self._spawn(self.dictation.run())
        logger.info("Dictation started")
        return True

    async def stop_dictation(self) -> str | None:
        """
        Stop dictation and wait for the last recognizer session to end.

        Returns:
            The text dictated since start, or None if dictation was not running
        """
        task = self._dictation_task
        if self.dictation is None or task is None:
            return None
        self.dictation.stop()
        self._dictation_task = None
        transcript = await task
        logger.info("Dictation stopped")
        return transcript

    def toggle_mute(self) -> bool:
        return self.player.toggle_mute()

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def close(self) -> None:
        """Release the microphone and playback and cancel background work."""
        if self.closed:
            return
        self.closed = True
        self.recorder.close()
        if self.dictating:
            self.dictation.stop()
        self.player.close()
        for task in list(self._tasks):
            task.cancel()
        self.log.close()
        logger.info(f"Closed check-in session {self.session_id}")
