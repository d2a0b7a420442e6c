"""
Voice Recorder - captures a spoken reply and turns it into input text.

Drives the recording state machine (idle → recording ⇄ paused → stopped),
owns the microphone stream while recording, and transcribes the capture
once it is stopped. Transcription failures leave the typed input untouched.
"""

import logging
from typing import Callable, Protocol

from checkin.core.audio_processor import AudioProcessor, TranscriptionError
from checkin.models.recording import (
    InvalidRecordingTransition,
    RecordingSession,
    RecordingState,
)

logger = logging.getLogger(__name__)

MICROPHONE_UNAVAILABLE_MESSAGE = "Could not access microphone"


class AudioInput(Protocol):
    """A microphone stream delivering captured chunks."""

    def open(self, on_data: Callable[[bytes], None]) -> None:
        """Start delivering chunks to `on_data`. May raise if access is denied."""
        ...

    def close(self) -> None:
        """Stop delivering chunks and release the device."""
        ...


class VoiceRecorder:
    """
    Voice input adapter.

    The microphone stream is opened on start and resume, and released on
    pause, stop and teardown.
    """

    def __init__(
        self,
        processor: AudioProcessor,
        input_factory: Callable[[], AudioInput],
        on_transcript: Callable[[str], None],
    ):
        """
        Args:
            processor: Transcription client
            input_factory: Creates a microphone stream
            on_transcript: Receives transcribed text
        """
        self.processor = processor
        self.input_factory = input_factory
        self.on_transcript = on_transcript

        self.session: RecordingSession | None = None
        self.transcribing = False
        self.last_error: str | None = None

        self._input: AudioInput | None = None

    @property
    def state(self) -> RecordingState:
        if self.session is None:
            return RecordingState.IDLE
        return self.session.state

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def start(self, mime_type: str = "audio/webm") -> bool:
        """
        Start a new recording.

        Returns:
            False if the microphone could not be opened
        """
        if self.session is not None and self.session.is_active:
            raise InvalidRecordingTransition("A recording is already in progress")
        if self.transcribing:
            raise InvalidRecordingTransition("Previous recording is still being transcribed")

        self.last_error = None
        session = RecordingSession(mime_type=mime_type)
        session.transition(RecordingState.RECORDING)
        self.session = session

        if not self._open_input():
            self.session = None
            return False

        logger.info("Recording started")
        return True

    def pause(self) -> None:
        self._require_session().transition(RecordingState.PAUSED)
        self._release_input()
        logger.info("Recording paused")

    def resume(self) -> bool:
        """
        Resume a paused recording.

        Returns:
            False if the microphone could not be reopened (recording stays paused)
        """
        session = self._require_session()
        if session.state != RecordingState.PAUSED:
            raise InvalidRecordingTransition(
                f"Cannot resume a recording that is {session.state.value}"
            )
        if not self._open_input():
            return False
        session.transition(RecordingState.RECORDING)
        logger.info("Recording resumed")
        return True

    async def stop(self) -> str | None:
        """
        Stop recording and transcribe the capture.

        Returns:
            The transcribed text, or None if nothing was transcribed
        """
        session = self._require_session()
        session.transition(RecordingState.STOPPED)
        self._release_input()

        audio = session.package()
        if not audio:
            logger.info("Recording stopped with no audio captured")
            return None

        self.transcribing = True
        try:
            text = await self.processor.speech_to_text(audio, mime_type=session.mime_type)
        except TranscriptionError as e:
            self.last_error = e.user_message
            logger.warning(f"Transcription failed: {e}")
            return None
        finally:
            self.transcribing = False

        self.on_transcript(text)
        return text

    def close(self) -> None:
        """Teardown: release the microphone and abandon any capture."""
        self._release_input()
        if self.session is not None and self.session.is_active:
            self.session.transition(RecordingState.STOPPED)

    # =========================================================================
    # MICROPHONE
    # =========================================================================

    def _on_data(self, chunk: bytes) -> None:
        if self.session is None or self.session.state != RecordingState.RECORDING:
            return
        if chunk:
            self.session.chunks.append(chunk)

    def _open_input(self) -> bool:
        stream = self.input_factory()
        try:
            stream.open(self._on_data)
        except Exception as e:
            logger.warning(f"Microphone unavailable: {e}")
            self.last_error = MICROPHONE_UNAVAILABLE_MESSAGE
            return False
        self._input = stream
        return True

    def _release_input(self) -> None:
        stream, self._input = self._input, None
        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            logger.debug(f"Error closing microphone: {e}")

    def _require_session(self) -> RecordingSession:
        if self.session is None:
            raise InvalidRecordingTransition("No recording in progress")
        return self.session
