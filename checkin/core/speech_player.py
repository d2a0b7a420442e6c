"""
Speech Player - spoken playback of assistant replies.

Playback is best-effort: every failure is logged and swallowed, since the
text in the message log is authoritative. Only one playback handle exists
at a time and every handle is released when it ends, is replaced, is muted
or the session is torn down.
"""

import asyncio
import logging
from typing import Callable, Protocol

from checkin.core.audio_processor import AudioProcessor
from checkin.core.preferences import PreferenceStore

logger = logging.getLogger(__name__)

MUTE_PREFERENCE_KEY = "interview_chat_muted"


class PlaybackHandle(Protocol):
    """One playing clip, owned by the SpeechPlayer."""

    async def start(self) -> None:
        """Begin playback. May raise if playback is refused."""
        ...

    def stop(self) -> None:
        """Stop playback immediately."""
        ...

    def release(self) -> None:
        """Free the clip's resources. Called exactly once per handle."""
        ...


# Builds a handle for a clip; the callback fires when playback ends by itself
PlaybackFactory = Callable[[bytes, Callable[[], None]], PlaybackHandle]


class SpeechPlayer:
    """
    Plays synthesized speech for assistant turns.

    The mute preference is read once at construction and written back on
    every toggle.
    """

    def __init__(
        self,
        processor: AudioProcessor,
        playback_factory: PlaybackFactory,
        preferences: PreferenceStore,
    ):
        self.processor = processor
        self.playback_factory = playback_factory
        self.preferences = preferences

        self.muted = bool(preferences.get(MUTE_PREFERENCE_KEY, False))

        self._current: PlaybackHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    def toggle_mute(self) -> bool:
        """
        Flip the mute preference.

        Muting stops and releases any playing clip before returning.

        Returns:
            The new mute state
        """
        self.muted = not self.muted
        self.preferences.set(MUTE_PREFERENCE_KEY, self.muted)
        if self.muted:
            self.stop()
        logger.info(f"Voice playback {'muted' if self.muted else 'unmuted'}")
        return self.muted

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def speak_in_background(self, text: str) -> asyncio.Task | None:
        """Start speaking without waiting; the outcome is never reported."""
        if self.muted or self._closed or not text.strip():
            return None
        task = asyncio.create_task(self.speak(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def speak(self, text: str) -> None:
        """Synthesize and play `text`. Never raises."""
        if self.muted or self._closed or not text.strip():
            return

        handle: PlaybackHandle | None = None

        def finished() -> None:
            if handle is not None and self._current is handle:
                self._release_current()

        try:
            audio = await self.processor.text_to_speech(text)
            if audio is None:
                return

            # Mute may have been toggled while synthesizing
            if self.muted or self._closed:
                return

            self.stop()
            handle = self.playback_factory(audio, finished)
            self._current = handle
            await handle.start()

        except Exception as e:
            logger.warning(f"Playback failed: {e}")
            if handle is not None and self._current is handle:
                self.stop()

    def stop(self) -> None:
        """Stop and release the current clip, if any."""
        handle = self._current
        if handle is None:
            return
        try:
            handle.stop()
        except Exception as e:
            logger.debug(f"Error stopping playback: {e}")
        self._release_current()

    def _release_current(self) -> None:
        handle, self._current = self._current, None
        if handle is None:
            return
        try:
            handle.release()
        except Exception as e:
            logger.debug(f"Error releasing playback: {e}")

    def close(self) -> None:
        """Teardown: stop playback and cancel pending synthesis."""
        self._closed = True
        self.stop()
        for task in list(self._tasks):
            task.cancel()
