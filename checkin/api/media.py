"""
Media adapters for sessions hosted behind the HTTP API.

The browser captures and plays audio; the host sees uploaded chunks as the
microphone stream and exposes the current synthesized clip for the browser
to fetch.
"""

import asyncio
import logging
from typing import Callable
from uuid import uuid4

logger = logging.getLogger(__name__)


class UploadedMicrophone:
    """Microphone stream fed by chunk uploads from the browser."""

    def __init__(self):
        self._on_data: Callable[[bytes], None] | None = None

    @property
    def is_open(self) -> bool:
        return self._on_data is not None

    def open(self, on_data: Callable[[bytes], None]) -> None:
        self._on_data = on_data

    def close(self) -> None:
        self._on_data = None

    def push(self, chunk: bytes) -> bool:
        """Deliver an uploaded chunk. Returns False if the stream is closed."""
        if self._on_data is None:
            logger.debug(f"Dropping {len(chunk)}-byte chunk, microphone is closed")
            return False
        self._on_data(chunk)
        return True


class RelayedRecognizer:
    """
    Recognizer whose sessions run in the browser.

    The browser reports the final segments of each recognition session as it
    ends; `listen` waits for the next report.
    """

    def __init__(self):
        self._sessions: asyncio.Queue[list[str]] = asyncio.Queue()

    async def listen(self) -> list[str]:
        return await self._sessions.get()

    def abort(self) -> None:
        self._sessions.put_nowait([])

    def session_ended(self, segments: list[str]) -> None:
        self._sessions.put_nowait(list(segments))

    def clear(self) -> None:
        """Drop reports nobody listened to."""
        while not self._sessions.empty():
            self._sessions.get_nowait()


class ClipSlot:
    """Holds the clip the browser should be playing right now (at most one)."""

    def __init__(self):
        self.current: "ServedClip | None" = None

    def publish(self, clip: "ServedClip") -> None:
        self.current = clip

    def withdraw(self, clip: "ServedClip") -> None:
        if self.current is clip:
            self.current = None

    def finished(self, clip_id: str) -> bool:
        """Browser reported the clip ended. Returns False for a stale id."""
        clip = self.current
        if clip is None or clip.clip_id != clip_id:
            return False
        clip.finish()
        return True


class ServedClip:
    """Playback handle that serves a clip through a ClipSlot."""

    def __init__(
        self,
        slot: ClipSlot,
        audio: bytes,
        on_finished: Callable[[], None],
        media_type: str = "audio/wav",
    ):
        self.slot = slot
        self.audio = audio
        self.media_type = media_type
        self.clip_id = uuid4().hex
        self._on_finished = on_finished

    async def start(self) -> None:
        self.slot.publish(self)

    def stop(self) -> None:
        self.slot.withdraw(self)

    def release(self) -> None:
        self.slot.withdraw(self)
        self.audio = b""

    def finish(self) -> None:
        self._on_finished()


def clip_factory(slot: ClipSlot) -> Callable[[bytes, Callable[[], None]], ServedClip]:
    """Playback factory bound to one session's clip slot."""

    def build(audio: bytes, on_finished: Callable[[], None]) -> ServedClip:
        return ServedClip(slot, audio, on_finished)

    return build
