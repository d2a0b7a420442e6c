"""
Continuous dictation over a recognizer that ends its sessions by itself.

Streaming recognizers stop after silence or a service-side limit. Instead
of restarting from their end callbacks, a single loop restarts them while
`keep_listening` is set.
"""

import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Recognizer(Protocol):
    async def listen(self) -> list[str]:
        """Run one recognition session until it ends; return its final segments."""
        ...

    def abort(self) -> None:
        """End the current session early."""
        ...


class ContinuousDictation:
    """
    Supervised restart loop for a continuous recognizer.

    Final segments from every session are merged into one transcript,
    separated by single spaces. The loop ends when `stop()` is called or
    after `max_idle_restarts` consecutive sessions that heard nothing.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        on_update: Callable[[str], None] | None = None,
        max_idle_restarts: int = 3,
    ):
        self.recognizer = recognizer
        self.on_update = on_update
        self.max_idle_restarts = max_idle_restarts

        self.keep_listening = False
        self.transcript = ""

    def start(self) -> None:
        """Arm the loop and clear the transcript. Call before scheduling run()."""
        self.transcript = ""
        self.keep_listening = True

    async def run(self) -> str:
        """
        Listen until stopped; return the merged transcript.

        The recognizer session in progress when stop() is called still has
        its final segments merged.
        """
        idle_sessions = 0
        restarts = 0

        try:
            while True:
                segments = await self.recognizer.listen()

                if self._merge(segments):
                    idle_sessions = 0
                else:
                    idle_sessions += 1
                    if idle_sessions >= self.max_idle_restarts:
                        logger.info(f"No speech in {idle_sessions} sessions, stopping dictation")
                        break

                if not self.keep_listening:
                    break
                restarts += 1
                logger.debug(f"Recognizer session ended, restart #{restarts}")
        finally:
            self.keep_listening = False

        return self.transcript

    def stop(self) -> None:
        self.keep_listening = False
        self.recognizer.abort()

    def _merge(self, segments: list[str]) -> bool:
        added = False
        for segment in segments:
            segment = segment.strip()
            if not segment:
                continue
            current = self.transcript.strip()
            self.transcript = f"{current} {segment}" if current else segment
            added = True

        if added and self.on_update:
            self.on_update(self.transcript)
        return added
