"""
Frame decoder for the responder's streamed reply.

The responder sends newline-delimited frames:

    data: {"text": "Hi"}
    data: {"stage": "goals"}
    data: {"error": "..."}
    data: [DONE]

Chunks from the network may split a frame anywhere, so the decoder keeps
the incomplete tail of each chunk and joins it with the next one.
"""

import json
import logging

from checkin.models.conversation import (
    Discard,
    StageSignal,
    StreamDone,
    StreamError,
    StreamEvent,
    TextDelta,
)
from checkin.models.stage import Stage

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data: "
DONE_MARKER = "[DONE]"


def decode_frame(line: str) -> StreamEvent:
    """
    Decode one complete protocol line into a stream event.

    Never raises: anything unrecognized becomes Discard.
    """
    line = line.rstrip("\r")
    if not line.startswith(FRAME_PREFIX):
        return Discard(raw=line)

    payload = line[len(FRAME_PREFIX):]
    if payload == DONE_MARKER:
        return StreamDone()

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Discarding malformed frame: {payload[:80]!r}")
        return Discard(raw=line)

    if not isinstance(data, dict):
        return Discard(raw=line)

    text = data.get("text")
    if isinstance(text, str) and text:
        return TextDelta(delta=text)

    if "stage" in data:
        stage = Stage.parse(data["stage"])
        if stage is None:
            logger.warning(f"Ignoring unknown stage signal: {data['stage']!r}")
            return Discard(raw=line)
        return StageSignal(stage=stage)

    if data.get("error"):
        return StreamError(message=str(data["error"]))

    return Discard(raw=line)


class FrameDecoder:
    """Incremental decoder that buffers across chunk boundaries."""

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list[StreamEvent]:
        """
        Add a decoded text chunk and return events for every complete line.

        Args:
            chunk: Text as received; may end mid-line

        Returns:
            Events in arrival order (blank separator lines are dropped)
        """
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events: list[StreamEvent] = []
        for line in lines:
            if not line.strip():
                continue
            events.append(decode_frame(line))
        return events

    def reset(self) -> str:
        """Drop and return any incomplete tail (used at end of stream)."""
        tail, self._buffer = self._buffer, ""
        return tail
