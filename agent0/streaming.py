"""
Server-Sent Events transport for run events.

Every event becomes exactly one frame::

    data: {"type":"text-delta","id":"...","text":"Hi"}\\r\\n\\r\\n

Frames go out in emission order, one per event, without batching.
"""

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, Optional

from pydantic import ValidationError

from agent0.errors import GenerationError, MalformedStream, error_to_dict
from agent0.models.events import ErrorEvent, StreamEvent, parse_event

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data: "
FRAME_SEPARATOR = "\r\n\r\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_frame(event: StreamEvent) -> bytes:
    """Encode one event as an SSE ``data:`` frame."""
    payload = json.dumps(event.to_wire(), separators=(",", ":"))
    return f"{FRAME_PREFIX}{payload}{FRAME_SEPARATOR}".encode("utf-8")


async def sse_stream(events: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
    """
    Forward events as SSE frames.

    A failure inside the upstream iterator ends the stream with one ``error``
    frame. The upstream iterator is always closed, so a caller that stops
    reading (client disconnect) cancels generation upstream too.
    """
    try:
        async for event in events:
            yield encode_frame(event)
    except Exception as e:
        logger.exception("Event stream failed")
        error = e if isinstance(e, GenerationError) else GenerationError(str(e) or type(e).__name__)
        yield encode_frame(ErrorEvent(error=error_to_dict(error)))
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


class FrameDecoder:
    """
    Incremental SSE parser.

    Feed it raw bytes as they arrive; it returns the events of every frame
    completed so far. Blank-line separators may be ``\\r\\n\\r\\n`` or
    ``\\n\\n``. Comment lines and fields other than ``data`` are skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")()

    def _parse_frame(self, frame: str) -> Optional[StreamEvent]:
        data_lines = []
        for line in frame.split("\n"):
            line = line.rstrip("\r")
            if line.startswith("data:"):
                data_lines.append(line[5:].lstrip(" "))
        if not data_lines:
            return None
        data = "\n".join(data_lines)
        try:
            return parse_event(data)
        except ValidationError as e:
            raise MalformedStream(f"Undecodable event frame: {data[:200]}", cause=str(e)) from e

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        # multi-byte characters may be split across chunks
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        # normalize the whole buffer: a CRLF pair may be split across chunks
        self._buffer = (self._buffer + text).replace("\r\n", "\n")

        events = []
        while "\n\n" in self._buffer:
            frame, self._buffer = self._buffer.split("\n\n", 1)
            event = self._parse_frame(frame)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[StreamEvent]:
        """Parse whatever is left once the byte stream has ended."""
        frame, self._buffer = self._buffer, ""
        if not frame.strip():
            return []
        event = self._parse_frame(frame)
        return [event] if event is not None else []


async def decode_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    """Turn an SSE byte stream back into events."""
    decoder = FrameDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
