# utrace/stream/streamer.py
import json
import logging
from typing import Optional, Protocol

from utrace.errors import SinkWriteError
from utrace.schemas import StreamEvent

_LOG = logging.getLogger(__name__)


class Sink(Protocol):
    """Byte sink provided by the HTTP layer (aiohttp StreamResponse fits)."""

    async def write(self, data: bytes) -> None: ...

    async def write_eof(self, data: bytes = b"") -> None: ...


def format_frame(event: StreamEvent) -> bytes:
    data = json.dumps(event.payload(), ensure_ascii=False)
    return f"event: {event.name}\ndata: {data}\n\n".encode("utf-8")


class EventStreamer:
    """
    Writes StreamEvents as SSE frames. write() never raises on a dead peer;
    it returns False and the caller decides what to tear down.
    """

    # what a closing aiohttp transport raises on write
    WRITE_ERRORS = (ConnectionError, RuntimeError, OSError)

    def __init__(self, sink: Sink):
        self.sink = sink
        self.closed = False
        self.last_error: Optional[BaseException] = None

    async def write(self, event: StreamEvent) -> bool:
        if self.closed:
            _LOG.debug("Dropping %s frame, stream already closed", event.name)
            return False
        try:
            await self.sink.write(format_frame(event))
        except self.WRITE_ERRORS as e:
            self.last_error = SinkWriteError(f"{event.name} frame: {e}")
            self.last_error.__cause__ = e
            self.closed = True
            _LOG.debug("Frame write failed (%s): %s", event.name, e)
            return False
        return True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.sink.write_eof()
        except self.WRITE_ERRORS as e:
            _LOG.debug("write_eof on dead stream: %s", e)
