# utrace/stream/controller.py

import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from utrace.errors import ProcessRuntimeError, ProcessStartError, ValidationError
from utrace.netutil import TargetAddress, validate_target
from utrace.parse.traceroute import parse_traceroute_line
from utrace.prober.base import ChunkReceived, ProcessExited, ProcessRunner
from utrace.prober.subprocess_runner import build_traceroute_cmd
from utrace.schemas import EndEvent, ErrorEvent, StreamEvent, event_for
from utrace.stream.state import ClientDisconnected, Session, SessionInput, SessionState, SinkWriteFailed
from utrace.stream.streamer import EventStreamer

_LOG = logging.getLogger(__name__)


class SessionController:
    """
    Drives one traceroute stream: Validating -> Running -> Draining -> Closed.

    Every input goes through handle(); whichever of process exit, client
    disconnect, sink failure or start failure fires first performs the
    single transition to Closed, later ones are no-ops.
    """

    def __init__(self, runner: ProcessRunner, streamer: EventStreamer,
                 traceroute_bin: str,
                 max_duration: Optional[float] = None,
                 request_ip: Optional[str] = None):
        self.runner = runner
        self.streamer = streamer
        self.traceroute_bin = traceroute_bin
        self.max_duration = max_duration
        self.request_ip = request_ip
        self.session = Session()
        self._deadline: Optional[asyncio.TimerHandle] = None
        self._timed_out = False

    # -------------------------------
    # Validating
    # -------------------------------
    def validate(self, raw_target) -> TargetAddress:
        """Raises ValidationError; nothing has been opened at that point."""
        s = self.session
        s.state = SessionState.VALIDATING
        try:
            s.target = validate_target(raw_target)
        except ValidationError as e:
            _LOG.warning("Traceroute target rejected: %r from %s (%s)", raw_target, self.request_ip, e.message)
            s.state = SessionState.CLOSED
            s.closed = True
            s.close_reason = "rejected"
            raise
        return s.target

    # -------------------------------
    # Running
    # -------------------------------
    async def run(self) -> Session:
        """
        Spawn the probe and pump its events until the session closes.
        The response channel must already be open.
        """
        s = self.session
        if s.target is None:
            raise RuntimeError("validate() must succeed before run()")
        s.state = SessionState.RUNNING

        command, args = build_traceroute_cmd(str(s.target), self.traceroute_bin)
        try:
            s.process = await self.runner.start(command, args)
        except ProcessStartError as e:
            _LOG.error("Failed to start traceroute for %s: %s", s.target, e)
            await self._emit(ErrorEvent(f"Failed to start traceroute: {e}"))
            self._mark_closed("start_failed")
            await self.streamer.close()
            return s
        _LOG.info("Spawned %s %s for %s", command, " ".join(args), self.request_ip)

        if self.max_duration:
            loop = asyncio.get_running_loop()
            self._deadline = loop.call_later(self.max_duration, self._on_deadline)

        try:
            async with aclosing(s.process.events()) as events:
                async for ev in events:
                    await self.handle(ev)
                    if s.closed:
                        break
        except asyncio.CancelledError:
            # aiohttp cancels the handler when the peer goes away
            self._on_disconnect()
            raise
        finally:
            if self._deadline is not None:
                self._deadline.cancel()

        self._mark_closed("exit")
        await self.streamer.close()
        self._log_summary()
        return s

    async def handle(self, ev: SessionInput) -> None:
        s = self.session
        if s.closed:
            return

        if isinstance(ev, ClientDisconnected):
            self._on_disconnect()
        elif isinstance(ev, SinkWriteFailed):
            if self._mark_closed("sink_failed"):
                _LOG.debug("Sink write failed for %s: %s", s.target, ev.reason)
        elif isinstance(ev, ChunkReceived):
            if ev.channel == "stdout":
                await self._on_stdout(ev.data)
            else:
                await self._on_stderr(ev.data)
        elif isinstance(ev, ProcessExited):
            await self._drain(ev.code)
        else:
            raise TypeError(f"unexpected session input: {ev!r}")

    async def _on_stdout(self, data: bytes) -> None:
        for line in self.session.lines.feed(data):
            if not await self._emit_line(line):
                return

    async def _on_stderr(self, data: bytes) -> None:
        msg = data.decode("utf-8", errors="replace").strip()
        if not msg:
            return
        _LOG.warning("Traceroute stderr for %s: %s", self.session.target, msg)
        await self._emit(ErrorEvent(msg))

    async def _emit_line(self, line: str) -> bool:
        record = parse_traceroute_line(line)
        if record is None:
            return True
        return await self._emit(event_for(record))

    # -------------------------------
    # Draining
    # -------------------------------
    async def _drain(self, code: int) -> None:
        s = self.session
        s.state = SessionState.DRAINING
        s.exit_code = code

        tail = s.lines.flush()
        if tail is not None and not await self._emit_line(tail):
            return

        if self._timed_out:
            if not await self._emit(ErrorEvent(f"Traceroute exceeded maximum duration of {self.max_duration:g}s")):
                return
        elif code != 0:
            _LOG.error("Traceroute for %s finished with exit code %d", s.target, code)
            if not await self._emit(ErrorEvent(str(ProcessRuntimeError(code)))):
                return
        else:
            _LOG.info("Traceroute stream for %s completed successfully", s.target)

        if await self._emit(EndEvent(code)):
            self._mark_closed("timeout" if self._timed_out else "exit")

    # -------------------------------
    # Closed
    # -------------------------------
    async def _emit(self, event: StreamEvent) -> bool:
        s = self.session
        if s.closed:
            return False
        ok = await self.streamer.write(event)
        if not ok:
            _LOG.info("Client stream for %s is gone, stopping probe", s.target)
            await self.handle(SinkWriteFailed(str(self.streamer.last_error or "")))
            return False
        s.frames_written += 1
        if isinstance(event, ErrorEvent):
            s.errors += 1
        elif event.name == "hop":
            s.hops += 1
        elif event.name == "info":
            s.infos += 1
        return True

    def _on_disconnect(self) -> None:
        if self._mark_closed("disconnect"):
            _LOG.info("Client %s disconnected from traceroute stream for %s", self.request_ip, self.session.target)
            # nothing more may be written to this peer
            self.streamer.closed = True

    def _on_deadline(self) -> None:
        s = self.session
        if s.closed or s.process is None or s.process.exited:
            return
        _LOG.warning("Traceroute for %s exceeded %ss, terminating", s.target, self.max_duration)
        self._timed_out = True
        s.process.terminate()

    def _mark_closed(self, reason: str) -> bool:
        """Check-and-set of the closed flag. Returns False if already closed."""
        s = self.session
        if s.closed:
            return False
        s.closed = True
        s.state = SessionState.CLOSED
        s.close_reason = reason
        if s.process is not None and not s.process.exited:
            s.process.terminate()
        return True

    def _log_summary(self) -> None:
        s = self.session
        _LOG.info(
            "Traceroute session for %s closed: reason=%s exit=%s hops=%d infos=%d errors=%d",
            s.target, s.close_reason, s.exit_code, s.hops, s.infos, s.errors,
        )
