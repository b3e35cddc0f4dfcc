# utrace/prober/subprocess_runner.py
import asyncio
import logging
from typing import AsyncIterator, Optional, Sequence

from utrace.errors import ProcessStartError
from utrace.prober.base import ChunkReceived, ProcessEvent, ProcessExited, ProcessHandle, ProcessRunner

_LOG = logging.getLogger(__name__)

CHUNK_SIZE = 4096

_EOF = object()


def build_traceroute_cmd(target: str, traceroute_bin: str) -> tuple[str, list[str]]:
    # -n: numeric output only, no reverse lookups per hop
    return traceroute_bin, ["-n", target]


class SubprocessHandle(ProcessHandle):
    """asyncio subprocess with both pipes pumped into one event queue."""

    def __init__(self, proc: asyncio.subprocess.Process, chunk_size: int = CHUNK_SIZE):
        self._proc = proc
        self._chunk_size = chunk_size
        self._terminate_requested = False
        self._exit_code: Optional[int] = None

    @property
    def exited(self) -> bool:
        return self._exit_code is not None or self._proc.returncode is not None

    async def _pump(self, channel: str, stream: asyncio.StreamReader, queue: asyncio.Queue) -> None:
        try:
            while True:
                chunk = await stream.read(self._chunk_size)
                if not chunk:
                    break
                await queue.put(ChunkReceived(channel, chunk))
        finally:
            await queue.put(_EOF)

    async def events(self) -> AsyncIterator[ProcessEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        pumps = [
            asyncio.create_task(self._pump("stdout", self._proc.stdout, queue)),
            asyncio.create_task(self._pump("stderr", self._proc.stderr, queue)),
        ]
        try:
            open_streams = len(pumps)
            while open_streams:
                item = await queue.get()
                if item is _EOF:
                    open_streams -= 1
                    continue
                yield item
            code = await self._proc.wait()
            self._exit_code = code
            yield ProcessExited(code)
        finally:
            for task in pumps:
                task.cancel()

    def terminate(self) -> None:
        if self._terminate_requested or self.exited:
            return
        self._terminate_requested = True
        try:
            self._proc.terminate()
            _LOG.debug("Sent SIGTERM to pid %d", self._proc.pid)
        except ProcessLookupError:
            pass  # already reaped


class SubprocessRunner(ProcessRunner):
    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def start(self, command: str, args: Sequence[str]) -> SubprocessHandle:
        try:
            proc = await asyncio.create_subprocess_exec(
                command, *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessStartError(str(e) or f"cannot execute {command}") from e
        _LOG.debug("Spawned %s %s (pid %d)", command, " ".join(args), proc.pid)
        return SubprocessHandle(proc, chunk_size=self.chunk_size)
