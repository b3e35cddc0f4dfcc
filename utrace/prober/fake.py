# utrace/prober/fake.py
import asyncio
from collections import deque
from typing import AsyncIterator, Iterable, Optional, Sequence

from utrace.errors import ProcessStartError
from utrace.prober.base import ChunkReceived, ProcessEvent, ProcessExited, ProcessHandle, ProcessRunner


class FakeHandle(ProcessHandle):
    """
    script: iterable of ChunkReceived/ProcessExited events handed out in order.
    If the script runs out without an exit, events() waits until terminate()
    is called and then reports exit code -15, like a SIGTERM'd process.
    """

    def __init__(self, script: Iterable[ProcessEvent] = (), delay: float = 0.0):
        self.script = deque(script)
        self.delay = delay
        self.terminate_calls = 0
        self._exit_code: Optional[int] = None
        self._killed = asyncio.Event()

    @property
    def exited(self) -> bool:
        return self._exit_code is not None

    async def events(self) -> AsyncIterator[ProcessEvent]:
        while self.script:
            if self._killed.is_set():
                break
            ev = self.script.popleft()
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            if isinstance(ev, ProcessExited):
                self._exit_code = ev.code
                yield ev
                return
            yield ev
        await self._killed.wait()
        self._exit_code = -15
        yield ProcessExited(-15)

    def terminate(self) -> None:
        self.terminate_calls += 1
        self._killed.set()


class FakeRunner(ProcessRunner):
    """
    Hands out FakeHandles. With fail_start set, start() raises
    ProcessStartError as if the binary were missing.
    """

    def __init__(self, script: Iterable[ProcessEvent] = (), fail_start: Optional[str] = None,
                 delay: float = 0.0):
        self.script = list(script)
        self.fail_start = fail_start
        self.delay = delay
        self.started: list[tuple[str, list[str]]] = []
        self.handles: list[FakeHandle] = []

    async def start(self, command: str, args: Sequence[str]) -> FakeHandle:
        if self.fail_start:
            raise ProcessStartError(self.fail_start)
        self.started.append((command, list(args)))
        handle = FakeHandle(self.script, delay=self.delay)
        self.handles.append(handle)
        return handle


def script_from_output(stdout: bytes, exit_code: int = 0, chunk_size: Optional[int] = None,
                       stderr: bytes = b"") -> list[ProcessEvent]:
    """Build a script that replays stdout (optionally split into chunks) then exits."""
    script: list[ProcessEvent] = []
    if chunk_size:
        for i in range(0, len(stdout), chunk_size):
            script.append(ChunkReceived("stdout", stdout[i:i + chunk_size]))
    elif stdout:
        script.append(ChunkReceived("stdout", stdout))
    if stderr:
        script.append(ChunkReceived("stderr", stderr))
    script.append(ProcessExited(exit_code))
    return script
