# tests/test_controller.py
import asyncio
import json

import pytest

from utrace.errors import InvalidTargetError, PrivateTargetError
from utrace.prober.base import ChunkReceived, ProcessExited
from utrace.prober.fake import FakeRunner, script_from_output
from utrace.stream.controller import SessionController
from utrace.stream.state import ClientDisconnected, SessionState
from utrace.stream.streamer import EventStreamer

OUTPUT = (
    b"traceroute to 8.8.8.8 (8.8.8.8), 30 hops max, 60 byte packets\n"
    b" 1  192.168.1.1  1.123 ms  1.004 ms  0.981 ms\n"
    b" 2  * * *\n"
    b" 3  8.8.8.8  12.345 ms  12.001 ms  11.998 ms\n"
)


class ListSink:
    def __init__(self, fail_after=None):
        self.frames = []
        self.eof_calls = 0
        self.fail_after = fail_after

    async def write(self, data: bytes) -> None:
        if self.fail_after is not None and len(self.frames) >= self.fail_after:
            raise ConnectionResetError("peer gone")
        self.frames.append(data)

    async def write_eof(self, data: bytes = b"") -> None:
        self.eof_calls += 1

    def events(self):
        out = []
        for f in self.frames:
            event_line, data_line = f.decode("utf-8").rstrip("\n").split("\n")
            out.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
        return out

    def names(self):
        return [name for name, _ in self.events()]


def _controller(runner, sink=None, **kw):
    sink = sink or ListSink()
    return SessionController(runner, EventStreamer(sink), traceroute_bin="traceroute", **kw), sink


# -------------------------------
# Validating
# -------------------------------
def test_invalid_target_spawns_nothing():
    runner = FakeRunner(script_from_output(OUTPUT))
    ctrl, sink = _controller(runner)
    with pytest.raises(InvalidTargetError):
        ctrl.validate("not-an-ip")
    assert runner.started == []
    assert sink.frames == []
    assert ctrl.session.close_reason == "rejected"


def test_private_target_is_forbidden():
    ctrl, _ = _controller(FakeRunner())
    with pytest.raises(PrivateTargetError):
        ctrl.validate("192.168.0.10")
    assert ctrl.session.state is SessionState.CLOSED


async def test_run_requires_validation():
    ctrl, _ = _controller(FakeRunner(script_from_output(OUTPUT)))
    with pytest.raises(RuntimeError):
        await ctrl.run()


# -------------------------------
# Running / Draining
# -------------------------------
@pytest.mark.parametrize("chunk_size", [None, 1, 5, 33])
async def test_clean_exit(chunk_size):
    runner = FakeRunner(script_from_output(OUTPUT, chunk_size=chunk_size))
    ctrl, sink = _controller(runner)
    ctrl.validate("8.8.8.8")
    session = await ctrl.run()

    assert runner.started == [("traceroute", ["-n", "8.8.8.8"])]
    assert sink.names() == ["hop", "hop", "hop", "end"]
    events = sink.events()
    assert events[1][1]["rtt"] == ["*", "*", "*"]
    assert events[-1][1] == {"exitCode": 0}
    assert session.close_reason == "exit"
    assert session.hops == 3 and session.errors == 0
    assert sink.eof_calls == 1
    assert runner.handles[0].terminate_calls == 0


async def test_nonzero_exit_reports_error_then_end():
    ctrl, sink = _controller(FakeRunner(script_from_output(OUTPUT, exit_code=2)))
    ctrl.validate("8.8.8.8")
    await ctrl.run()
    events = sink.events()
    assert [n for n, _ in events[-2:]] == ["error", "end"]
    assert events[-2][1] == {"error": "Traceroute command failed with exit code 2"}
    assert events[-1][1] == {"exitCode": 2}
    assert sink.names().count("end") == 1


async def test_start_failure_emits_single_error_and_no_end():
    runner = FakeRunner(fail_start="[Errno 2] No such file or directory: 'traceroute'")
    ctrl, sink = _controller(runner)
    ctrl.validate("8.8.8.8")
    session = await ctrl.run()
    assert sink.events() == [("error", {"error": "Failed to start traceroute: [Errno 2] No such file or directory: 'traceroute'"})]
    assert session.close_reason == "start_failed"
    assert sink.eof_calls == 1


async def test_stderr_is_forwarded_and_blank_stderr_ignored():
    script = [
        ChunkReceived("stderr", b"   \n"),
        ChunkReceived("stdout", b" 1  10.0.0.1  1 ms  1 ms  1 ms\n"),
        ChunkReceived("stderr", b"send failed: Operation not permitted\n"),
        ProcessExited(0),
    ]
    ctrl, sink = _controller(FakeRunner(script))
    ctrl.validate("8.8.8.8")
    await ctrl.run()
    assert sink.events()[1] == ("error", {"error": "send failed: Operation not permitted"})
    assert sink.names() == ["hop", "error", "end"]


async def test_unterminated_last_line_is_emitted_before_end():
    ctrl, sink = _controller(FakeRunner(script_from_output(b" 1  10.0.0.1  1 ms  2 ms  3 ms")))
    ctrl.validate("8.8.8.8")
    await ctrl.run()
    events = sink.events()
    assert [n for n, _ in events] == ["hop", "end"]
    assert events[0][1]["rtt"] == ["1", "2", "3"]


async def test_unrecognized_line_becomes_info():
    ctrl, sink = _controller(FakeRunner(script_from_output(b"traceroute: warning: multiple interfaces\n")))
    ctrl.validate("8.8.8.8")
    session = await ctrl.run()
    assert sink.events()[0] == ("info", {"message": "traceroute: warning: multiple interfaces"})
    assert session.infos == 1


# -------------------------------
# Closing paths
# -------------------------------
async def test_cancelled_handler_terminates_process_once():
    # no exit in the script: the fake process runs until terminated
    runner = FakeRunner([ChunkReceived("stdout", b" 1  10.0.0.1  1 ms  1 ms  1 ms\n")])
    ctrl, sink = _controller(runner)
    ctrl.validate("8.8.8.8")
    task = asyncio.create_task(ctrl.run())
    while not sink.frames:
        await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert ctrl.session.close_reason == "disconnect"
    assert runner.handles[0].terminate_calls == 1
    assert sink.names() == ["hop"]


async def test_disconnect_input_is_idempotent():
    runner = FakeRunner([ChunkReceived("stdout", b" 1  10.0.0.1  1 ms  1 ms  1 ms\n")])
    ctrl, sink = _controller(runner)
    ctrl.validate("8.8.8.8")
    task = asyncio.create_task(ctrl.run())
    while not sink.frames:
        await asyncio.sleep(0)

    await ctrl.handle(ClientDisconnected())
    await ctrl.handle(ClientDisconnected())
    await task

    assert runner.handles[0].terminate_calls == 1
    assert ctrl.session.close_reason == "disconnect"
    # the terminated process' exit arrives after close and is dropped
    assert "end" not in sink.names()


async def test_sink_failure_stops_the_probe():
    runner = FakeRunner([
        ChunkReceived("stdout", b" 1  10.0.0.1  1 ms  1 ms  1 ms\n"),
        ChunkReceived("stdout", b" 2  10.0.0.2  1 ms  1 ms  1 ms\n"),
        ChunkReceived("stdout", b" 3  10.0.0.3  1 ms  1 ms  1 ms\n"),
    ])
    ctrl, sink = _controller(runner, sink=ListSink(fail_after=1))
    ctrl.validate("8.8.8.8")
    session = await ctrl.run()
    assert session.close_reason == "sink_failed"
    assert runner.handles[0].terminate_calls == 1
    assert len(sink.frames) == 1


async def test_max_duration_kills_and_reports():
    runner = FakeRunner([ChunkReceived("stdout", b" 1  10.0.0.1  1 ms  1 ms  1 ms\n")])
    ctrl, sink = _controller(runner, max_duration=0.05)
    ctrl.validate("8.8.8.8")
    session = await asyncio.wait_for(ctrl.run(), timeout=5)
    events = sink.events()
    assert [n for n, _ in events] == ["hop", "error", "end"]
    assert events[1][1] == {"error": "Traceroute exceeded maximum duration of 0.05s"}
    assert events[2][1] == {"exitCode": -15}
    assert session.close_reason == "timeout"
    assert runner.handles[0].terminate_calls == 1


async def test_no_deadline_by_default():
    runner = FakeRunner(script_from_output(OUTPUT), delay=0.01)
    ctrl, sink = _controller(runner)
    ctrl.validate("8.8.8.8")
    await ctrl.run()
    assert sink.names()[-1] == "end"
    assert "error" not in sink.names()
