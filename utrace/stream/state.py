# utrace/stream/state.py
import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from utrace.netutil import TargetAddress
from utrace.parse.lines import LineAssembler
from utrace.prober.base import ChunkReceived, ProcessExited, ProcessHandle


class SessionState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


@dataclass(frozen=True)
class ClientDisconnected:
    pass


@dataclass(frozen=True)
class SinkWriteFailed:
    reason: str = ""


# the closed set of inputs the controller reacts to
SessionInput = Union[ChunkReceived, ProcessExited, ClientDisconnected, SinkWriteFailed]


@dataclass
class Session:
    target: Optional[TargetAddress] = None
    process: Optional[ProcessHandle] = None
    lines: LineAssembler = field(default_factory=LineAssembler)
    state: SessionState = SessionState.IDLE
    closed: bool = False
    # how the session ended: "exit", "disconnect", "sink_failed", "start_failed", "timeout"
    close_reason: Optional[str] = None
    exit_code: Optional[int] = None
    # book-keeping for logs
    hops: int = 0
    infos: int = 0
    errors: int = 0
    frames_written: int = 0
