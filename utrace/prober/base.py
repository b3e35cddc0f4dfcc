# utrace/prober/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Sequence, Union

from utrace.schemas import Channel


@dataclass(frozen=True)
class ChunkReceived:
    channel: Channel
    data: bytes


@dataclass(frozen=True)
class ProcessExited:
    code: int


ProcessEvent = Union[ChunkReceived, ProcessExited]


class ProcessHandle(ABC):
    """
    A running external command. events() yields output chunks tagged by
    channel, then exactly one ProcessExited. Order within a channel is
    preserved; no order is promised between stdout and stderr.
    """

    @abstractmethod
    def events(self) -> AsyncIterator[ProcessEvent]:
        raise NotImplementedError

    @abstractmethod
    def terminate(self) -> None:
        """Request process death. Safe to call more than once or after exit."""
        raise NotImplementedError

    @property
    @abstractmethod
    def exited(self) -> bool:
        raise NotImplementedError


class ProcessRunner(ABC):
    @abstractmethod
    async def start(self, command: str, args: Sequence[str]) -> ProcessHandle:
        """Launch command; raise ProcessStartError if it cannot be spawned."""
        raise NotImplementedError
