# utrace/schemas.py
from dataclasses import dataclass
from typing import ClassVar, Literal, Optional, TypedDict, Union

TIMEOUT_MARK = "*"

Channel = Literal["stdout", "stderr"]


class HopPayload(TypedDict):
    hop: int
    hostname: Optional[str]
    ip: Optional[str]
    rtt: list[str]
    rawLine: str


class InfoPayload(TypedDict):
    message: str


class ErrorPayload(TypedDict):
    error: str


class EndPayload(TypedDict):
    exitCode: int


@dataclass(frozen=True)
class HopRecord:
    hop: int
    hostname: Optional[str]
    ip: Optional[str]
    rtt: tuple[str, str, str]
    raw_line: str

    def to_dict(self) -> HopPayload:
        return {
            "hop": self.hop,
            "hostname": self.hostname,
            "ip": self.ip,
            "rtt": list(self.rtt),
            "rawLine": self.raw_line,
        }


@dataclass(frozen=True)
class InfoRecord:
    message: str

    def to_dict(self) -> InfoPayload:
        return {"message": self.message}


Record = Union[HopRecord, InfoRecord]


# --- stream events (one wire frame each) ---

@dataclass(frozen=True)
class HopEvent:
    name: ClassVar[str] = "hop"
    record: HopRecord

    def payload(self) -> HopPayload:
        return self.record.to_dict()


@dataclass(frozen=True)
class InfoEvent:
    name: ClassVar[str] = "info"
    record: InfoRecord

    def payload(self) -> InfoPayload:
        return self.record.to_dict()


@dataclass(frozen=True)
class ErrorEvent:
    name: ClassVar[str] = "error"
    message: str

    def payload(self) -> ErrorPayload:
        return {"error": self.message}


@dataclass(frozen=True)
class EndEvent:
    name: ClassVar[str] = "end"
    exit_code: int

    def payload(self) -> EndPayload:
        return {"exitCode": self.exit_code}


StreamEvent = Union[HopEvent, InfoEvent, ErrorEvent, EndEvent]


def event_for(record: Record) -> StreamEvent:
    if isinstance(record, HopRecord):
        return HopEvent(record)
    return InfoEvent(record)
