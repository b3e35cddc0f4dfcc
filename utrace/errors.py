# utrace/errors.py
from typing import Optional


class UtraceError(Exception):
    """Base class for errors raised by utrace."""


class ValidationError(UtraceError):
    """Request rejected before any response stream is opened."""

    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTargetError(ValidationError):
    """Target is not a well-formed IPv4/IPv6 literal (or domain)."""

    status = 400


class PrivateTargetError(ValidationError):
    """Target lies in a private, loopback or link-local range."""

    status = 403


class ProcessStartError(UtraceError):
    """The executable could not be launched."""


class ProcessRuntimeError(UtraceError):
    """The process ran but exited with a non-zero code."""

    def __init__(self, exit_code: int):
        super().__init__(f"Traceroute command failed with exit code {exit_code}")
        self.exit_code = exit_code


class SinkWriteError(UtraceError):
    """The remote peer is gone; writing a frame failed."""


class CommandError(UtraceError):
    """A run-to-completion command (ping, whois) failed."""

    def __init__(self, message: str, exit_code: Optional[int] = None,
                 stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class CommandTimeoutError(CommandError):
    """A run-to-completion command exceeded its timeout."""


class LookupServiceError(UtraceError):
    """A geo/DNS/WHOIS/TLS lookup failed."""
