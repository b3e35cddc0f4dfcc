# utrace/services/commands.py
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from utrace.errors import CommandError, CommandTimeoutError

_LOG = logging.getLogger(__name__)

# arguments are passed without a shell, this only rejects obvious abuse early
_SHELL_META = re.compile(r"[;&|`$()<>]")


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str


async def run_command(command: str, args: Sequence[str], timeout: Optional[float] = 60.0,
                      stdin: Optional[bytes] = None) -> CommandResult:
    """
    Run a command to completion and return its decoded output.
    Raises CommandError if it cannot start or exits non-zero,
    CommandTimeoutError if it runs past timeout (the process is killed).
    """
    for arg in args:
        if _SHELL_META.search(arg):
            _LOG.error("Rejected suspicious argument for %s: %r", command, arg)
            raise CommandError("Invalid character detected in command argument.")

    try:
        proc = await asyncio.create_subprocess_exec(
            command, *args,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        _LOG.error("Failed to start %s: %s", command, e)
        raise CommandError(f"Failed to start command {command}: {e}") from e

    try:
        out, err = await asyncio.wait_for(proc.communicate(stdin), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandTimeoutError(f"Command {command} timed out after {timeout}s")

    result = CommandResult(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
    if result.exit_code != 0:
        _LOG.error("%s %s exited with %d: %s", command, " ".join(args), result.exit_code, result.stderr.strip())
        raise CommandError(
            f"Command {command} failed with code {result.exit_code}: {result.stderr.strip() or 'No stderr output'}",
            exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr,
        )
    return result
