# utrace/services/whois.py
import logging
import re
import shutil
from typing import Any

from utrace.errors import CommandError, CommandTimeoutError, LookupServiceError
from utrace.services.commands import run_command

_LOG = logging.getLogger(__name__)

_FIELD = re.compile(r"^\s*([A-Za-z][\w /.-]*?)\s*:\s*(.*?)\s*$")
_NOT_FOUND_MARKERS = ("no match for", "not found", "no entries found", "no data found")


class WhoisError(LookupServiceError):
    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.status = status


def _key(label: str) -> str:
    # "Registrar WHOIS Server" -> "registrarWhoisServer"
    words = re.split(r"[\s/_.-]+", label.strip())
    words = [w for w in words if w]
    if not words:
        return ""
    return words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])


def parse_whois(text: str) -> dict[str, Any]:
    """
    Flatten `Key: value` lines into a dict. Repeated keys are joined with a
    space; comment lines (%, #, >>>) and URLs mistaken for keys are skipped.
    """
    result: dict[str, Any] = {}
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith(("%", "#", ">>>")):
            continue
        m = _FIELD.match(line)
        if not m or not m.group(2) or m.group(2).startswith("//"):
            continue
        key = _key(m.group(1))
        if not key:
            continue
        value = m.group(2)
        if key in result and value not in result[key]:
            result[key] = f"{result[key]} {value}"
        else:
            result.setdefault(key, value)
    return result


class WhoisService:
    def __init__(self, whois_bin: str = "whois", timeout_ms: int = 10000):
        self.whois_bin = shutil.which(whois_bin) or whois_bin
        self.timeout_ms = timeout_ms

    async def lookup(self, query: str) -> dict[str, Any]:
        try:
            res = await run_command(self.whois_bin, [query], timeout=self.timeout_ms / 1000.0)
            text = res.stdout
        except CommandTimeoutError as e:
            raise WhoisError("WHOIS server timed out.", status=504) from e
        except CommandError as e:
            # whois exits 1 for "no match" on several registries but still prints a body
            text = e.stdout
            if not text.strip():
                if "Failed to start" in str(e):
                    raise WhoisError(f"whois client unavailable: {e}") from e
                raise WhoisError(str(e)) from e

        lowered = text.lower()
        parsed = parse_whois(text)
        if not parsed or (any(m in lowered for m in _NOT_FOUND_MARKERS) and len(parsed) <= 1):
            raise WhoisError("No detailed WHOIS information found for the query.", status=404)
        return parsed
