# utrace/parse/ping.py
import re
from typing import Optional, TypedDict

_TRANSMITTED = re.compile(r"(\d+)\s+packets transmitted")
_RECEIVED = re.compile(r"(\d+)\s+(?:received|packets received)")
_LOSS = re.compile(r"([\d.]+)%\s+packet loss")
_RTT = re.compile(r"([\d.]+)/([\d.]+)/([\d.]+)/([\d.]+)")
_RTT_PREFIXES = ("rtt min/avg/max/mdev", "round-trip min/avg/max/stddev")


class PacketStats(TypedDict):
    transmitted: int
    received: int
    lossPercent: float


class RttStats(TypedDict):
    min: float
    avg: float
    max: float
    mdev: float


class PingStats(TypedDict):
    packets: PacketStats
    rtt: Optional[RttStats]


class PingResult(TypedDict):
    rawOutput: str
    stats: Optional[PingStats]
    error: Optional[str]


def parse_ping_output(output: str) -> PingResult:
    """
    Parse the summary block of Linux/macOS `ping` output.
    Only the statistics lines are read; per-reply lines are ignored.
    """
    transmitted, received, loss = 0, 0, 100.0
    rtt: Optional[RttStats] = None

    lines = output.strip().splitlines()
    stats_line = next((l for l in lines if "packets transmitted" in l), None)
    if stats_line:
        m = _TRANSMITTED.search(stats_line)
        if m:
            transmitted = int(m.group(1))
        m = _RECEIVED.search(stats_line)
        if m:
            received = int(m.group(1))
        m = _LOSS.search(stats_line)
        if m:
            loss = float(m.group(1))

    rtt_line = next((l for l in lines if l.startswith(_RTT_PREFIXES)), None)
    if rtt_line:
        m = _RTT.search(rtt_line)
        if m:
            lo, avg, hi, mdev = (float(g) for g in m.groups())
            rtt = {"min": lo, "avg": avg, "max": hi, "mdev": mdev}

    error = None
    if transmitted > 0 and received == 0:
        error = "Request timed out or host unreachable."
    elif "unknown host" in output or "Name or service not known" in output:
        error = "Unknown host."

    return {
        "rawOutput": output,
        "stats": {
            "packets": {"transmitted": transmitted, "received": received, "lossPercent": loss},
            "rtt": rtt,
        },
        "error": error,
    }
