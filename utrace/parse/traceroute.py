# utrace/parse/traceroute.py
#
# Line grammar of the Unix `traceroute -n` output. Windows `tracert` output
# is not understood here.
import re
from typing import Optional

from utrace.schemas import TIMEOUT_MARK, HopRecord, InfoRecord, Record

BANNER_PREFIX = "traceroute to"
BANNER_MARKER = "hops max"

_TIMEOUT_LINE = re.compile(r"^(\d+)\s+\*\s+\*\s+\*")
_HOP_LINE = re.compile(
    r"^(\d+)\s+"
    r"(?:([a-zA-Z0-9.\-]+)\s+\(([\d.:a-fA-F]+)\)|([\d.:a-fA-F]+))"
    r"\s+(.*)$"
)
_RTT_TOKEN = re.compile(r"^(\d+(?:\.\d+)?)(?:ms)?$")


def is_banner(line: str) -> bool:
    return line.startswith(BANNER_PREFIX) or BANNER_MARKER in line


def _rtt_samples(rest: str) -> tuple[str, str, str]:
    samples = []
    for token in rest.split():
        if token == TIMEOUT_MARK:
            samples.append(TIMEOUT_MARK)
        else:
            m = _RTT_TOKEN.match(token)
            if m is None:
                continue  # unit words, annotations like !H
            samples.append(m.group(1))
        if len(samples) == 3:
            break
    while len(samples) < 3:
        samples.append(TIMEOUT_MARK)
    return samples[0], samples[1], samples[2]


def parse_traceroute_line(line: str) -> Optional[Record]:
    """
    Map one complete output line to a HopRecord, an InfoRecord, or None
    for blank lines and the introductory banner. Pure; no state is kept.
    """
    line = line.strip()
    if not line or is_banner(line):
        return None

    m = _TIMEOUT_LINE.match(line)
    if m:
        return HopRecord(
            hop=int(m.group(1)),
            hostname=None,
            ip=None,
            rtt=(TIMEOUT_MARK, TIMEOUT_MARK, TIMEOUT_MARK),
            raw_line=line,
        )

    m = _HOP_LINE.match(line)
    if m:
        hop, hostname, ip_in_paren, ip_bare, rest = m.groups()
        return HopRecord(
            hop=int(hop),
            hostname=hostname or None,
            ip=ip_in_paren or ip_bare,
            rtt=_rtt_samples(rest),
            raw_line=line,
        )

    return InfoRecord(message=line)
