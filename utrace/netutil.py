# utrace/netutil.py
import ipaddress
import re
from dataclasses import dataclass
from typing import Literal, Optional, Union

from utrace.errors import InvalidTargetError, PrivateTargetError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Classification = Literal["public", "private"]

INVALID_TARGET_MSG = "Invalid target IP address provided."
PRIVATE_TARGET_MSG = "Operations on private or local IP addresses are not allowed."

_PRIVATE_NETWORKS = [
    ipaddress.ip_network(n) for n in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",      # loopback
        "169.254.0.0/16",   # link-local
        "::1/128",
        "fc00::/7",         # unique local
        "fe80::/10",        # link-local
    )
]

_LABEL_CHAR = r"(?:[^\W_]|-)"
_DOMAIN = re.compile(
    rf"^(?:[^\W_](?:{_LABEL_CHAR}{{0,61}}[^\W_])?\.)+[^\W_]{_LABEL_CHAR}{{0,61}}[^\W_]$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TargetAddress:
    ip: IPAddress
    classification: Classification

    @property
    def is_private(self) -> bool:
        return self.classification == "private"

    def __str__(self) -> str:
        return str(self.ip)


def parse_ip(value) -> Optional[IPAddress]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def is_valid_ip(value) -> bool:
    return parse_ip(value) is not None


def is_private_ip(ip: IPAddress) -> bool:
    # ::ffff:a.b.c.d is judged by its IPv4 address
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in _PRIVATE_NETWORKS)


def classify(value) -> Optional[TargetAddress]:
    """Return the classified address, or None if it is not an IP literal."""
    ip = parse_ip(value)
    if ip is None:
        return None
    return TargetAddress(ip=ip, classification="private" if is_private_ip(ip) else "public")


def validate_target(value) -> TargetAddress:
    """
    Validate a probe target. Raises InvalidTargetError for malformed input and
    PrivateTargetError for private/loopback/link-local addresses.
    """
    target = classify(value)
    if target is None:
        raise InvalidTargetError(INVALID_TARGET_MSG)
    if target.is_private:
        raise PrivateTargetError(PRIVATE_TARGET_MSG)
    return target


def is_valid_domain(value) -> bool:
    if not isinstance(value, str) or len(value.strip()) < 3:
        return False
    return _DOMAIN.match(value.strip()) is not None


def clean_ip(value: Optional[str]) -> Optional[str]:
    """Strip the ::ffff: prefix of IPv4-mapped IPv6 addresses."""
    if not value:
        return value
    value = value.strip()
    if value.lower().startswith("::ffff:"):
        candidate = value[7:]
        ip = parse_ip(candidate)
        if ip is not None and ip.version == 4:
            return candidate
    return value
