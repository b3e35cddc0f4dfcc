# tests/test_parsers.py
import pytest

from utrace.parse.lines import LineAssembler
from utrace.parse.ping import parse_ping_output
from utrace.parse.traceroute import parse_traceroute_line
from utrace.schemas import HopRecord, InfoRecord

TRACE = (
    b"traceroute to 8.8.8.8 (8.8.8.8), 30 hops max, 60 byte packets\n"
    b" 1  192.168.1.1  1.123 ms  1.004 ms  0.981 ms\n"
    b" 2  * * *\n"
    b" 3  dns.google (8.8.8.8)  12.345 ms  12.001 ms  11.998 ms\n"
)


# -------------------------------
# LineAssembler
# -------------------------------
def _collect(chunks):
    la = LineAssembler()
    out = []
    for c in chunks:
        out.extend(la.feed(c))
    tail = la.flush()
    if tail is not None:
        out.append(tail)
    return out


@pytest.mark.parametrize("size", [1, 2, 7, 64, 4096])
def test_lines_do_not_depend_on_chunking(size):
    whole = _collect([TRACE])
    split = _collect([TRACE[i:i + size] for i in range(0, len(TRACE), size)])
    assert split == whole
    assert len(whole) == 4


def test_unterminated_tail_is_flushed_once():
    la = LineAssembler()
    assert la.feed(b" 4  10.0.0.4  5 ms") == []
    assert la.pending
    assert la.flush() == " 4  10.0.0.4  5 ms"
    assert la.flush() is None
    assert not la.pending


def test_crlf_and_split_multibyte_char():
    la = LineAssembler()
    data = "héllo\r\n".encode("utf-8")
    assert la.feed(data[:2]) == []
    assert la.feed(data[2:]) == ["héllo"]


# -------------------------------
# traceroute lines
# -------------------------------
def test_banner_and_blank_lines_are_dropped():
    assert parse_traceroute_line("traceroute to 8.8.8.8 (8.8.8.8), 30 hops max, 60 byte packets") is None
    assert parse_traceroute_line("   ") is None


def test_numeric_hop():
    rec = parse_traceroute_line(" 1  192.168.1.1  1.123 ms  1.004 ms  0.981 ms")
    assert rec == HopRecord(hop=1, hostname=None, ip="192.168.1.1",
                            rtt=("1.123", "1.004", "0.981"),
                            raw_line="1  192.168.1.1  1.123 ms  1.004 ms  0.981 ms")


def test_named_hop():
    rec = parse_traceroute_line(" 3  dns.google (8.8.8.8)  12.345 ms  12.001 ms  11.998 ms")
    assert rec.hostname == "dns.google"
    assert rec.ip == "8.8.8.8"
    assert rec.rtt == ("12.345", "12.001", "11.998")


def test_timeout_hop():
    rec = parse_traceroute_line(" 2  * * *")
    assert rec.hop == 2
    assert rec.ip is None and rec.hostname is None
    assert rec.rtt == ("*", "*", "*")


def test_partial_replies_are_padded():
    rec = parse_traceroute_line("5  10.0.0.5  3.1 ms *")
    assert rec.rtt == ("3.1", "*", "*")


def test_ipv6_hop():
    rec = parse_traceroute_line(" 7  2001:4860:0:1::1  20.5 ms  20.1 ms  19.9 ms")
    assert rec.ip == "2001:4860:0:1::1"


def test_annotations_are_skipped():
    rec = parse_traceroute_line(" 9  10.1.1.1  1.0 ms !H  2.0 ms !H  3.0 ms !H")
    assert rec.rtt == ("1.0", "2.0", "3.0")


def test_unrecognized_line_is_info():
    rec = parse_traceroute_line("send failed: Network is unreachable")
    assert rec == InfoRecord(message="send failed: Network is unreachable")


# -------------------------------
# ping summary
# -------------------------------
LINUX_PING = """PING 8.8.8.8 (8.8.8.8) 56(84) bytes of data.
64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=11.2 ms
64 bytes from 8.8.8.8: icmp_seq=2 ttl=117 time=10.9 ms

--- 8.8.8.8 ping statistics ---
2 packets transmitted, 2 received, 0% packet loss, time 1001ms
rtt min/avg/max/mdev = 10.900/11.050/11.200/0.150 ms
"""


def test_ping_linux_summary():
    res = parse_ping_output(LINUX_PING)
    assert res["error"] is None
    assert res["stats"]["packets"] == {"transmitted": 2, "received": 2, "lossPercent": 0.0}
    assert res["stats"]["rtt"] == {"min": 10.9, "avg": 11.05, "max": 11.2, "mdev": 0.15}


def test_ping_macos_summary():
    out = ("--- 1.1.1.1 ping statistics ---\n"
           "4 packets transmitted, 4 packets received, 0.0% packet loss\n"
           "round-trip min/avg/max/stddev = 5.1/6.2/7.3/0.8 ms\n")
    res = parse_ping_output(out)
    assert res["stats"]["packets"]["received"] == 4
    assert res["stats"]["rtt"]["avg"] == 6.2


def test_ping_no_replies():
    out = "4 packets transmitted, 0 received, 100% packet loss, time 3060ms\n"
    res = parse_ping_output(out)
    assert res["error"] == "Request timed out or host unreachable."
    assert res["stats"]["rtt"] is None
    assert res["stats"]["packets"]["lossPercent"] == 100.0


def test_ping_unknown_host():
    assert parse_ping_output("ping: nope: Name or service not known")["error"] == "Unknown host."


@pytest.mark.parametrize("line,hop,hostname,ip,rtt", [
    (" 3  93.184.216.34  12.345 ms  11.987 ms  13.001 ms", 3, None, "93.184.216.34", ("12.345", "11.987", "13.001")),
    (" 5  * * *", 5, None, None, ("*", "*", "*")),
    (" 2  host.example (10.0.0.1)  5.0 ms  *  6.2 ms", 2, "host.example", "10.0.0.1", ("5.0", "*", "6.2")),
])
def test_golden_hop_lines(line, hop, hostname, ip, rtt):
    rec = parse_traceroute_line(line)
    assert isinstance(rec, HopRecord)
    assert (rec.hop, rec.hostname, rec.ip, rec.rtt) == (hop, hostname, ip, rtt)
