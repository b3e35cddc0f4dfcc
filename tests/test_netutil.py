# tests/test_netutil.py
import pytest

from utrace.errors import InvalidTargetError, PrivateTargetError
from utrace.netutil import (
    INVALID_TARGET_MSG, PRIVATE_TARGET_MSG, classify, clean_ip, is_valid_domain, validate_target,
)


@pytest.mark.parametrize("value,expected", [
    ("8.8.8.8", "public"),
    ("1.1.1.1", "public"),
    ("2001:4860:4860::8888", "public"),
    ("172.32.0.1", "public"),
    ("10.0.0.1", "private"),
    ("10.1.2.3", "private"),
    ("172.16.5.4", "private"),
    ("172.31.255.255", "private"),
    ("192.168.1.1", "private"),
    ("127.0.0.1", "private"),
    ("169.254.10.10", "private"),
    ("::1", "private"),
    ("fd00::1", "private"),
    ("fe80::1", "private"),
    ("::ffff:127.0.0.1", "private"),
    ("::ffff:10.1.2.3", "private"),
    ("::ffff:192.168.1.1", "private"),
    ("::ffff:8.8.8.8", "public"),
])
def test_classify(value, expected):
    assert classify(value).classification == expected


@pytest.mark.parametrize("value", ["", "   ", "not-an-ip", "256.1.1.1", "8.8.8.8; rm -rf /", None, 42])
def test_classify_rejects_non_literals(value):
    assert classify(value) is None


def test_validate_target_errors():
    with pytest.raises(InvalidTargetError) as e:
        validate_target("example.com")
    assert e.value.status == 400
    assert e.value.message == INVALID_TARGET_MSG

    with pytest.raises(PrivateTargetError) as e:
        validate_target("10.1.2.3")
    assert e.value.status == 403
    assert e.value.message == PRIVATE_TARGET_MSG


def test_validate_target_strips_whitespace():
    assert str(validate_target(" 8.8.8.8 ")) == "8.8.8.8"


@pytest.mark.parametrize("value,ok", [
    ("example.com", True),
    ("sub.example.co.uk", True),
    ("xn--bcher-kva.example", True),
    ("x.io", True),
    ("a.b", False),
    ("localhost", False),
    ("-bad.com", False),
    ("under_score.com", False),
    ("example.com;ls", False),
    ("ab", False),
])
def test_is_valid_domain(value, ok):
    assert is_valid_domain(value) is ok


def test_clean_ip():
    assert clean_ip("::ffff:203.0.113.9") == "203.0.113.9"
    assert clean_ip("2001:db8::1") == "2001:db8::1"
    assert clean_ip(None) is None


@pytest.mark.parametrize("value", ["::ffff:127.0.0.1", "::FFFF:10.1.2.3", "::ffff:c0a8:0101"])
def test_mapped_private_addresses_are_forbidden(value):
    with pytest.raises(PrivateTargetError):
        validate_target(value)
