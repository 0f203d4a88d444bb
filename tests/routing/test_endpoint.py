"""Tests for EndPoint and operator endpoint parsing."""
from __future__ import annotations

import pytest

from tlsdb.domain.endpoint import EndPoint, parse_endpoint
from tlsdb.errors import BadArguments, DNSResolutionError


def test_value_semantics():
    a = EndPoint.from_ip("127.0.0.1", 9000)
    b = EndPoint(b"\x7f\x00\x00\x01", 9000)
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1
    assert a != EndPoint.from_ip("127.0.0.1", 9001)


def test_text_forms():
    ep = EndPoint.from_ip("192.168.1.20", 443)
    assert ep.host == "192.168.1.20"
    assert ep.address == ("192.168.1.20", 443)
    assert str(ep) == "192.168.1.20 443"


def test_invalid_values():
    with pytest.raises(ValueError):
        EndPoint(b"\x01\x02\x03", 80)
    with pytest.raises(ValueError):
        EndPoint(b"\x01\x02\x03\x04", 70000)


def test_parse_literal_ip():
    assert parse_endpoint("127.0.0.1", "9000") == EndPoint.from_ip("127.0.0.1", 9000)


def test_parse_uses_resolver():
    seen = []

    def _resolver(host):
        seen.append(host)
        return "10.1.2.3"

    ep = parse_endpoint("backend.internal", "8443", resolver=_resolver)
    assert seen == ["backend.internal"]
    assert ep == EndPoint.from_ip("10.1.2.3", 8443)


def test_parse_bad_port():
    with pytest.raises(BadArguments):
        parse_endpoint("127.0.0.1", "http")
    with pytest.raises(BadArguments):
        parse_endpoint("127.0.0.1", "65536")


def test_parse_unresolvable_host():
    def _resolver(host):
        raise DNSResolutionError(host)

    with pytest.raises(DNSResolutionError):
        parse_endpoint("nowhere.invalid", "80", resolver=_resolver)


def test_parse_resolver_returns_garbage():
    with pytest.raises(DNSResolutionError):
        parse_endpoint("weird", "80", resolver=lambda host: "not-an-ip")
