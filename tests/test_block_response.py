"""Tests for block type parsing and synthesized answers."""

import ipaddress

import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype
import pytest

from block_response import BlockPolicy, BlockResponder, BlockType, parse_block_type
from config_validator import ConfigValidationError


@pytest.mark.parametrize("value", ["", "ZeroIP", "zeroip", "  ZEROIP  "])
def test_parse_zero_ip(value):
    assert parse_block_type(value) == BlockPolicy(BlockType.ZERO_IP)


@pytest.mark.parametrize("value", ["NxDomain", "nxdomain", "NXDOMAIN"])
def test_parse_nxdomain(value):
    assert parse_block_type(value).block_type is BlockType.NX_DOMAIN


def test_parse_custom_ips():
    policy = parse_block_type("192.168.1.1, 2001:db8::1")
    assert policy.block_type is BlockType.CUSTOM_IP
    assert policy.custom_ips == (ipaddress.ip_address("192.168.1.1"), ipaddress.ip_address("2001:db8::1"))
    assert str(policy) == "CustomIP(192.168.1.1, 2001:db8::1)"


@pytest.mark.parametrize("value", ["wrong", "ZeroIP2", "192.168.1.300", ","])
def test_parse_invalid(value):
    with pytest.raises(ConfigValidationError):
        parse_block_type(value)


def _reply(policy, qtype, ttl=21600, qname="blocked1.com."):
    request = dns.message.make_query(qname, qtype)
    reply = BlockResponder(policy, ttl).create_block_response(request, request.question[0].name, qtype)
    return request, reply


def test_zero_ip_a_and_aaaa():
    _, reply = _reply(BlockPolicy(), dns.rdatatype.A)
    assert reply.rcode() == dns.rcode.NOERROR
    assert [rr.to_text() for rr in reply.answer] == ["blocked1.com. 21600 IN A 0.0.0.0"]

    _, reply = _reply(BlockPolicy(), dns.rdatatype.AAAA)
    assert [rr.to_text() for rr in reply.answer] == ["blocked1.com. 21600 IN AAAA ::"]


def test_reply_echoes_query():
    request, reply = _reply(BlockPolicy(), dns.rdatatype.A)
    assert reply.id == request.id
    assert reply.question == request.question
    assert reply.flags & dns.flags.QR


def test_nxdomain_for_any_type():
    for qtype in (dns.rdatatype.A, dns.rdatatype.AAAA, dns.rdatatype.MX):
        _, reply = _reply(BlockPolicy(BlockType.NX_DOMAIN), qtype)
        assert reply.rcode() == dns.rcode.NXDOMAIN
        assert reply.answer == []


def test_other_types_get_empty_noerror():
    for qtype in (dns.rdatatype.MX, dns.rdatatype.TXT, dns.rdatatype.HTTPS):
        _, reply = _reply(BlockPolicy(), qtype)
        assert reply.rcode() == dns.rcode.NOERROR
        assert reply.answer == []


def test_custom_ip_per_family():
    policy = parse_block_type("10.0.0.1,fd00::1")
    _, reply = _reply(policy, dns.rdatatype.A, ttl=300)
    assert reply.answer[0].to_text() == "blocked1.com. 300 IN A 10.0.0.1"

    _, reply = _reply(policy, dns.rdatatype.AAAA, ttl=300)
    assert reply.answer[0].to_text() == "blocked1.com. 300 IN AAAA fd00::1"


def test_custom_ip_without_matching_family_uses_zero_address():
    _, reply = _reply(parse_block_type("10.0.0.1"), dns.rdatatype.AAAA)
    assert reply.answer[0].to_text() == "blocked1.com. 21600 IN AAAA ::"
