#!/usr/bin/env python3
# filename: block_response.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 1.3.0
# -----------------------------------------------------------------------------
"""
Synthesized answers for blocked queries.

ZeroIP   -> A 0.0.0.0 / AAAA ::, NOERROR
NxDomain -> empty answer, NXDOMAIN
CustomIP -> A/AAAA with the configured address, NOERROR
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import dns.message
import dns.rcode
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.rrset

from config_validator import ConfigValidationError
from defaults import DEFAULT_BLOCK_TTL

ZERO_IPV4 = ipaddress.IPv4Address('0.0.0.0')
ZERO_IPV6 = ipaddress.IPv6Address('::')


class BlockType(Enum):
    ZERO_IP = 'ZeroIP'
    NX_DOMAIN = 'NxDomain'
    CUSTOM_IP = 'CustomIP'


@dataclass(frozen=True)
class BlockPolicy:
    block_type: BlockType = BlockType.ZERO_IP
    custom_ips: Tuple = ()

    def __str__(self):
        if self.block_type is BlockType.CUSTOM_IP:
            return f"{self.block_type.value}({', '.join(str(ip) for ip in self.custom_ips)})"
        return self.block_type.value


def parse_block_type(value: str) -> BlockPolicy:
    """
    Parse the configured block type (case-insensitive).
    Empty means ZeroIP; one or more comma-separated IP literals mean CustomIP.
    Anything else raises ConfigValidationError.
    """
    text = (value or '').strip()
    if not text or text.lower() == 'zeroip':
        return BlockPolicy(BlockType.ZERO_IP)
    if text.lower() == 'nxdomain':
        return BlockPolicy(BlockType.NX_DOMAIN)

    ips = []
    for part in text.split(','):
        part = part.strip().strip('[]')
        if not part:
            continue
        try:
            ips.append(ipaddress.ip_address(part))
        except ValueError:
            raise ConfigValidationError(
                f"Unknown block type '{value}' (expected ZeroIP, NxDomain or an IP address)"
            ) from None

    if not ips:
        raise ConfigValidationError(f"Unknown block type '{value}'")
    return BlockPolicy(BlockType.CUSTOM_IP, tuple(ips))


class BlockResponder:
    """Builds the terminal reply for a blocked question."""

    def __init__(self, policy: BlockPolicy, block_ttl: int = DEFAULT_BLOCK_TTL):
        self.policy = policy
        self.block_ttl = block_ttl

    def create_block_response(self, request: dns.message.Message, qname, qtype) -> dns.message.Message:
        reply = dns.message.make_response(request)

        if self.policy.block_type is BlockType.NX_DOMAIN:
            reply.set_rcode(dns.rcode.NXDOMAIN)
            return reply

        reply.set_rcode(dns.rcode.NOERROR)
        if qtype not in (dns.rdatatype.A, dns.rdatatype.AAAA):
            return reply

        block_ip = self._address_for(qtype)
        rdata = dns.rdata.from_text(dns.rdataclass.IN, qtype, str(block_ip))
        rrset = dns.rrset.RRset(qname, dns.rdataclass.IN, qtype)
        rrset.add(rdata, self.block_ttl)
        reply.answer.append(rrset)
        return reply

    def _address_for(self, qtype):
        version = 4 if qtype == dns.rdatatype.A else 6
        for ip in self.policy.custom_ips:
            if ip.version == version:
                return ip
        return ZERO_IPV4 if version == 4 else ZERO_IPV6
