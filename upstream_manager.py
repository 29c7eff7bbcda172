#!/usr/bin/env python3
# filename: upstream_manager.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 3.0.0 (Pipeline Terminal Stage)
# -----------------------------------------------------------------------------
"""
Upstream forwarding: the last stage of the resolver pipeline.
Servers are tried in configured order (failover); UDP answers with the TC
bit set are retried over TCP against the same server.
"""

import ipaddress
import time
from typing import List
from urllib.parse import urlparse

import dns.asyncquery
import dns.exception
import dns.flags

from resolver import Resolver, ResolverChainError, Request, Response, ResponseType
from utils import get_logger

logger = get_logger("Upstream")

DEFAULT_PORT = 53
VALID_PROTOS = ('udp', 'tcp')


class UpstreamError(Exception):
    """Raised when no upstream server produced an answer"""
    pass


def parse_upstream(value) -> dict:
    """
    Parse 'ip', 'ip:port', '[v6]:port' or 'proto://ip[:port]' into a server entry.
    Raises ValueError for anything unusable.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Empty or invalid upstream '{value}'")

    s_str = value.strip()

    # A bare IPv6 address has colons but no brackets
    try:
        ip = ipaddress.ip_address(s_str)
        return _server_entry('udp', str(ip), DEFAULT_PORT)
    except ValueError:
        pass

    to_parse = s_str if '://' in s_str else f"udp://{s_str}"
    try:
        parsed = urlparse(to_parse)
        port = parsed.port or DEFAULT_PORT
    except ValueError as e:
        raise ValueError(f"Failed to parse upstream '{value}': {e}") from None

    proto = parsed.scheme.lower()
    if proto not in VALID_PROTOS:
        raise ValueError(f"Unsupported protocol '{proto}' in '{value}'")

    try:
        ip = ipaddress.ip_address(parsed.hostname or '')
    except ValueError:
        raise ValueError(f"Upstream '{value}' must use an IP address") from None

    return _server_entry(proto, str(ip), port)


def _server_entry(proto, ip, port):
    host = f"[{ip}]" if ':' in ip else ip
    return {'id': f"{proto}://{host}:{port}", 'proto': proto, 'ip': ip, 'port': port}


class UpstreamResolver(Resolver):
    """Forwards queries to the configured upstream servers."""

    def __init__(self, config: dict):
        super().__init__()
        config = config or {}
        self.timeout = float(config.get('timeout', 2.0))
        self.servers: List[dict] = [parse_upstream(s) for s in config.get('servers', [])]
        logger.info(f"Parsed {len(self.servers)} upstream servers from configuration")

    def set_next(self, resolver: Resolver) -> None:
        raise ResolverChainError("UpstreamResolver is a terminal stage")

    async def resolve(self, request: Request) -> Response:
        log = request.log

        for server in self.servers:
            start_t = time.monotonic()
            try:
                reply = await self._query(server, request)
            except (dns.exception.DNSException, OSError) as e:
                log.warning(f"Upstream forward error {server['id']}: {e}")
                continue

            dur_ms = (time.monotonic() - start_t) * 1000
            log.debug(f"Forwarded -> {server['id']} ({dur_ms:.2f}ms)")
            return Response(reply, ResponseType.RESOLVED, f"RESOLVED ({server['id']})")

        raise UpstreamError(f"All {len(self.servers)} upstream servers failed to respond")

    async def _query(self, server, request: Request):
        if server['proto'] == 'tcp':
            return await dns.asyncquery.tcp(request.message, server['ip'], timeout=self.timeout, port=server['port'])

        reply = await dns.asyncquery.udp(request.message, server['ip'], timeout=self.timeout, port=server['port'])
        if reply.flags & dns.flags.TC:
            request.log.debug(f"Truncated answer from {server['id']}, retrying over TCP")
            reply = await dns.asyncquery.tcp(request.message, server['ip'], timeout=self.timeout, port=server['port'])
        return reply

    def configuration(self) -> List[str]:
        return [f"upstream = {s['id']}" for s in self.servers] + [f"timeout = {self.timeout}s"]
