#!/usr/bin/env python3
# filename: server.py
# Version: 6.0.0 (Blocking Pipeline)
"""
Main Server Module: loads configuration, builds the resolver pipeline and
serves DNS over UDP/TCP.
"""

import argparse
import asyncio
import ipaddress
import os
import signal
import sys
from typing import Any, Dict, List, Optional

import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype
import yaml

from blocking_config import BlockingConfig, normalize_client_id
from config_validator import ConfigValidationError, validate_config
from defaults import merge_with_defaults
from domain_utils import qname_to_domain
from resolver import BlockingResolver, Request, Resolver, chain
from upstream_manager import UpstreamResolver
from utils import ContextAdapter, get_logger, setup_logger

logger = get_logger("Server")


def load_config(path: str) -> Dict[str, Any]:
    """Read a YAML config file and fill in defaults."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Error loading config file {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping")
    return merge_with_defaults(config)


def build_pipeline(config: Dict[str, Any]) -> Resolver:
    """BlockingResolver -> UpstreamResolver. Raises ConfigValidationError on bad blocking config."""
    blocking = BlockingResolver(BlockingConfig.from_dict(config.get('blocking')))
    upstream = UpstreamResolver(config.get('upstream', {}))

    for line in blocking.configuration():
        logger.info(f"[blocking] {line}")
    for line in upstream.configuration():
        logger.info(f"[upstream] {line}")

    return chain(blocking, upstream)


def build_client_names(clients_cfg: Optional[Dict[Any, Any]]) -> Dict[str, List[str]]:
    """Static ip -> client names mapping from the 'clients' section."""
    names: Dict[str, List[str]] = {}
    for ip, value in (clients_cfg or {}).items():
        key = normalize_client_id(ip)
        names[key] = [value] if isinstance(value, str) else list(value)
    return names


class QueryHandler:
    """Wire bytes in, wire bytes out."""
    def __init__(self, pipeline: Resolver, client_names: Optional[Dict[str, List[str]]] = None):
        self.pipeline = pipeline
        self.client_names = client_names or {}

    async def process_query(self, data: bytes, client_addr, meta: Optional[dict] = None) -> Optional[bytes]:
        try:
            message = dns.message.from_wire(data)
        except dns.exception.DNSException as e:
            logger.warning(f"Failed to parse DNS packet from {client_addr}: {e}")
            return None

        if not message.question:
            return None

        meta = meta or {}
        try:
            client_ip = ipaddress.ip_address(client_addr[0])
        except (ValueError, IndexError, TypeError):
            logger.warning(f"Query received with invalid client address {client_addr}, dropping")
            return None
        if client_ip.version == 6 and client_ip.ipv4_mapped is not None:
            client_ip = client_ip.ipv4_mapped

        names = tuple(self.client_names.get(str(client_ip), ()))
        ctx = {'id': message.id, 'ip': str(client_ip), 'proto': meta.get('proto', 'udp').upper()}
        if names:
            ctx['client'] = ','.join(names)
        req_logger = ContextAdapter(logger, ctx)

        q = message.question[0]
        req_logger.info(f"QUERY: {qname_to_domain(q.name)} [{dns.rdatatype.to_text(q.rdtype)}]")

        request = Request(message=message, client_names=names, client_ip=client_ip, log=req_logger)
        try:
            response = await self.pipeline.resolve(request)
            wire = response.message.to_wire()
        except Exception as e:
            req_logger.error(f"Resolution failed: {e}")
            reply = dns.message.make_response(message)
            reply.set_rcode(dns.rcode.SERVFAIL)
            return reply.to_wire()

        req_logger.debug(f"RESPONSE: {response.reason} | RCODE: {dns.rcode.to_text(response.message.rcode())}")
        return wire


class UDPServer(asyncio.DatagramProtocol):
    """AsyncIO Datagram Protocol for DNS UDP with Concurrency Limit"""
    def __init__(self, handler, host, port, max_concurrent=1000):
        self.handler = handler
        self.host = host
        self.port = port
        self.transport = None
        self.sem = asyncio.Semaphore(max_concurrent)

    def connection_made(self, transport):
        self.transport = transport
        logger.debug(f"UDP Transport bound to {self.host}:{self.port}")

    def datagram_received(self, data, addr):
        if self.sem.locked():
            logger.warning(f"UDP Overload: Dropping packet from {addr}")
            return
        asyncio.create_task(self.handle_safe(data, addr))

    async def handle_safe(self, data, addr):
        async with self.sem:
            await self.handle(data, addr)

    async def handle(self, data, addr):
        try:
            resp = await self.handler.process_query(data, addr, {'proto': 'udp'})
            if resp and self.transport:
                self.transport.sendto(resp, addr)
        except Exception as e:
            logger.exception(f"Error handling UDP packet from {addr}: {e}")


class TCPServer:
    """AsyncIO Stream Handler for DNS TCP"""
    def __init__(self, handler, host, port):
        self.handler = handler
        self.host = host
        self.port = port

    async def handle_client(self, reader, writer):
        addr = writer.get_extra_info('peername')
        logger.debug(f"TCP Connection from {addr} on {self.host}:{self.port}")

        try:
            len_bytes = await reader.readexactly(2)
            length = int.from_bytes(len_bytes, 'big')
            data = await reader.readexactly(length)

            resp = await self.handler.process_query(data, addr, {'proto': 'tcp'})

            if resp:
                writer.write(len(resp).to_bytes(2, 'big') + resp)
                await writer.drain()

        except asyncio.IncompleteReadError:
            logger.debug(f"TCP Connection closed prematurely by {addr}")
        except Exception as e:
            logger.exception(f"TCP Error {addr}: {e}")
        finally:
            writer.close()


async def shutdown(sig: signal.Signals, stop_event: asyncio.Event) -> None:
    logger.info(f"Received exit signal {sig.name}...")
    stop_event.set()


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Blocking DNS Resolver")
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to YAML config file")
    parser.add_argument("--validate-only", action="store_true", help="Validate configuration and exit")
    return parser.parse_args(argv)


def _as_list(value) -> list:
    return value if isinstance(value, list) else [value]


async def serve(config: Dict[str, Any], handler: QueryHandler) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    server_cfg = config.get('server', {})

    servers = []
    transports = []
    udp_concurrency = server_cfg.get('udp_concurrency', 1000)

    for ip in _as_list(server_cfg.get('bind_ip', ['127.0.0.1'])):
        for port in _as_list(server_cfg.get('port_udp', [53])):
            try:
                transport, _ = await loop.create_datagram_endpoint(
                    lambda h=ip, p=port: UDPServer(handler, h, p, max_concurrent=udp_concurrency),
                    local_addr=(ip, port)
                )
                transports.append(transport)
                logger.info(f"✓ UDP Listening on {ip}:{port}")
            except OSError as e:
                logger.error(f"✗ UDP Bind Error {ip}:{port}: {e}")

        for port in _as_list(server_cfg.get('port_tcp', [53])):
            try:
                server = await asyncio.start_server(TCPServer(handler, ip, port).handle_client, ip, port)
                servers.append(server)
                logger.info(f"✓ TCP Listening on {ip}:{port}")
            except OSError as e:
                logger.error(f"✗ TCP Bind Error {ip}:{port}: {e}")

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s, stop_event)))

    logger.info("Server Ready. Press Ctrl+C to stop.")
    await stop_event.wait()

    logger.info("Shutting down...")
    for t in transports:
        t.close()
    for s in servers:
        s.close()
        await s.wait_closed()
    logger.info("Server stopped.")


def main(argv=None) -> int:
    args = parse_arguments(argv)
    # Console-only until the config file says otherwise
    setup_logger({})

    logger.info(">>> Phase 1: Configuration Loading")
    if os.path.exists(args.config):
        try:
            config = load_config(args.config)
        except ConfigValidationError as e:
            logger.error(f"FATAL: {e}")
            return 1
        logger.info(f"Loaded configuration from {args.config}")
    else:
        if args.validate_only:
            logger.error(f"Config not found at {args.config}")
            return 1
        logger.warning(f"Config not found at {args.config}, using internal defaults")
        config = merge_with_defaults({})

    is_valid, errors, warnings = validate_config(config)
    if not is_valid:
        logger.error("Configuration validation failed!")
        return 1
    if args.validate_only:
        logger.info("✅ Configuration validation PASSED")
        return 0

    setup_logger(config)

    logger.info(">>> Phase 2: Pipeline Initialization")
    try:
        pipeline = build_pipeline(config)
    except ValueError as e:
        logger.error(f"FATAL: Invalid configuration: {e}")
        return 1

    handler = QueryHandler(pipeline, build_client_names(config.get('clients')))

    logger.info(">>> Phase 3: Starting Listeners")
    try:
        asyncio.run(serve(config, handler))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
