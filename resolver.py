#!/usr/bin/env python3
# filename: resolver.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 10.0.0 (Chained Resolver Pipeline)
# -----------------------------------------------------------------------------
"""
Resolver pipeline: every stage either answers a query itself or hands it to
the next stage. BlockingResolver answers blocked queries with a synthesized
reply and forwards everything else untouched.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

import dns.message
import dns.rdatatype

from block_response import BlockResponder, parse_block_type
from blocking_config import BlockingConfig
from domain_utils import qname_to_domain
from filtering import BlockingEngine, ClientGroupResolver, determine_whitelist_only_groups
from list_manager import ListGroupStore, ListManager
from utils import ContextAdapter, get_logger

logger = get_logger("Resolver")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class ResolverChainError(RuntimeError):
    """Raised when the pipeline is wired incorrectly"""
    pass


class ResponseType(Enum):
    RESOLVED = 'RESOLVED'
    BLOCKED = 'BLOCKED'


@dataclass(frozen=True)
class Request:
    message: dns.message.Message
    client_names: Tuple[str, ...] = ()
    client_ip: Optional[IPAddress] = None
    log: logging.LoggerAdapter = field(default_factory=lambda: ContextAdapter(logger, {}))


@dataclass(frozen=True)
class Response:
    message: dns.message.Message
    rtype: ResponseType
    reason: str = ""


class Resolver(ABC):
    """A pipeline stage. Stages are linked once at startup and never re-linked under traffic."""

    def __init__(self):
        self.next_resolver: Optional["Resolver"] = None

    def set_next(self, resolver: "Resolver") -> None:
        self.next_resolver = resolver

    @abstractmethod
    async def resolve(self, request: Request) -> Response:
        ...

    @abstractmethod
    def configuration(self) -> List[str]:
        ...

    def __str__(self):
        return type(self).__name__


def chain(*resolvers: Resolver) -> Resolver:
    """Link stages in the given order and return the first one."""
    if not resolvers:
        raise ResolverChainError("Cannot build an empty resolver chain")
    for current, successor in zip(resolvers, resolvers[1:]):
        current.set_next(successor)
    return resolvers[0]


class BlockingResolver(Resolver):
    """
    Checks the queried name against the client's blacklist/whitelist groups.

    Construction raises ConfigValidationError for an unknown block type.
    With neither blacklists nor whitelists configured the stage is inert and
    delegates every query.
    """

    def __init__(self, config: BlockingConfig, list_manager: Optional[ListManager] = None):
        super().__init__()
        self.config = config
        self.policy = parse_block_type(config.block_type)
        self.responder = BlockResponder(self.policy, config.block_ttl)
        self.inert = not config.has_lists()

        self.whitelist_only_groups = determine_whitelist_only_groups(config)
        self.client_resolver = ClientGroupResolver(config.client_groups_block)
        self.engine = BlockingEngine(self.whitelist_only_groups, config.strict_whitelist_only)

        if self.inert:
            self.store = ListGroupStore()
            logger.info("BlockingResolver deactivated: no blacklists or whitelists configured")
        else:
            manager = list_manager or ListManager(download_timeout=config.list_download_timeout)
            self.store = manager.build_store(config.black_lists, config.white_lists)
            logger.info(
                f"BlockingResolver Ready. BlockType: {self.policy}, TTL: {config.block_ttl}, "
                f"Blacklist groups: {len(config.black_lists)}, Whitelist groups: {len(config.white_lists)}"
            )

    def swap_store(self, store: ListGroupStore) -> None:
        """Publish a freshly built store; in-flight queries keep the old snapshot."""
        self.store = store
        logger.info(f"List store replaced: {store!r}")

    async def resolve(self, request: Request) -> Response:
        if self.inert:
            return await self._delegate(request)

        store = self.store
        log = request.log

        groups = self.client_resolver.groups_for(request.client_names, request.client_ip)
        if not groups:
            if log.isEnabledFor(logging.DEBUG):
                log.debug("No blocking groups for client, passing through")
            return await self._delegate(request)

        question = request.message.question[0] if request.message.question else None
        if question is None:
            return await self._delegate(request)

        domain = qname_to_domain(question.name)
        blocked, group = self.engine.is_blocked(store, groups, domain)

        if not blocked:
            if log.isEnabledFor(logging.DEBUG):
                log.debug(f"PASS | Domain: {domain} | Groups: {', '.join(groups)}")
            return await self._delegate(request)

        reply = self.responder.create_block_response(request.message, question.name, question.rdtype)
        log.info(
            f"⛔ BLOCKED | Domain: {domain} [{dns.rdatatype.to_text(question.rdtype)}] | "
            f"Group: '{group}' | BlockType: {self.policy}"
        )
        return Response(reply, ResponseType.BLOCKED, f"BLOCKED ({group})")

    async def _delegate(self, request: Request) -> Response:
        if self.next_resolver is None:
            raise ResolverChainError(f"{self} has no next resolver")
        return await self.next_resolver.resolve(request)

    def configuration(self) -> List[str]:
        if self.inert:
            return ["deactivated"]

        result = ["client_groups_block:"]
        for client in sorted(self.client_resolver.client_groups):
            result.append(f"  {client} = {', '.join(self.client_resolver.client_groups[client])}")

        result.append(f"block_type = {self.policy}")
        result.append(f"block_ttl = {self.config.block_ttl}")

        store = self.store
        result.append("blacklist:")
        for name in store.blacklist_groups():
            result.append(f"  {name}: {store.blacklist_size(name)} entries")

        result.append("whitelist:")
        for name in store.whitelist_groups():
            result.append(f"  {name}: {store.whitelist_size(name)} entries")

        if self.whitelist_only_groups:
            mode = "strict" if self.config.strict_whitelist_only else "override only"
            result.append(f"whitelist_only_groups ({mode}) = {', '.join(self.whitelist_only_groups)}")

        return result
