#!/usr/bin/env python3
# filename: filtering.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 11.0.0 (Per-Client Group Blocking)
# -----------------------------------------------------------------------------
"""
Blocking decision engine.

Client identity -> applicable groups -> blacklist/whitelist membership.
Priority: WHITELIST > BLACKLIST. A whitelist hit in any group the client
belongs to overrides a blacklist hit from any of the client's groups.
"""

import logging
from typing import Iterable, List, Mapping, NamedTuple, Optional, Sequence

from blocking_config import DEFAULT_CLIENT_GROUP, BlockingConfig, normalize_client_id
from list_manager import ListGroupStore
from utils import get_logger

logger = get_logger("Filtering")


class BlockResult(NamedTuple):
    blocked: bool
    group: Optional[str]


NOT_BLOCKED = BlockResult(False, None)


def determine_whitelist_only_groups(config: BlockingConfig) -> List[str]:
    """Group names that have a whitelist but no blacklist, sorted."""
    return sorted(name for name in config.white_lists if name not in config.black_lists)


class ClientGroupResolver:
    """Maps a client (candidate names, then IP, then 'default') to its groups."""

    def __init__(self, client_groups: Mapping[str, Sequence[str]]):
        self.client_groups = {normalize_client_id(k): tuple(v) for k, v in client_groups.items()}

    def groups_for(self, client_names: Iterable[str], client_ip=None) -> List[str]:
        groups: List[str] = []

        for name in client_names or ():
            for group in self.client_groups.get(normalize_client_id(name), ()):
                if group not in groups:
                    groups.append(group)

        if groups:
            return groups

        if client_ip is not None:
            by_ip = self.client_groups.get(normalize_client_id(client_ip))
            if by_ip:
                return list(dict.fromkeys(by_ip))

        return list(dict.fromkeys(self.client_groups.get(DEFAULT_CLIENT_GROUP, ())))


class BlockingEngine:
    """
    Evaluates a normalized domain against the lists of the applicable groups.

    Whitelist-only groups never contribute a blacklist hit unless
    strict_whitelist_only is set; then everything outside their whitelist
    counts as a hit for that group.
    """

    def __init__(self, whitelist_only_groups: Iterable[str], strict_whitelist_only: bool = False):
        self.whitelist_only_groups = frozenset(whitelist_only_groups)
        self.strict_whitelist_only = strict_whitelist_only

    def is_blocked(self, store: ListGroupStore, groups: Sequence[str], domain: str) -> BlockResult:
        if not groups:
            return NOT_BLOCKED

        candidate = self._first_blacklist_hit(store, groups, domain)
        if candidate is None:
            return NOT_BLOCKED

        for group in groups:
            if store.is_whitelisted(group, domain):
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"Whitelist override: {domain} (blacklisted in '{candidate}', whitelisted in '{group}')")
                return NOT_BLOCKED

        return BlockResult(True, candidate)

    def _first_blacklist_hit(self, store: ListGroupStore, groups: Sequence[str], domain: str) -> Optional[str]:
        for group in groups:
            if group in self.whitelist_only_groups:
                if self.strict_whitelist_only and not store.is_whitelisted(group, domain):
                    return group
                continue
            if store.is_blacklisted(group, domain):
                return group
        return None
