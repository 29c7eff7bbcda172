#!/usr/bin/env python3
# filename: list_manager.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 6.0.0 (Immutable Group Store)
# -----------------------------------------------------------------------------
"""
List Management for blacklist/whitelist groups.

Sources (local files or http(s) URLs) are parsed into sets of normalized
domains and merged by union per group. The result is a ListGroupStore that
is never mutated after construction; a refresh builds a new store and the
owner swaps the reference.
"""

import ipaddress
import os
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

import httpx

from domain_utils import normalize_domain
from utils import get_logger
from validation import is_valid_domain

logger = get_logger("ListManager")

_HOSTS_PREFIXES = ('127.0.0.1', '0.0.0.0', '::1', '::')


class ListGroupStore:
    """Read-only per-group domain sets for blacklists and whitelists."""
    __slots__ = ('_blacklists', '_whitelists')

    def __init__(self, blacklists: Optional[Mapping[str, Iterable[str]]] = None,
                 whitelists: Optional[Mapping[str, Iterable[str]]] = None):
        self._blacklists = MappingProxyType(_freeze_groups(blacklists))
        self._whitelists = MappingProxyType(_freeze_groups(whitelists))

    def is_blacklisted(self, group: str, domain: str) -> bool:
        entries = self._blacklists.get(group)
        return entries is not None and domain in entries

    def is_whitelisted(self, group: str, domain: str) -> bool:
        entries = self._whitelists.get(group)
        return entries is not None and domain in entries

    def blacklist_groups(self) -> List[str]:
        return sorted(self._blacklists)

    def whitelist_groups(self) -> List[str]:
        return sorted(self._whitelists)

    def blacklist_size(self, group: str) -> int:
        return len(self._blacklists.get(group, ()))

    def whitelist_size(self, group: str) -> int:
        return len(self._whitelists.get(group, ()))

    def __repr__(self):
        return (f"ListGroupStore(blacklists={len(self._blacklists)} groups, "
                f"whitelists={len(self._whitelists)} groups)")


def _freeze_groups(groups: Optional[Mapping[str, Iterable[str]]]) -> Dict[str, FrozenSet[str]]:
    frozen = {}
    for name, domains in (groups or {}).items():
        frozen[name] = frozenset(d for d in (normalize_domain(x) for x in domains) if d)
    return frozen


class ListManager:
    """Loads list sources and compiles them into a ListGroupStore."""

    def __init__(self, download_timeout: float = 30.0, http_client: Optional[httpx.Client] = None):
        self.download_timeout = download_timeout
        self._http_client = http_client
        logger.debug(f"ListManager initialized (download timeout: {download_timeout}s)")

    def build_store(self, black_lists: Mapping[str, Iterable[str]],
                    white_lists: Mapping[str, Iterable[str]]) -> ListGroupStore:
        # One source may back several groups (e.g. same file as blacklist and whitelist)
        source_cache: Dict[str, Set[str]] = {}

        blacklists = {name: self.load_group(name, sources, 'blacklist', source_cache)
                      for name, sources in (black_lists or {}).items()}
        whitelists = {name: self.load_group(name, sources, 'whitelist', source_cache)
                      for name, sources in (white_lists or {}).items()}

        return ListGroupStore(blacklists, whitelists)

    def load_group(self, name: str, sources: Iterable[str], kind: str = 'blacklist',
                   source_cache: Optional[Dict[str, Set[str]]] = None) -> Set[str]:
        if source_cache is None:
            source_cache = {}

        domains: Set[str] = set()
        for source in sources:
            if source not in source_cache:
                source_cache[source] = self.load_source(source)
            domains.update(source_cache[source])

        logger.info(f"Loaded {kind} group '{name}': {len(domains)} unique entries")
        return domains

    def load_source(self, source: str) -> Set[str]:
        """Read one source; failures are logged and yield an empty set."""
        if source.startswith(('http://', 'https://')):
            content = self._download(source)
        else:
            content = self._read_file(source)

        if content is None:
            return set()

        entries = self.parse_content(content)
        logger.debug(f"Parsed {len(entries)} entries from {source}")
        return entries

    def _download(self, url: str) -> Optional[str]:
        logger.info(f"Downloading: {url}")
        try:
            if self._http_client is not None:
                response = self._http_client.get(url)
            else:
                with httpx.Client(timeout=self.download_timeout, follow_redirects=True) as client:
                    response = client.get(url)
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            logger.warning(f"Download failed for {url}: {e}")
            return None

    def _read_file(self, path: str) -> Optional[str]:
        if not os.path.exists(path):
            logger.warning(f"Local file not found: {path}")
            return None

        logger.info(f"Loading local file: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    @staticmethod
    def parse_content(text: str) -> Set[str]:
        """
        Parse list text: one domain per line, '#' comments, hosts-file lines.
        Bare IP addresses and invalid names are skipped.
        """
        valid_entries = set()

        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            if '#' in line:
                line = line.split('#', 1)[0].strip()
                if not line:
                    continue

            parts = line.split()
            domain = parts[1] if (len(parts) >= 2 and parts[0] in _HOSTS_PREFIXES) else parts[0]
            domain = normalize_domain(domain)

            try:
                ipaddress.ip_address(domain)
                continue
            except ValueError:
                pass

            if is_valid_domain(domain):
                valid_entries.add(domain)
            else:
                logger.debug(f"Invalid domain format, skipping: {line}")

        return valid_entries
