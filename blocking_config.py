#!/usr/bin/env python3
# filename: blocking_config.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Typed view of the 'blocking' configuration section.

Both snake_case keys (black_lists) and the camelCase spelling used by other
blocking proxies (blackLists) are accepted.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from config_validator import ConfigValidationError
from defaults import DEFAULT_BLOCK_TTL, MAX_TTL

DEFAULT_CLIENT_GROUP = 'default'

_KEY_ALIASES = {
    'black_lists': 'blackLists',
    'white_lists': 'whiteLists',
    'client_groups_block': 'clientGroupsBlock',
    'block_type': 'blockType',
    'block_ttl': 'blockTTL',
    'strict_whitelist_only': 'strictWhitelistOnly',
    'list_download_timeout': 'listDownloadTimeout',
}


def normalize_client_id(identifier: Any) -> str:
    """Lower-case a client identifier; IP literals get their canonical form."""
    ident = str(identifier).strip().lower()
    try:
        ip = ipaddress.ip_address(ident.strip('[]'))
    except ValueError:
        return ident
    # Dual-stack listeners report IPv4 clients as ::ffff:a.b.c.d
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return str(ip)


def _pick(data: Dict[str, Any], key: str, default=None):
    alias = _KEY_ALIASES.get(key)
    if alias and alias in data and data[alias] is not None:
        return data[alias]
    value = data.get(key)
    return default if value is None else value


def _as_str_tuple(value, where: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(',') if v.strip())
    if isinstance(value, (list, tuple)):
        items = []
        for v in value:
            if not isinstance(v, str):
                raise ConfigValidationError(f"{where}: Expected string entries, got {type(v).__name__}")
            if v.strip():
                items.append(v.strip())
        return tuple(items)
    raise ConfigValidationError(f"{where}: Must be a string or list, got {type(value).__name__}")


def _parse_group_sources(value, name: str) -> Dict[str, Tuple[str, ...]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"{name}: Must be a mapping of group -> sources")
    return {str(group): _as_str_tuple(sources, f"{name}.{group}") for group, sources in value.items()}


def _parse_client_groups(value) -> Dict[str, Tuple[str, ...]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError("client_groups_block: Must be a mapping of client -> groups")

    parsed: Dict[str, Tuple[str, ...]] = {}
    for client, groups in value.items():
        key = normalize_client_id(client)
        merged = list(parsed.get(key, ()))
        for group in _as_str_tuple(groups, f"client_groups_block.{client}"):
            if group not in merged:
                merged.append(group)
        parsed[key] = tuple(merged)
    return parsed


@dataclass(frozen=True)
class BlockingConfig:
    black_lists: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    white_lists: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    client_groups_block: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    block_type: str = ""
    block_ttl: int = DEFAULT_BLOCK_TTL
    strict_whitelist_only: bool = False
    list_download_timeout: float = 30.0

    def __post_init__(self):
        if not 0 <= self.block_ttl <= MAX_TTL:
            raise ConfigValidationError(f"block_ttl: {self.block_ttl} out of range (0-{MAX_TTL})")
        # YAML "false" in quotes is a str
        if not isinstance(self.strict_whitelist_only, bool):
            raise ConfigValidationError(
                f"strict_whitelist_only: Must be boolean, got {type(self.strict_whitelist_only).__name__}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BlockingConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Blocking configuration must be a mapping")

        block_type = _pick(data, 'block_type', "")
        if not isinstance(block_type, str):
            raise ConfigValidationError(f"block_type: Must be a string, got {type(block_type).__name__}")

        block_ttl = _pick(data, 'block_ttl', DEFAULT_BLOCK_TTL)
        if isinstance(block_ttl, bool) or not isinstance(block_ttl, int):
            raise ConfigValidationError(f"block_ttl: Must be an integer, got {type(block_ttl).__name__}")

        strict = _pick(data, 'strict_whitelist_only', False)

        timeout = _pick(data, 'list_download_timeout', 30.0)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigValidationError("list_download_timeout: Must be a number")

        return cls(
            black_lists=_parse_group_sources(_pick(data, 'black_lists'), 'black_lists'),
            white_lists=_parse_group_sources(_pick(data, 'white_lists'), 'white_lists'),
            client_groups_block=_parse_client_groups(_pick(data, 'client_groups_block')),
            block_type=block_type.strip(),
            block_ttl=block_ttl,
            strict_whitelist_only=strict,
            list_download_timeout=float(timeout),
        )

    def has_lists(self) -> bool:
        return bool(self.black_lists) or bool(self.white_lists)
