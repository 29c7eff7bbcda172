#!/usr/bin/env python3
# filename: defaults.py
# Version: 1.1.0 (Blocking Section)
"""
Default configuration values - single source of truth.
"""

import copy

DEFAULT_BLOCK_TTL = 21600
MAX_TTL = 2**31 - 1  # RFC 2181 section 8

DEFAULT_CONFIG = {
    'server': {
        'bind_ip': ['127.0.0.1'],
        'port_udp': [53],
        'port_tcp': [53],
        'udp_concurrency': 1000,
    },
    'upstream': {
        'servers': ['8.8.8.8', '1.1.1.1'],
        'timeout': 2.0,
    },
    'clients': {},
    'blocking': {
        'black_lists': {},
        'white_lists': {},
        'client_groups_block': {},
        'block_type': 'ZeroIP',
        'block_ttl': DEFAULT_BLOCK_TTL,
        'strict_whitelist_only': False,
        'list_download_timeout': 30,
    },
    'logging': {
        'level': 'INFO',
        'enable_console': True,
        'console_timestamp': True,
        'enable_file': False,
        'file_path': './dns_server.log',
        'enable_syslog': False,
        'syslog_address': '/dev/log',
        'syslog_protocol': 'UDP'
    },
}


def merge_with_defaults(config: dict) -> dict:
    """
    Merge user configuration with defaults.

    Args:
        config: User configuration dictionary

    Returns:
        Merged configuration with defaults filled in
    """
    merged = copy.deepcopy(DEFAULT_CONFIG)

    for key, value in (config or {}).items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value

    return merged


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base"""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
