#!/usr/bin/env python3
# filename: validation.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 2.1.0
# -----------------------------------------------------------------------------
"""
Validation helpers for list entries and configuration values.
"""

import ipaddress

_INVALID_CHARS = (' ', '\t', '\n', '\r', '|', '\\', '/', '*')


def is_valid_ip(ip_str: str) -> bool:
    """
    Validate IP address (handles [IPv6] notation).

    Args:
        ip_str: IP address string, optionally with brackets for IPv6

    Returns:
        True if valid IP address
    """
    if not isinstance(ip_str, str):
        return False
    cleaned = ip_str.strip().strip('[]')
    try:
        ipaddress.ip_address(cleaned)
        return True
    except ValueError:
        return False


def is_valid_domain(domain: str, allow_underscores: bool = True) -> bool:
    """
    Validate domain format.

    Blocklists in the wild carry names like '_dmarc.example.com', so
    underscores are accepted unless the caller asks for strict RFC labels.
    Single-label names (localhost, router) are valid.
    """
    if not domain or len(domain) > 253:
        return False

    if any(c in domain for c in _INVALID_CHARS):
        return False

    for label in domain.split('.'):
        if not label or len(label) > 63:
            return False
        if label.startswith('-') or label.endswith('-'):
            return False

        if allow_underscores:
            if not all(c.isalnum() or c in ('-', '_') for c in label):
                return False
        else:
            if not all(c.isalnum() or c == '-' for c in label):
                return False

    return True
