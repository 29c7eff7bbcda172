#!/usr/bin/env python3
# filename: domain_utils.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 1.1.0
# -----------------------------------------------------------------------------
"""
Domain name normalization utilities.
List entries and query names go through the same normalization so that
membership tests are exact and case-insensitive.
"""

import dns.name


def normalize_domain(domain: str) -> str:
    """
    Normalize domain name to canonical form.

    - Converts to lowercase
    - Strips trailing dot
    - Strips whitespace

    Examples:
        >>> normalize_domain("Example.COM.")
        'example.com'
        >>> normalize_domain("  GOOGLE.com  ")
        'google.com'
    """
    if not domain:
        return ""

    return domain.strip().lower().rstrip('.')


def qname_to_domain(qname) -> str:
    """Normalize a question name given as dns.name.Name or text."""
    if isinstance(qname, dns.name.Name):
        qname = qname.to_text(omit_final_dot=True)
    return normalize_domain(qname)
