#!/usr/bin/env python3
# filename: utils.py
# -----------------------------------------------------------------------------
# Project: Blocking DNS Resolver
# Version: 1.2.0 (Per-Request Context Logging)
# -----------------------------------------------------------------------------
"""
Logging helpers shared by every pipeline stage.
"""

import logging
import logging.handlers
import socket

ROOT_LOGGER_NAME = 'DNSFilter'

_loggers = {}

_TIMESTAMP_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s] %(message)s'
_PLAIN_FORMAT = '[%(levelname)s] [%(name)s] %(message)s'


def _syslog_handler(log_config):
    address = str(log_config.get('syslog_address', '/dev/log'))
    if address.startswith('/'):
        return logging.handlers.SysLogHandler(address=address)

    host, port = address.rsplit(':', 1)
    stream = str(log_config.get('syslog_protocol', 'UDP')).upper() == 'TCP'
    return logging.handlers.SysLogHandler(
        address=(host.strip('[]'), int(port)),
        socktype=socket.SOCK_STREAM if stream else socket.SOCK_DGRAM,
    )


def _build_handlers(log_config):
    """Yield (kind, factory, format) for every enabled log destination."""
    if log_config.get('enable_console', True):
        fmt = _TIMESTAMP_FORMAT if log_config.get('console_timestamp', True) else _PLAIN_FORMAT
        yield 'console', logging.StreamHandler, fmt
    if log_config.get('enable_file', False):
        path = log_config.get('file_path', './dns_server.log')
        yield 'file', lambda: logging.FileHandler(path), _TIMESTAMP_FORMAT
    if log_config.get('enable_syslog', False):
        # syslog adds its own timestamp
        yield 'syslog', lambda: _syslog_handler(log_config), '[%(name)s] %(message)s'


def setup_logger(config):
    """(Re)configure the DNSFilter logger tree from the 'logging' config section."""
    log_config = config.get('logging') or {}
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for kind, factory, fmt in _build_handlers(log_config):
        try:
            handler = factory()
        except (OSError, ValueError) as e:
            root_logger.error(f"Failed to setup {kind} logging: {e}")
            continue
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)

    return root_logger


def get_logger(name):
    """Get or create a logger below the DNSFilter root."""
    full_name = f"{ROOT_LOGGER_NAME}.{name}"
    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)
    return _loggers[full_name]


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with the query context."""
    def process(self, msg, kwargs):
        ctx = self.extra or {}
        prefix_parts = []
        if 'id' in ctx:
            prefix_parts.append(f"[ID:{ctx['id']}]")
        if 'ip' in ctx:
            prefix_parts.append(f"[IP:{ctx['ip']}]")
        if 'client' in ctx:
            prefix_parts.append(f"[CLIENT:{ctx['client']}]")
        if 'proto' in ctx:
            prefix_parts.append(f"[PROTO:{ctx['proto']}]")

        prefix = ' '.join(prefix_parts)
        return f"{prefix} {msg}" if prefix else msg, kwargs
