#!/usr/bin/env python3
# filename: config_validator.py
# Version: 2.0.0 (Blocking Section)
"""
Configuration Validation Module.
Collects errors and warnings for every section instead of stopping at the
first problem, so an operator sees the full list in one run.
"""

from typing import Dict, List, Tuple, Any
from utils import get_logger
from validation import is_valid_ip

logger = get_logger("ConfigValidator")


class ConfigValidationError(ValueError):
    """Raised when configuration is unusable (fatal at startup)"""
    pass


class ConfigValidator:
    """Validates DNS server configuration for common errors and inconsistencies"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """
        Validate entire configuration.

        Returns:
            (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        if not isinstance(config, dict):
            self.errors.append("Configuration must be a dictionary")
            return False, self.errors, self.warnings

        self._validate_logging(config.get('logging', {}))
        self._validate_server(config.get('server', {}))
        self._validate_upstream(config.get('upstream', {}))
        self._validate_clients(config.get('clients', {}))
        self._validate_blocking(config.get('blocking', {}))

        is_valid = len(self.errors) == 0

        for err in self.errors:
            logger.error(f"❌ {err}")
        for warn in self.warnings:
            logger.warning(f"⚠️  {warn}")

        if is_valid:
            logger.info("Configuration validation PASSED")
        else:
            logger.error(f"Configuration validation FAILED with {len(self.errors)} error(s)")

        return is_valid, self.errors, self.warnings

    # =========================================================================
    # LOGGING SECTION
    # =========================================================================
    def _validate_logging(self, log_cfg: Dict[str, Any]):
        """Validate logging configuration"""
        if not isinstance(log_cfg, dict):
            if log_cfg is not None:
                self.errors.append("logging: Must be a dictionary")
            return

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        level = log_cfg.get('level', 'INFO')
        if isinstance(level, str):
            if level.upper() not in valid_levels:
                self.errors.append(f"logging.level: Invalid level '{level}', must be one of {valid_levels}")
        else:
            self.errors.append(f"logging.level: Must be a string, got {type(level).__name__}")

        for bool_key in ['enable_console', 'console_timestamp', 'enable_file', 'enable_syslog']:
            val = log_cfg.get(bool_key)
            if val is not None and not isinstance(val, bool):
                self.errors.append(f"logging.{bool_key}: Must be boolean, got {type(val).__name__}")

        syslog_proto = log_cfg.get('syslog_protocol', 'UDP')
        if syslog_proto and str(syslog_proto).upper() not in ['UDP', 'TCP']:
            self.errors.append(f"logging.syslog_protocol: Must be 'UDP' or 'TCP', got '{syslog_proto}'")

    # =========================================================================
    # SERVER SECTION
    # =========================================================================
    def _validate_server(self, server_cfg: Dict[str, Any]):
        """Validate listener configuration"""
        if not isinstance(server_cfg, dict):
            if server_cfg is not None:
                self.errors.append("server: Must be a dictionary")
            return

        bind_ips = server_cfg.get('bind_ip', [])
        if bind_ips:
            if isinstance(bind_ips, str):
                bind_ips = [bind_ips]
            if not isinstance(bind_ips, list):
                self.errors.append("server.bind_ip: Must be a string or list")
            else:
                for ip in bind_ips:
                    if not is_valid_ip(ip):
                        self.errors.append(f"server.bind_ip: Invalid IP address '{ip}'")

        for port_key in ['port_udp', 'port_tcp']:
            ports = server_cfg.get(port_key)
            if ports is not None:
                if isinstance(ports, int):
                    ports = [ports]
                if not isinstance(ports, list):
                    self.errors.append(f"server.{port_key}: Must be integer or list")
                else:
                    for port in ports:
                        if not isinstance(port, int) or port < 1 or port > 65535:
                            self.errors.append(f"server.{port_key}: Invalid port {port} (must be 1-65535)")

        udp_conc = server_cfg.get('udp_concurrency')
        if udp_conc is not None:
            if not isinstance(udp_conc, int) or udp_conc < 1:
                self.errors.append("server.udp_concurrency: Must be positive integer")

    # =========================================================================
    # UPSTREAM SECTION
    # =========================================================================
    def _validate_upstream(self, upstream_cfg: Dict[str, Any]):
        """Validate upstream resolver configuration"""
        if not isinstance(upstream_cfg, dict):
            if upstream_cfg is not None:
                self.errors.append("upstream: Must be a dictionary")
            return

        servers = upstream_cfg.get('servers', [])
        if not isinstance(servers, list):
            self.errors.append("upstream.servers: Must be a list")
        elif not servers:
            self.warnings.append("upstream.servers: Empty, every non-blocked query will fail")
        else:
            from upstream_manager import parse_upstream
            for upstream in servers:
                try:
                    parse_upstream(upstream)
                except ValueError as e:
                    self.errors.append(f"upstream.servers: {e}")

        timeout = upstream_cfg.get('timeout')
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            self.errors.append("upstream.timeout: Must be a positive number")

    # =========================================================================
    # CLIENTS SECTION
    # =========================================================================
    def _validate_clients(self, clients_cfg: Dict[str, Any]):
        """Validate static client name mapping (ip -> names)"""
        if not isinstance(clients_cfg, dict):
            if clients_cfg is not None:
                self.errors.append("clients: Must be a dictionary")
            return

        for ip, names in clients_cfg.items():
            if not is_valid_ip(str(ip)):
                self.errors.append(f"clients: Invalid IP address '{ip}'")
            if isinstance(names, str):
                continue
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                self.errors.append(f"clients.{ip}: Must be a string or list of strings")

    # =========================================================================
    # BLOCKING SECTION
    # =========================================================================
    def _validate_blocking(self, blocking_cfg: Dict[str, Any]):
        """Validate blacklists, whitelists, client groups and block policy"""
        if not isinstance(blocking_cfg, dict):
            if blocking_cfg is not None:
                self.errors.append("blocking: Must be a dictionary")
            return

        from blocking_config import BlockingConfig
        from block_response import parse_block_type

        try:
            cfg = BlockingConfig.from_dict(blocking_cfg)
        except ConfigValidationError as e:
            self.errors.append(f"blocking: {e}")
            return

        try:
            parse_block_type(cfg.block_type)
        except ConfigValidationError as e:
            self.errors.append(f"blocking.block_type: {e}")

        known_groups = set(cfg.black_lists) | set(cfg.white_lists)
        for client, groups in cfg.client_groups_block.items():
            for group in groups:
                if group not in known_groups:
                    self.warnings.append(
                        f"blocking.client_groups_block.{client}: Group '{group}' has no blacklist or whitelist"
                    )

        for group in sorted(known_groups):
            if not cfg.black_lists.get(group) and not cfg.white_lists.get(group):
                self.warnings.append(f"blocking: Group '{group}' has no list sources")


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
    """
    Convenience function to validate configuration.

    Returns:
        (is_valid, errors, warnings)
    """
    validator = ConfigValidator()
    return validator.validate(config)
