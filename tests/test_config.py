"""Unit tests for configuration parsing and validation."""

import pytest

from blocking_config import BlockingConfig, normalize_client_id
from config_validator import ConfigValidationError, validate_config
from defaults import DEFAULT_BLOCK_TTL, MAX_TTL, merge_with_defaults
from server import load_config


def test_blocking_config_defaults():
    cfg = BlockingConfig.from_dict(None)

    assert cfg.black_lists == {}
    assert cfg.block_type == ""
    assert cfg.block_ttl == DEFAULT_BLOCK_TTL == 21600
    assert cfg.strict_whitelist_only is False
    assert not cfg.has_lists()


def test_blocking_config_snake_case():
    cfg = BlockingConfig.from_dict({
        "black_lists": {"gr1": ["a.txt", "b.txt"]},
        "white_lists": {"gr1": "w.txt"},
        "client_groups_block": {"Laptop": ["gr1"], "192.168.178.55": "gr1, gr2"},
        "block_type": " NxDomain ",
        "block_ttl": 60,
    })

    assert cfg.black_lists == {"gr1": ("a.txt", "b.txt")}
    assert cfg.white_lists == {"gr1": ("w.txt",)}
    assert cfg.client_groups_block == {"laptop": ("gr1",), "192.168.178.55": ("gr1", "gr2")}
    assert cfg.block_type == "NxDomain"
    assert cfg.block_ttl == 60
    assert cfg.has_lists()


def test_blocking_config_camel_case_aliases():
    cfg = BlockingConfig.from_dict({
        "blackLists": {"gr1": ["a.txt"]},
        "whiteLists": {"w1": ["w.txt"]},
        "clientGroupsBlock": {"default": ["gr1"]},
        "blockType": "ZeroIP",
        "blockTTL": 120,
    })

    assert cfg.black_lists == {"gr1": ("a.txt",)}
    assert cfg.white_lists == {"w1": ("w.txt",)}
    assert cfg.client_groups_block == {"default": ("gr1",)}
    assert cfg.block_ttl == 120


def test_client_ip_keys_are_canonical():
    cfg = BlockingConfig.from_dict({"client_groups_block": {"2001:DB8:0:0::1": ["gr1"]}})
    assert cfg.client_groups_block == {"2001:db8::1": ("gr1",)}


@pytest.mark.parametrize("data", [
    {"black_lists": ["not", "a", "mapping"]},
    {"client_groups_block": {"c": [1, 2]}},
    {"block_ttl": "6h"},
    {"block_type": 5},
])
def test_blocking_config_rejects_bad_types(data):
    with pytest.raises(ConfigValidationError):
        BlockingConfig.from_dict(data)


def test_validate_default_config():
    is_valid, errors, _ = validate_config(merge_with_defaults({}))
    assert is_valid
    assert errors == []


def test_validate_wrong_block_type():
    config = merge_with_defaults({"blocking": {"block_type": "wrong"}})

    is_valid, errors, _ = validate_config(config)

    assert not is_valid
    assert any("block_type" in e for e in errors)


def test_validate_warns_about_unknown_group():
    config = merge_with_defaults({
        "blocking": {"black_lists": {"gr1": ["a.txt"]}, "client_groups_block": {"default": ["gr9"]}},
    })

    is_valid, _, warnings = validate_config(config)

    assert is_valid
    assert any("gr9" in w for w in warnings)


def test_validate_bad_sections():
    config = merge_with_defaults({
        "logging": {"level": "LOUD"},
        "server": {"port_udp": [70000]},
        "upstream": {"servers": ["ftp://1.1.1.1"]},
        "clients": {"not-an-ip": ["laptop"]},
    })

    is_valid, errors, _ = validate_config(config)

    assert not is_valid
    assert len(errors) == 4


def test_merge_with_defaults_keeps_nested_values():
    merged = merge_with_defaults({"blocking": {"block_type": "NxDomain"}, "logging": {"level": "DEBUG"}})

    assert merged["blocking"]["block_type"] == "NxDomain"
    assert merged["blocking"]["block_ttl"] == 21600
    assert merged["logging"]["level"] == "DEBUG"
    assert merged["logging"]["enable_console"] is True


def test_load_config_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "blocking:\n"
        "  black_lists:\n"
        "    ads: [./ads.txt]\n"
        "  client_groups_block:\n"
        "    default: [ads]\n"
        "  block_type: NxDomain\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config["blocking"]["black_lists"] == {"ads": ["./ads.txt"]}
    assert config["blocking"]["block_type"] == "NxDomain"
    assert config["upstream"]["servers"] == ["8.8.8.8", "1.1.1.1"]


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("blocking: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError):
        load_config(str(path))


@pytest.mark.parametrize("value", ["false", "no", 0, 1])
def test_strict_whitelist_only_must_be_boolean(value):
    with pytest.raises(ConfigValidationError, match="strict_whitelist_only"):
        BlockingConfig.from_dict({"white_lists": {"gr1": ["w.txt"]}, "strict_whitelist_only": value})


def test_validate_quoted_boolean_is_an_error():
    config = merge_with_defaults({"blocking": {"strict_whitelist_only": "false"}})

    is_valid, errors, _ = validate_config(config)

    assert not is_valid
    assert any("strict_whitelist_only" in e for e in errors)


@pytest.mark.parametrize("ttl", [-1, MAX_TTL + 1, 2**32])
def test_block_ttl_out_of_range(ttl):
    with pytest.raises(ConfigValidationError, match="block_ttl"):
        BlockingConfig.from_dict({"block_ttl": ttl})
    with pytest.raises(ConfigValidationError):
        BlockingConfig(block_ttl=ttl)

    is_valid, errors, _ = validate_config(merge_with_defaults({"blocking": {"block_ttl": ttl}}))
    assert not is_valid
    assert any("block_ttl" in e for e in errors)


@pytest.mark.parametrize("ttl", [0, MAX_TTL])
def test_block_ttl_bounds_accepted(ttl):
    assert BlockingConfig.from_dict({"block_ttl": ttl}).block_ttl == ttl


@pytest.mark.parametrize("identifier, expected", [
    ("::ffff:192.168.178.55", "192.168.178.55"),
    ("[::FFFF:c0a8:b237]", "192.168.178.55"),
    ("2001:DB8::1", "2001:db8::1"),
    ("  Laptop ", "laptop"),
])
def test_normalize_client_id(identifier, expected):
    assert normalize_client_id(identifier) == expected
