"""Tests for list source loading and the group store."""

import httpx
import pytest

from list_manager import ListGroupStore, ListManager


def test_parse_content_formats():
    text = "\n".join([
        "# comment line",
        "",
        "Ads.Example.COM.",
        "tracker.example   # trailing comment",
        "0.0.0.0 hosts.example",
        "127.0.0.1\tlocalhost-style.example",
        "::1 v6hosts.example",
        "192.168.1.1",
        "bad|name.example",
        "_dmarc.example",
    ])

    assert ListManager.parse_content(text) == {
        "ads.example.com",
        "tracker.example",
        "hosts.example",
        "localhost-style.example",
        "v6hosts.example",
        "_dmarc.example",
    }


def test_build_store_merges_sources_by_union(list_file):
    manager = ListManager()
    store = manager.build_store(
        {"gr1": [list_file("a.com", "b.com"), list_file("b.com", "c.com")]},
        {"gr1": [list_file("b.com")], "w1": [list_file("w.com")]},
    )

    assert store.blacklist_groups() == ["gr1"]
    assert store.whitelist_groups() == ["gr1", "w1"]
    assert store.blacklist_size("gr1") == 3
    assert store.is_blacklisted("gr1", "c.com")
    assert store.is_whitelisted("gr1", "b.com")
    assert not store.is_whitelisted("gr1", "a.com")


def test_missing_file_contributes_nothing(list_file, tmp_path):
    store = ListManager().build_store(
        {"gr1": [str(tmp_path / "missing.txt"), list_file("a.com")]}, {}
    )

    assert store.blacklist_size("gr1") == 1
    assert store.is_blacklisted("gr1", "a.com")


def test_shared_source_is_read_once(list_file, monkeypatch):
    path = list_file("a.com")
    manager = ListManager()
    loaded = []
    original = manager.load_source

    def counting_load(source):
        loaded.append(source)
        return original(source)

    monkeypatch.setattr(manager, "load_source", counting_load)
    store = manager.build_store({"gr1": [path]}, {"gr1": [path]})

    assert loaded == [path]
    assert store.is_blacklisted("gr1", "a.com") and store.is_whitelisted("gr1", "a.com")


def test_download_source():
    def handler(request):
        assert request.url == "https://lists.example/ads.txt"
        return httpx.Response(200, text="remote.example\n# c\n0.0.0.0 other.example\n")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    store = ListManager(http_client=client).build_store({"ads": ["https://lists.example/ads.txt"]}, {})

    assert store.is_blacklisted("ads", "remote.example")
    assert store.is_blacklisted("ads", "other.example")


def test_failed_download_is_empty():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

    assert ListManager(http_client=client).load_source("https://lists.example/missing.txt") == set()


def test_store_normalizes_and_is_read_only():
    store = ListGroupStore({"gr1": ["Example.COM."]})

    assert store.is_blacklisted("gr1", "example.com")
    assert not store.is_blacklisted("gr2", "example.com")
    assert store.whitelist_groups() == []
    with pytest.raises(TypeError):
        store._blacklists["gr2"] = frozenset()
