from __future__ import annotations

from pathlib import Path

from glucose_log.storage import CacheStore, ShellResponse


def _resp(url: str, body: bytes = b"<html>", status: int = 200) -> ShellResponse:
    return ShellResponse(url=url, status=status, body=body, headers={"content-type": "text/html"})


def test_put_and_match_round_trip(tmp_path: Path) -> None:
    store = CacheStore(tmp_path / "cache.sqlite3")
    store.put("v1", "http://app/", _resp("http://app/"))

    hit = store.match("v1", "http://app/")
    assert hit is not None
    assert hit.body == b"<html>"
    assert hit.headers == {"content-type": "text/html"}
    assert store.match("v1", "http://app/other") is None
    assert store.match("v2", "http://app/") is None


def test_put_overwrites_existing_key(tmp_path: Path) -> None:
    store = CacheStore(tmp_path / "cache.sqlite3")
    store.put("v1", "http://app/", _resp("http://app/", b"old"))
    store.put("v1", "http://app/", _resp("http://app/", b"new"))

    assert store.keys("v1") == ["http://app/"]
    hit = store.match("v1", "http://app/")
    assert hit is not None and hit.body == b"new"


def test_buckets_open_list_and_delete(tmp_path: Path) -> None:
    store = CacheStore(tmp_path / "cache.sqlite3")
    store.open_bucket("v0")
    store.put_many("v1", [("a", _resp("a")), ("b", _resp("b"))])

    assert sorted(store.bucket_names()) == ["v0", "v1"]
    assert store.keys("v1") == ["a", "b"]

    assert store.delete_bucket("v1") is True
    assert store.delete_bucket("v1") is False
    assert store.bucket_names() == ["v0"]
    assert store.keys("v1") == []


def test_store_persists_across_instances(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "cache.sqlite3"
    CacheStore(db).put("v1", "a", _resp("a"))
    reopened = CacheStore(db)
    assert reopened.bucket_names() == ["v1"]
    assert reopened.match("v1", "a") is not None
