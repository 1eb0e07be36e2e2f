from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any

import pytest
from dateutil import tz

from glucose_log.config import ConfigurationError
from glucose_log.model import FASTING, Reading
from glucose_log.reading_log import DuplicateReadingError, ReadingLog, UnknownReadingError
from glucose_log.sources.base import ReadingStore, RemoteStoreError
from glucose_log.sources.supabase import SupabaseConfig, SupabaseStore
from glucose_log.sync import (
    NOT_CONFIGURED,
    SYNC_UNAVAILABLE,
    Committed,
    LocalOnly,
    MutationResult,
    StatusBoard,
    SyncService,
)


def _reading(rid: str, value: float, iso: str) -> Reading:
    return Reading(
        id=rid,
        value=value,
        timestamp=datetime.fromisoformat(iso).replace(tzinfo=tz.UTC),
        period=FASTING,
    )


class _FakeStore(ReadingStore):
    def __init__(self, rows: list[Reading] | None = None) -> None:
        self.rows = list(rows or [])
        self.fail = False
        self.configured = True
        self.deleted: list[str] = []

    def _check(self) -> None:
        if self.fail:
            raise RemoteStoreError("server unavailable")

    def validate(self) -> None:
        if not self.configured:
            raise ConfigurationError("missing credentials")

    def fetch_all(self) -> list[Reading]:
        self._check()
        return list(self.rows)

    def insert(self, reading: Reading) -> Reading | None:
        self._check()
        stored = replace(reading, note="server")
        self.rows.append(stored)
        return stored

    def update(self, reading: Reading) -> Reading | None:
        self._check()
        return reading

    def delete(self, reading_id: str) -> None:
        self._check()
        self.deleted.append(reading_id)


class _RowlessResponse:
    status_code = 200
    content = b"[]"

    def raise_for_status(self) -> None:
        return None

    def json(self) -> list[dict[str, Any]]:
        return []


class _RowlessSession:
    """PostgREST reply when the id filter matches nothing."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _RowlessResponse:
        self.calls.append((method, kwargs))
        return _RowlessResponse()


def test_status_board_dismisses_after_four_seconds() -> None:
    board = StatusBoard()
    board.post("Reading saved.", now=100.0)
    assert board.current(now=103.9) == "Reading saved."
    assert board.current(now=104.0) is None
    assert board.current(now=200.0) is None


def test_load_without_store_uses_sample_set() -> None:
    sync = SyncService(ReadingLog(), None, local_tz=tz.UTC)
    assert sync.load() is False
    assert len(sync.log) == 4
    assert sync.sync_error == NOT_CONFIGURED
    assert sync.is_remote is False


def test_unconfigured_store_degrades_to_local_mode() -> None:
    store = _FakeStore()
    store.configured = False
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    assert sync.is_remote is False


def test_load_replaces_log_with_remote_rows() -> None:
    store = _FakeStore([_reading("a", 5.0, "2024-05-15T07:00")])
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    assert sync.load() is True
    assert [r.id for r in sync.log] == ["a"]
    assert sync.sync_error is None


def test_failed_first_load_falls_back_to_sample() -> None:
    store = _FakeStore()
    store.fail = True
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    assert sync.load() is False
    assert len(sync.log) == 4
    assert sync.sync_error == SYNC_UNAVAILABLE


def test_failed_reload_keeps_last_loaded_data() -> None:
    store = _FakeStore([_reading("a", 5.0, "2024-05-15T07:00")])
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.load()
    store.fail = True
    assert sync.load() is False
    assert [r.id for r in sync.log] == ["a"]
    assert sync.sync_error == SYNC_UNAVAILABLE


def test_save_commits_server_copy() -> None:
    store = _FakeStore()
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.load()

    result = sync.save(_reading("n", 6.1, "2024-05-18T07:00"))
    assert isinstance(result, Committed)
    assert isinstance(result, MutationResult)
    assert result.reading is not None and result.reading.note == "server"
    assert sync.log.get("n").note == "server"
    assert sync.status.current() == "Reading saved to Supabase."


def test_save_failure_keeps_draft_locally() -> None:
    store = _FakeStore()
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.load()
    store.fail = True

    draft = _reading("n", 6.1, "2024-05-18T07:00")
    result = sync.save(draft)
    assert isinstance(result, LocalOnly)
    assert result.reading == draft
    assert result.reason == "Could not save to Supabase. Please retry."
    assert "server unavailable" in result.message
    assert sync.log.get("n") == draft


def test_save_without_store_is_local_only() -> None:
    sync = SyncService(ReadingLog(), None, local_tz=tz.UTC)
    sync.load()
    result = sync.save(_reading("n", 6.1, "2024-05-18T07:00"))
    assert isinstance(result, LocalOnly)
    assert result.message == "Supabase not configured. Entry kept locally for now."
    assert len(sync.log) == 5


def test_save_rejects_duplicate_id() -> None:
    sync = SyncService(ReadingLog(), None, local_tz=tz.UTC)
    sync.load()
    with pytest.raises(DuplicateReadingError):
        sync.save(_reading("1", 6.1, "2024-05-18T07:00"))


def test_update_committed_and_local_only() -> None:
    store = _FakeStore([_reading("a", 5.0, "2024-05-15T07:00")])
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.load()

    ok = sync.update(_reading("a", 5.5, "2024-05-15T07:00"))
    assert isinstance(ok, Committed)
    assert sync.log.get("a").value == 5.5

    store.fail = True
    local = sync.update(_reading("a", 6.5, "2024-05-15T07:00"))
    assert isinstance(local, LocalOnly)
    assert local.reason == "Could not update on Supabase. Please retry."
    assert sync.log.get("a").value == 6.5


def test_edit_of_row_missing_on_server_stays_local() -> None:
    rows_session = _RowlessSession()
    store = SupabaseStore(
        SupabaseConfig(url="https://db.example.co", key="anon"),
        tz.UTC,
        session=rows_session,  # type: ignore[arg-type]
    )
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.log.insert(_reading("local-only", 5.0, "2024-05-15T07:00"))

    result = sync.update(_reading("local-only", 6.5, "2024-05-15T07:00"))
    assert isinstance(result, LocalOnly)
    assert result.reason == "Could not update on Supabase. Please retry."
    assert sync.log.get("local-only").value == 6.5

    removed = sync.delete("local-only")
    assert isinstance(removed, LocalOnly)
    assert removed.reason == "Could not delete from Supabase. Please retry."
    assert [m for m, _ in rows_session.calls] == ["PATCH", "DELETE"]


def test_update_unknown_id_raises() -> None:
    sync = SyncService(ReadingLog(), _FakeStore(), local_tz=tz.UTC)
    sync.load()
    with pytest.raises(UnknownReadingError):
        sync.update(_reading("missing", 5.0, "2024-05-15T07:00"))


def test_delete_committed_and_local_only() -> None:
    store = _FakeStore(
        [_reading("a", 5.0, "2024-05-15T07:00"), _reading("b", 6.0, "2024-05-16T07:00")]
    )
    sync = SyncService(ReadingLog(), store, local_tz=tz.UTC)
    sync.load()

    ok = sync.delete("a")
    assert isinstance(ok, Committed)
    assert ok.message == "Reading deleted."
    assert store.deleted == ["a"]

    store.fail = True
    local = sync.delete("b")
    assert isinstance(local, LocalOnly)
    assert local.reading is not None and local.reading.id == "b"
    assert len(sync.log) == 0

    with pytest.raises(UnknownReadingError):
        sync.delete("b")
