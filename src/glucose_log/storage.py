"""Persistencia SQLite para los buckets de cache del shell offline."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS cache_buckets (
    name TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cache_entries (
    bucket TEXT NOT NULL,
    request_key TEXT NOT NULL,
    url TEXT NOT NULL,
    status INTEGER NOT NULL,
    headers TEXT NOT NULL,
    body BLOB NOT NULL,
    stored_at TEXT NOT NULL,
    PRIMARY KEY (bucket, request_key),
    FOREIGN KEY(bucket) REFERENCES cache_buckets(name)
);
"""


@dataclass(frozen=True)
class ShellResponse:
    """A response as stored in (or served from) the cache."""

    url: str
    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    opaque: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class CacheStore:
    """Named buckets of request key -> response, kept in one SQLite file."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            self._migrate(conn)
            conn.commit()

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Register buckets that only exist through their entries."""
        conn.execute(
            """
            INSERT OR IGNORE INTO cache_buckets(name, created_at)
            SELECT DISTINCT bucket, MIN(stored_at) FROM cache_entries GROUP BY bucket
            """
        )

    def open_bucket(self, name: str) -> None:
        """Create the bucket if needed."""
        with self._connect() as conn:
            _ensure_bucket(conn, name)
            conn.commit()

    def bucket_names(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT name FROM cache_buckets ORDER BY created_at, name"
            ).fetchall()
        return [str(row["name"]) for row in rows]

    def delete_bucket(self, name: str) -> bool:
        """Drop a bucket and its entries. Returns False if it did not exist."""
        with self._connect() as conn:
            conn.execute("DELETE FROM cache_entries WHERE bucket = ?", (name,))
            cur = conn.execute("DELETE FROM cache_buckets WHERE name = ?", (name,))
            conn.commit()
        return cur.rowcount > 0

    def keys(self, bucket: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT request_key FROM cache_entries WHERE bucket = ? "
                "ORDER BY request_key",
                (bucket,),
            ).fetchall()
        return [str(row["request_key"]) for row in rows]

    def match(self, bucket: str, request_key: str) -> ShellResponse | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT url, status, headers, body FROM cache_entries
                WHERE bucket = ? AND request_key = ?
                """,
                (bucket, request_key),
            ).fetchone()
        if row is None:
            return None
        return ShellResponse(
            url=row["url"],
            status=int(row["status"]),
            body=bytes(row["body"]),
            headers=json.loads(row["headers"]),
        )

    def put(self, bucket: str, request_key: str, response: ShellResponse) -> None:
        """Store one entry, replacing any previous one for the key."""
        self.put_many(bucket, [(request_key, response)])

    def put_many(
        self, bucket: str, entries: Iterable[tuple[str, ShellResponse]]
    ) -> None:
        """Store several entries in a single transaction."""
        stored_at = datetime.now().isoformat(timespec="seconds")
        rows = [
            (
                bucket,
                key,
                resp.url,
                resp.status,
                json.dumps(resp.headers, sort_keys=True),
                sqlite3.Binary(resp.body),
                stored_at,
            )
            for key, resp in entries
        ]
        with self._connect() as conn:
            _ensure_bucket(conn, bucket)
            conn.executemany(
                """
                INSERT INTO cache_entries(
                    bucket, request_key, url, status, headers, body, stored_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(bucket, request_key) DO UPDATE SET
                    url=excluded.url,
                    status=excluded.status,
                    headers=excluded.headers,
                    body=excluded.body,
                    stored_at=excluded.stored_at
                """,
                rows,
            )
            conn.commit()


def _ensure_bucket(conn: sqlite3.Connection, name: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO cache_buckets(name, created_at) VALUES (?, ?)",
        (name, datetime.now().isoformat(timespec="seconds")),
    )
