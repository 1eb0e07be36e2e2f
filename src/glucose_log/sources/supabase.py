"""Almacen remoto de lecturas sobre la API REST de Supabase (PostgREST)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

import requests
from requests.exceptions import RequestException

from glucose_log.config import ConfigurationError, Settings
from glucose_log.model import Reading
from glucose_log.sources.base import (
    ROW_FIELDS,
    ReadingStore,
    RemoteStoreError,
    reading_to_row,
    row_to_reading,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupabaseConfig:
    """Connection details for the readings table."""

    url: str
    key: str
    table: str = "glucose_entries"
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> SupabaseConfig:
        return cls(
            url=settings.supabase_url,
            key=settings.supabase_key,
            table=settings.table,
            timeout=settings.timeout,
        )


class SupabaseStore(ReadingStore):
    """Readings table accessed through ``/rest/v1/<table>``."""

    def __init__(
        self,
        config: SupabaseConfig,
        local_tz: tzinfo,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config
        self._local_tz = local_tz
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self._config.url.rstrip('/')}/rest/v1/{self._config.table}"

    def validate(self) -> None:
        """Raise ConfigurationError when the URL or key is missing."""
        if not self._config.url or not self._config.key:
            raise ConfigurationError(
                "Supabase credentials are missing. Set SUPABASE_URL and "
                "SUPABASE_ANON_KEY to enable syncing."
            )

    def fetch_all(self) -> list[Reading]:
        rows = self._request(
            "GET",
            params={"select": ROW_FIELDS, "order": "reading_date.desc"},
        )
        return [self._to_reading(row) for row in rows or []]

    def insert(self, reading: Reading) -> Reading | None:
        rows = self._request(
            "POST",
            params={"select": ROW_FIELDS},
            json=reading_to_row(reading, self._local_tz),
            prefer="return=representation",
        )
        return self._first(rows)

    def update(self, reading: Reading) -> Reading | None:
        """PATCH the row with the same id.

        Raises:
            RemoteStoreError: If no row matched (PostgREST answers 2xx with ``[]``).
        """
        rows = self._request(
            "PATCH",
            params={"id": f"eq.{reading.id}", "select": ROW_FIELDS},
            json=reading_to_row(reading, self._local_tz),
            prefer="return=representation",
        )
        if not rows:
            raise RemoteStoreError(f"No row with id {reading.id} to update")
        return self._first(rows)

    def delete(self, reading_id: str) -> None:
        rows = self._request(
            "DELETE",
            params={"id": f"eq.{reading_id}", "select": "id"},
            prefer="return=representation",
        )
        if not rows:
            raise RemoteStoreError(f"No row with id {reading_id} to delete")

    def _first(self, rows: Any) -> Reading | None:
        if not rows:
            return None
        return self._to_reading(rows[0])

    def _to_reading(self, row: dict[str, Any]) -> Reading:
        try:
            return row_to_reading(row, self._local_tz)
        except (TypeError, ValueError) as exc:
            raise RemoteStoreError(f"Malformed row from Supabase: {exc}") from exc

    def _headers(self, prefer: str | None) -> dict[str, str]:
        headers = {
            "apikey": self._config.key,
            "Authorization": f"Bearer {self._config.key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        *,
        params: dict[str, str],
        json: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request and decode the JSON body.

        Raises:
            ConfigurationError: If credentials are missing.
            RemoteStoreError: On network, HTTP or decoding failures.
        """
        self.validate()
        try:
            response = self._session.request(
                method,
                self.endpoint,
                params=params,
                json=json,
                headers=self._headers(prefer),
                timeout=self._config.timeout,
            )
            response.raise_for_status()
        except RequestException as exc:
            logger.warning("Supabase %s %s failed: %s", method, self.endpoint, exc)
            raise RemoteStoreError(str(exc)) from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"Invalid JSON from Supabase: {exc}") from exc
