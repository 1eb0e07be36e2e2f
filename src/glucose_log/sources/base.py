"""Clases base para el almacen remoto de lecturas."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import tzinfo
from typing import Any

from dateutil import parser as date_parser

from glucose_log.model import Reading, ensure_aware, normalize_period

ROW_FIELDS = "id,value,reading_date,period,note"


class RemoteStoreError(RuntimeError):
    """A query or mutation against the remote store failed."""


class ReadingStore(ABC):
    """Row-oriented store for one table of readings."""

    @abstractmethod
    def validate(self) -> None:
        """Check the store is usable.

        Raises:
            ConfigurationError: If credentials are missing.
        """

    @abstractmethod
    def fetch_all(self) -> list[Reading]:
        """Return every reading, newest first."""

    @abstractmethod
    def insert(self, reading: Reading) -> Reading | None:
        """Insert ``reading``; returns the stored copy when the store echoes it."""

    @abstractmethod
    def update(self, reading: Reading) -> Reading | None:
        """Update the row with ``reading.id``."""

    @abstractmethod
    def delete(self, reading_id: str) -> None:
        """Delete the row with ``reading_id``."""


def row_to_reading(row: dict[str, Any], local_tz: tzinfo) -> Reading:
    """Convert a ``{id, value, reading_date, period, note}`` row.

    Unknown periods default to Fasting; naive dates are local wall time.

    Raises:
        ValueError: If the row has no id, value or reading date.
    """
    if row.get("id") is None or row.get("value") is None:
        raise ValueError(f"Incomplete reading row: {row!r}")
    raw_date = row.get("reading_date")
    if not isinstance(raw_date, str) or not raw_date.strip():
        raise ValueError(f"Missing reading_date: {row!r}")
    note = row.get("note")
    return Reading(
        id=str(row["id"]),
        value=float(row["value"]),
        timestamp=ensure_aware(date_parser.isoparse(raw_date), local_tz),
        period=normalize_period(row.get("period")),
        note=str(note) if note else None,
    )


def reading_to_row(reading: Reading, local_tz: tzinfo) -> dict[str, Any]:
    """Payload for insert/update; the date is sent as an ISO-8601 instant."""
    return {
        "id": reading.id,
        "value": reading.value,
        "reading_date": ensure_aware(reading.timestamp, local_tz).isoformat(),
        "period": reading.period,
        "note": reading.note,
    }
