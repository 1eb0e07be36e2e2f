"""Sincronizacion entre la coleccion local y el almacen remoto.

Cada mutacion intenta primero el almacen remoto; si falla (o no hay almacen
configurado) la coleccion local se actualiza igual y el resultado lo indica.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import tzinfo

from dateutil import tz

from glucose_log.config import ConfigurationError
from glucose_log.model import Reading
from glucose_log.reading_log import (
    DuplicateReadingError,
    ReadingLog,
    UnknownReadingError,
)
from glucose_log.sources.base import ReadingStore, RemoteStoreError
from glucose_log.sources.sample import sample_readings

logger = logging.getLogger(__name__)

DISMISS_AFTER_SECONDS = 4.0

NOT_CONFIGURED = "Supabase is not configured. Add your credentials to enable syncing."
SYNC_UNAVAILABLE = "Live sync unavailable. Showing the last cached sample."


@dataclass(frozen=True)
class Committed:
    """The remote store accepted the mutation."""

    reading: Reading | None
    message: str


@dataclass(frozen=True)
class LocalOnly:
    """Only the local collection changed."""

    reading: Reading | None
    reason: str
    message: str


MutationResult = Committed | LocalOnly


class StatusBoard:
    """Transient status text that disappears after a fixed delay."""

    def __init__(self, dismiss_after: float = DISMISS_AFTER_SECONDS) -> None:
        self._dismiss_after = dismiss_after
        self._text: str | None = None
        self._posted_at = 0.0

    def post(self, text: str, now: float | None = None) -> None:
        self._text = text
        self._posted_at = time.monotonic() if now is None else now

    def current(self, now: float | None = None) -> str | None:
        """Visible message, or None once dismissed."""
        if self._text is None:
            return None
        moment = time.monotonic() if now is None else now
        if moment - self._posted_at >= self._dismiss_after:
            self._text = None
        return self._text

    def clear(self) -> None:
        self._text = None


class SyncService:
    """Applies load/save/update/delete to the log and the remote store."""

    def __init__(
        self,
        log: ReadingLog,
        store: ReadingStore | None,
        status: StatusBoard | None = None,
        local_tz: tzinfo | None = None,
    ) -> None:
        self.log = log
        self.status = status or StatusBoard()
        self.sync_error: str | None = None
        self._local_tz = local_tz or tz.tzlocal()
        self._loaded = False
        self._store = self._usable_store(store)

    @property
    def is_remote(self) -> bool:
        return self._store is not None

    def _usable_store(self, store: ReadingStore | None) -> ReadingStore | None:
        if store is None:
            return None
        try:
            store.validate()
        except ConfigurationError as exc:
            logger.warning("%s", exc)
            return None
        return store

    def load(self) -> bool:
        """Load readings from the store.

        Returns:
            True when live data was loaded; False when the sample set or the
            previously loaded data is shown instead (see ``sync_error``).
        """
        if self._store is None:
            logger.warning("No remote store configured; using the sample readings")
            self.log.load(sample_readings(self._local_tz))
            self.sync_error = NOT_CONFIGURED
            return False
        try:
            readings = self._store.fetch_all()
        except RemoteStoreError as exc:
            logger.error("Unable to load readings: %s", exc)
            if not self._loaded:
                self.log.load(sample_readings(self._local_tz))
            self.sync_error = SYNC_UNAVAILABLE
            return False
        self.log.load(readings)
        self._loaded = True
        self.sync_error = None
        return True

    def save(self, draft: Reading) -> MutationResult:
        """Insert a new reading.

        Raises:
            DuplicateReadingError: If the id is already in the log.
        """
        if draft.id in self.log:
            raise DuplicateReadingError(draft.id)
        if self._store is None:
            self.log.insert(draft)
            return self._local(draft, "Supabase not configured. Entry kept locally for now.")
        try:
            saved = self._store.insert(draft) or draft
        except RemoteStoreError as exc:
            logger.error("Unable to save reading %s: %s", draft.id, exc)
            self.log.insert(draft)
            return self._local(draft, "Could not save to Supabase. Please retry.", exc)
        self.log.insert(saved)
        self.sync_error = None
        return self._committed(saved, "Reading saved to Supabase.")

    def update(self, draft: Reading) -> MutationResult:
        """Replace an existing reading (same id).

        Raises:
            UnknownReadingError: If the id is not in the log.
        """
        if draft.id not in self.log:
            raise UnknownReadingError(draft.id)
        if self._store is None:
            self.log.update(draft)
            return self._local(draft, "Supabase not configured. Entry kept locally for now.")
        try:
            updated = self._store.update(draft) or draft
        except RemoteStoreError as exc:
            logger.error("Unable to update reading %s: %s", draft.id, exc)
            self.log.update(draft)
            return self._local(draft, "Could not update on Supabase. Please retry.", exc)
        self.log.update(updated)
        self.sync_error = None
        return self._committed(updated, "Reading updated.")

    def delete(self, reading_id: str) -> MutationResult:
        """Remove a reading.

        Raises:
            UnknownReadingError: If the id is not in the log.
        """
        if reading_id not in self.log:
            raise UnknownReadingError(reading_id)
        if self._store is None:
            removed = self.log.delete(reading_id)
            return self._local(removed, "Supabase not configured. Removed locally only.")
        try:
            self._store.delete(reading_id)
        except RemoteStoreError as exc:
            logger.error("Unable to delete reading %s: %s", reading_id, exc)
            removed = self.log.delete(reading_id)
            return self._local(removed, "Could not delete from Supabase. Please retry.", exc)
        removed = self.log.delete(reading_id)
        return self._committed(removed, "Reading deleted.")

    def _committed(self, reading: Reading | None, message: str) -> Committed:
        self.status.post(message)
        return Committed(reading=reading, message=message)

    def _local(
        self, reading: Reading | None, reason: str, error: Exception | None = None
    ) -> LocalOnly:
        message = f"{reason} ({error})" if error and str(error) else reason
        self.status.post(message)
        return LocalOnly(reading=reading, reason=reason, message=message)
