"""Coleccion canonica de lecturas en memoria (un solo escritor)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from glucose_log.model import Reading, sort_newest_first


class DuplicateReadingError(ValueError):
    """Raised when inserting a reading whose id already exists."""


class UnknownReadingError(KeyError):
    """Raised when updating or deleting an id that is not in the log."""


class ReadingLog:
    """Owns the reading list; every mutation goes through its methods."""

    def __init__(self, readings: Iterable[Reading] = ()) -> None:
        self._items: list[Reading] = []
        self.load(readings)

    @property
    def readings(self) -> tuple[Reading, ...]:
        """Readings, newest first."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Reading]:
        return iter(tuple(self._items))

    def __contains__(self, reading_id: object) -> bool:
        return any(r.id == reading_id for r in self._items)

    def get(self, reading_id: str) -> Reading | None:
        for reading in self._items:
            if reading.id == reading_id:
                return reading
        return None

    def load(self, readings: Iterable[Reading]) -> None:
        """Replace the whole collection. Later duplicates of an id win."""
        by_id: dict[str, Reading] = {}
        for reading in readings:
            by_id[reading.id] = reading
        self._items = sort_newest_first(list(by_id.values()))

    def insert(self, reading: Reading) -> None:
        if reading.id in self:
            raise DuplicateReadingError(reading.id)
        self._items = sort_newest_first([reading, *self._items])

    def update(self, reading: Reading) -> Reading:
        """Replace the reading with the same id; returns the previous copy."""
        previous = self.get(reading.id)
        if previous is None:
            raise UnknownReadingError(reading.id)
        self._items = sort_newest_first(
            [reading if r.id == reading.id else r for r in self._items]
        )
        return previous

    def delete(self, reading_id: str) -> Reading:
        removed = self.get(reading_id)
        if removed is None:
            raise UnknownReadingError(reading_id)
        self._items = [r for r in self._items if r.id != reading_id]
        return removed
