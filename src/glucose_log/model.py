"""Modelos tipados para lecturas de glucosa y vistas derivadas."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

FASTING = "Fasting"
PRE_MEAL = "Pre-Meal"
POST_MEAL = "Post-Meal"
PERIODS: tuple[str, ...] = (FASTING, PRE_MEAL, POST_MEAL)


@dataclass(frozen=True)
class Reading:
    """One glucose measurement (mmol/L) at an absolute instant."""

    id: str
    value: float
    timestamp: datetime
    period: str = FASTING
    note: str | None = None


@dataclass(frozen=True)
class Summary:
    """Overall vs recent averages (one decimal)."""

    average: float
    recent_average: float
    trend: float


@dataclass(frozen=True)
class ChartPoint:
    """Per-period daily means for one calendar day; None means no data."""

    day: date
    label: str
    fasting: float | None = None
    pre_meal: float | None = None
    post_meal: float | None = None

    def value_for(self, period: str) -> float | None:
        """Return the mean stored for ``period``."""
        if period == FASTING:
            return self.fasting
        if period == PRE_MEAL:
            return self.pre_meal
        if period == POST_MEAL:
            return self.post_meal
        raise ValueError(f"Unknown period: {period}")


def normalize_period(raw: object) -> str:
    """Map a stored period to a known one; anything else becomes Fasting."""
    if isinstance(raw, str) and raw in PERIODS:
        return raw
    return FASTING


def ensure_aware(ts: datetime, local_tz: tzinfo) -> datetime:
    """Naive datetimes are wall-clock times in ``local_tz``."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=local_tz)
    return ts


def local_time(ts: datetime, local_tz: tzinfo) -> datetime:
    """Convert a reading timestamp to local wall-clock time."""
    return ensure_aware(ts, local_tz).astimezone(local_tz)


def sort_newest_first(readings: list[Reading] | tuple[Reading, ...]) -> list[Reading]:
    """Descending by instant; ties keep their input order."""
    return sorted(readings, key=lambda r: r.timestamp.timestamp(), reverse=True)


def new_reading(
    value: float,
    timestamp: datetime,
    period: str,
    note: str | None = None,
    reading_id: str | None = None,
) -> Reading:
    """Build a client-side draft reading.

    Args:
        value: Measurement in mmol/L.
        timestamp: Time of the reading (should be timezone-aware).
        period: One of ``PERIODS``.
        note: Optional free text; blank notes are dropped.
        reading_id: Existing id when editing; a new UUID otherwise.

    Returns:
        The draft reading.

    Raises:
        ValueError: If ``period`` is not a known period.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    clean_note = note.strip() if note else ""
    return Reading(
        id=reading_id or str(uuid.uuid4()),
        value=float(value),
        timestamp=timestamp,
        period=period,
        note=clean_note or None,
    )
