"""Filtros del historial (fecha, periodo, categoria, texto) y paginacion."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from dateutil import tz

from glucose_log.model import PERIODS, Reading, local_time

TARGET_LOW = 4.4
TARGET_HIGH = 7.8

LOW = "low"
GOOD = "good"
HIGH = "high"
CATEGORIES: tuple[str, ...] = (LOW, GOOD, HIGH)

PAGE_SIZE = 10


@dataclass(frozen=True)
class FilterParams:
    """Active history filters. ``None`` or blank means inactive."""

    search_term: str | None = None
    period: str | None = None
    category: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class Page:
    """One page of the filtered history."""

    items: tuple[Reading, ...]
    page: int
    total_pages: int
    total: int
    start_index: int
    end_index: int


def category_for(value: float) -> str:
    """Classify a reading against the fixed 4.4-7.8 mmol/L target range."""
    if value < TARGET_LOW:
        return LOW
    if value > TARGET_HIGH:
        return HIGH
    return GOOD


def format_number(value: float) -> str:
    """Plain decimal text: 5.7 -> ``5.7``, 6.0 -> ``6``."""
    text = repr(float(value))
    if text.endswith(".0"):
        return text[:-2]
    return text


def long_date(moment: datetime) -> str:
    """``Friday, May 17, 2024``."""
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"


def short_time(moment: datetime) -> str:
    """``7:45 AM``."""
    hour = moment.hour % 12 or 12
    suffix = "PM" if moment.hour >= 12 else "AM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def filter_readings(
    readings: Sequence[Reading],
    params: FilterParams,
    local_tz: tzinfo | None = None,
) -> list[Reading]:
    """Keep readings matching every active filter, in input order.

    Args:
        readings: Readings to filter.
        params: Active filters.
        local_tz: Zone used for calendar dates and text rendering.

    Returns:
        Matching readings.

    Raises:
        ValueError: If the period or category filter is not a known value.
    """
    _validate(params)
    zone = local_tz or tz.tzlocal()
    term = (params.search_term or "").strip().lower()

    out: list[Reading] = []
    for reading in readings:
        moment = local_time(reading.timestamp, zone)
        day = moment.date()
        if params.start_date is not None and day < params.start_date:
            continue
        if params.end_date is not None and day > params.end_date:
            continue
        if params.period and reading.period != params.period:
            continue
        if params.category and category_for(reading.value) != params.category:
            continue
        if term and not _matches_text(reading, moment, term):
            continue
        out.append(reading)
    return out


def _matches_text(reading: Reading, moment: datetime, term: str) -> bool:
    fields = (
        reading.period,
        reading.note or "",
        format_number(reading.value),
        long_date(moment),
        short_time(moment),
    )
    return any(term in field.lower() for field in fields)


def _validate(params: FilterParams) -> None:
    if params.period and params.period not in PERIODS:
        raise ValueError(f"Unknown period: {params.period}")
    if params.category and params.category not in CATEGORIES:
        raise ValueError(f"Unknown category: {params.category}")


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages; an empty result still has one page."""
    return max(1, math.ceil(total / page_size))


def clamp_page(page: int, total: int, page_size: int = PAGE_SIZE) -> int:
    return min(max(page, 1), page_count(total, page_size))


def paginate(
    readings: Sequence[Reading], page: int, page_size: int = PAGE_SIZE
) -> Page:
    """Slice one page, clamping ``page`` to the available range."""
    total = len(readings)
    current = clamp_page(page, total, page_size)
    start = (current - 1) * page_size
    items = tuple(readings[start : start + page_size])
    return Page(
        items=items,
        page=current,
        total_pages=page_count(total, page_size),
        total=total,
        start_index=start + 1 if total else 0,
        end_index=min(total, current * page_size) if total else 0,
    )
