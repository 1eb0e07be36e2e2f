"""Estadisticas de resumen y series diarias por periodo para el grafico."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date, tzinfo

import pandas as pd
from dateutil import tz

from glucose_log.model import (
    FASTING,
    PERIODS,
    POST_MEAL,
    PRE_MEAL,
    ChartPoint,
    Reading,
    Summary,
    local_time,
)

RECENT_COUNT = 3
CHART_DAYS = 8

_FRAME_COLUMNS = ["id", "instant", "datetime", "date", "value", "period", "note"]


def round_tenth(value: float) -> float:
    """Round to one decimal, halves going up (5.65 -> 5.7, -0.05 -> 0.0)."""
    return math.floor(value * 10 + 0.5) / 10


def readings_to_frame(
    readings: Sequence[Reading], local_tz: tzinfo | None = None
) -> pd.DataFrame:
    """Convert readings to a DataFrame with local date/time, oldest first."""
    zone = local_tz or tz.tzlocal()
    rows = [
        {
            "id": r.id,
            "instant": r.timestamp.timestamp(),
            "datetime": local_time(r.timestamp, zone),
            "date": local_time(r.timestamp, zone).date(),
            "value": float(r.value),
            "period": r.period,
            "note": r.note,
        }
        for r in readings
    ]
    df = pd.DataFrame(rows, columns=_FRAME_COLUMNS)
    if df.empty:
        return df
    return df.sort_values("instant", kind="mergesort").reset_index(drop=True)


def compute_summary(readings: Sequence[Reading]) -> Summary:
    """Overall mean, mean of the 3 newest readings and their difference.

    The trend is taken from the unrounded means, then rounded like the
    other two values. An empty collection yields zeros.
    """
    df = readings_to_frame(readings)
    if df.empty:
        return Summary(average=0.0, recent_average=0.0, trend=0.0)

    overall = float(df["value"].mean())
    newest = df.sort_values("instant", ascending=False, kind="mergesort")
    recent = float(newest.head(RECENT_COUNT)["value"].mean())
    return Summary(
        average=round_tenth(overall),
        recent_average=round_tenth(recent),
        trend=round_tenth(recent - overall),
    )


def compute_chart_series(
    readings: Sequence[Reading], local_tz: tzinfo | None = None
) -> list[ChartPoint]:
    """Bucket readings by local day and period for the last 8 days with data.

    Args:
        readings: Canonical readings, any order.
        local_tz: Zone used to derive calendar days.

    Returns:
        Chart points ordered oldest to newest. A period without readings on
        a day is ``None`` for that point, never zero.
    """
    df = readings_to_frame(readings, local_tz)
    if df.empty:
        return []

    table = df.pivot_table(
        index="date", columns="period", values="value", aggfunc="mean"
    ).reindex(columns=list(PERIODS))
    table = table.sort_index().tail(CHART_DAYS)

    points: list[ChartPoint] = []
    for day, row in table.iterrows():
        points.append(
            ChartPoint(
                day=day,
                label=short_day_label(day),
                fasting=_rounded_or_none(row[FASTING]),
                pre_meal=_rounded_or_none(row[PRE_MEAL]),
                post_meal=_rounded_or_none(row[POST_MEAL]),
            )
        )
    return points


def visible_periods(points: Sequence[ChartPoint]) -> list[str]:
    """Periods that have at least one value; empty series are not drawn."""
    return [
        period
        for period in PERIODS
        if any(point.value_for(period) is not None for point in points)
    ]


def short_day_label(day: date) -> str:
    """Axis label such as ``May 7``."""
    return f"{day:%b} {day.day}"


def _rounded_or_none(value: object) -> float | None:
    if value is None or pd.isna(value):
        return None
    return round_tenth(float(value))
