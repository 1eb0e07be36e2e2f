"""Exportacion CSV del historial filtrado."""

from __future__ import annotations

import csv
import logging
from collections.abc import Sequence
from datetime import datetime, timezone, tzinfo
from pathlib import Path

import pandas as pd
from dateutil import tz

from glucose_log.aggregate import round_tenth
from glucose_log.model import Reading, local_time, sort_newest_first

logger = logging.getLogger(__name__)

CSV_MIME_TYPE = "text/csv"
CSV_HEADER = ["Reading Date", "Reading Time", "Period", "Value (mmol/L)", "Note"]
ROW_SEPARATOR = "\r\n"


class NothingToExportError(ValueError):
    """Raised when an export is requested for an empty selection."""


def meridiem_time(moment: datetime) -> str:
    """12-hour clock, zero padded: ``07:05 AM``."""
    hour = moment.hour % 12 or 12
    suffix = "PM" if moment.hour >= 12 else "AM"
    return f"{hour:02d}:{moment.minute:02d} {suffix}"


def readings_to_csv(
    readings: Sequence[Reading], local_tz: tzinfo | None = None
) -> str:
    """Serialize readings newest first; every cell quoted, CRLF rows.

    Raises:
        NothingToExportError: If ``readings`` is empty.
    """
    if not readings:
        raise NothingToExportError("No readings to export yet.")
    zone = local_tz or tz.tzlocal()
    rows = []
    for reading in sort_newest_first(list(readings)):
        moment = local_time(reading.timestamp, zone)
        rows.append(
            [
                moment.date().isoformat(),
                meridiem_time(moment),
                reading.period,
                f"{round_tenth(reading.value):.1f}",
                reading.note or "",
            ]
        )
    df = pd.DataFrame(rows, columns=CSV_HEADER)
    text = df.to_csv(
        index=False, quoting=csv.QUOTE_ALL, lineterminator=ROW_SEPARATOR
    )
    return text.removesuffix(ROW_SEPARATOR)


def export_filename(now: datetime | None = None) -> str:
    """``glucose-readings-2024-05-17T07-45-00-000Z.csv`` style name."""
    moment = (now or datetime.now(tz=timezone.utc)).astimezone(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
    return f"glucose-readings-{stamp.replace(':', '-').replace('.', '-')}.csv"


def write_csv_export(
    readings: Sequence[Reading],
    out_dir: Path,
    local_tz: tzinfo | None = None,
    now: datetime | None = None,
) -> Path:
    """Write the CSV export into ``out_dir`` and return its path."""
    text = readings_to_csv(readings, local_tz)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / export_filename(now)
    out_path.write_text(text, encoding="utf-8", newline="")
    logger.info("Exported %d readings to %s", len(readings), out_path)
    return out_path
