"""Generacion de Excel formateado para compartir con el equipo medico."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any

import pandas as pd
from dateutil import tz
from openpyxl.styles import Alignment, Border, Font, Side

from glucose_log.filtering import category_for
from glucose_log.model import Reading, local_time, sort_newest_first

_WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_COLUMNS: tuple[str, ...] = (
    "Day",
    "Date / Time",
    "Period",
    "Value (mmol/L)",
    "Category",
    "Note",
)

_WIDTHS: dict[str, int] = {
    "Day": 6,
    "Date / Time": 18,
    "Period": 12,
    "Value (mmol/L)": 14,
    "Category": 10,
    "Note": 40,
}

_NUMBER_FORMATS: dict[str, str] = {
    "Date / Time": "yyyy-mm-dd hh:mm",
    "Value (mmol/L)": "0.0",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the care-team sheet."""

    sheet_name: str = "Glucose readings"


def readings_to_sheet_frame(
    readings: Sequence[Reading], local_tz: tzinfo | None = None
) -> pd.DataFrame:
    """One row per reading, newest first, with naive local datetimes."""
    zone = local_tz or tz.tzlocal()
    rows = []
    for reading in sort_newest_first(list(readings)):
        moment = local_time(reading.timestamp, zone)
        rows.append(
            {
                "Day": _WEEKDAYS[moment.weekday()],
                "Date / Time": moment.replace(tzinfo=None, second=0, microsecond=0),
                "Period": reading.period,
                "Value (mmol/L)": reading.value,
                "Category": category_for(reading.value),
                "Note": reading.note or "",
            }
        )
    return pd.DataFrame(rows, columns=list(_COLUMNS))


def write_readings_xlsx(
    readings: Sequence[Reading],
    out_path: Path,
    layout: ExcelLayout,
    local_tz: tzinfo | None = None,
) -> None:
    """Write a formatted Excel file suitable for printing.

    Args:
        readings: Readings to export (usually the filtered history).
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
        local_tz: Zone used for the Day and Date / Time columns.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    export_df = readings_to_sheet_frame(readings, local_tz)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws)


def _style_rows(ws: Any) -> None:
    """Bold bordered header; centered bordered body rows."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = center
        cell.border = border
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border


def _header_index(ws: Any) -> dict[str, int]:
    """Header name -> 1-based column index."""
    return {str(cell.value): idx + 1 for idx, cell in enumerate(ws[1])}


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_rows(ws)
    col_index = _header_index(ws)
    for header, width in _WIDTHS.items():
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width
    for row in ws.iter_rows(min_row=2):
        for header, fmt in _NUMBER_FORMATS.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt
