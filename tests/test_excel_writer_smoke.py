from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import cast

from dateutil import tz
from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from glucose_log.excel_writer import (
    ExcelLayout,
    _format_sheet,
    readings_to_sheet_frame,
    write_readings_xlsx,
)
from glucose_log.model import FASTING, POST_MEAL, Reading


def _reading(
    rid: str, value: float, iso: str, period: str = FASTING, note: str | None = None
) -> Reading:
    return Reading(
        id=rid,
        value=value,
        timestamp=datetime.fromisoformat(iso).replace(tzinfo=tz.UTC),
        period=period,
        note=note,
    )


def test_write_readings_xlsx_happy_path_and_formatting(tmp_path: Path) -> None:
    """Una fila por lectura, la mas reciente primero."""
    readings = [
        _reading("1", 5.7, "2024-05-16T07:45", FASTING, "walk"),
        _reading("2", 8.2, "2024-05-17T12:15", POST_MEAL),
    ]
    out = tmp_path / "nested" / "out.xlsx"
    write_readings_xlsx(readings, out, ExcelLayout(), tz.UTC)

    wb = load_workbook(out)
    ws = cast(Worksheet, wb[ExcelLayout().sheet_name])

    headers = [cell.value for cell in ws[1]]
    assert headers == ["Day", "Date / Time", "Period", "Value (mmol/L)", "Category", "Note"]

    assert ws.cell(row=2, column=1).value == "Fri"
    assert ws.cell(row=2, column=3).value == POST_MEAL
    assert ws.cell(row=2, column=4).value == 8.2
    assert ws.cell(row=2, column=5).value == "high"
    assert ws.cell(row=3, column=6).value == "walk"

    assert ws.column_dimensions["A"].width == 6
    note_letter = get_column_letter(headers.index("Note") + 1)
    assert ws.column_dimensions[note_letter].width == 40

    value_cell = ws.cell(row=2, column=headers.index("Value (mmol/L)") + 1)
    assert value_cell.number_format == "0.0"
    assert ws.cell(row=1, column=1).font.bold is True


def test_sheet_frame_uses_naive_local_datetimes() -> None:
    ba = tz.gettz("America/Argentina/Buenos_Aires")
    df = readings_to_sheet_frame([_reading("1", 5.0, "2024-05-17T01:00:30")], ba)
    assert df.loc[0, "Date / Time"] == datetime(2024, 5, 16, 22, 0)
    assert df.loc[0, "Day"] == "Thu"


def test_write_readings_xlsx_empty_writes_header_only(tmp_path: Path) -> None:
    out = tmp_path / "empty.xlsx"
    write_readings_xlsx([], out, ExcelLayout(), tz.UTC)
    ws = load_workbook(out)[ExcelLayout().sheet_name]
    assert ws.max_row == 1


def test_format_sheet_handles_missing_headers() -> None:
    wb = Workbook()
    ws = cast(Worksheet, wb.active)
    ws.append(["Solo"])
    ws.append([1])

    _format_sheet(ws)

    assert ws.cell(row=1, column=1).font.bold is True
    assert ws.cell(row=2, column=1).alignment.horizontal == "center"
