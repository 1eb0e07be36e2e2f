"""Lecturas de ejemplo usadas cuando no hay almacen remoto."""

from __future__ import annotations

from datetime import tzinfo

from glucose_log.model import Reading
from glucose_log.sources.base import row_to_reading

_SAMPLE_ROWS: tuple[dict[str, object], ...] = (
    {"id": "1", "value": 5.7, "reading_date": "2024-05-17T07:45", "period": "Fasting"},
    {"id": "2", "value": 7.7, "reading_date": "2024-05-16T12:15", "period": "Post-Meal"},
    {"id": "3", "value": 6.6, "reading_date": "2024-05-15T18:05", "period": "Pre-Meal"},
    {
        "id": "4",
        "value": 5.3,
        "reading_date": "2024-05-15T07:20",
        "period": "Fasting",
        "note": "Light walk + half portion breakfast",
    },
)


def sample_readings(local_tz: tzinfo) -> list[Reading]:
    """The bundled seed set, as local wall-clock readings."""
    return [row_to_reading(dict(row), local_tz) for row in _SAMPLE_ROWS]
