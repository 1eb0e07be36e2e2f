"""CLI para registrar lecturas de glucosa, revisar tendencias y exportar."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

from dateutil import parser as date_parser

from glucose_log.aggregate import (
    compute_chart_series,
    compute_summary,
    round_tenth,
    visible_periods,
)
from glucose_log.config import ConfigurationError, Settings
from glucose_log.excel_writer import ExcelLayout, write_readings_xlsx
from glucose_log.export import CSV_MIME_TYPE, NothingToExportError, write_csv_export
from glucose_log.filtering import (
    CATEGORIES,
    FilterParams,
    category_for,
    filter_readings,
    paginate,
)
from glucose_log.model import PERIODS, Reading, ensure_aware, local_time, new_reading
from glucose_log.offline_cache import (
    CacheInstallError,
    OfflineCacheController,
    OfflineFetchError,
    ShellRequest,
)
from glucose_log.reading_log import ReadingLog, UnknownReadingError
from glucose_log.sources.supabase import SupabaseConfig, SupabaseStore
from glucose_log.storage import CacheStore
from glucose_log.sync import SyncService


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--search", help="Texto libre (periodo, nota, valor, fecha).")
    parser.add_argument("--period", choices=PERIODS)
    parser.add_argument("--category", choices=CATEGORIES)
    parser.add_argument("--from", dest="start_date", type=date.fromisoformat)
    parser.add_argument("--to", dest="end_date", type=date.fromisoformat)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        prog="glucose-log",
        description="Registro de glucosa: resumen, grafico, historial y exportacion.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("summary", help="Promedio general, reciente y tendencia.")
    sub.add_parser("chart", help="Promedios diarios por periodo (ultimos 8 dias).")

    list_p = sub.add_parser("list", help="Historial filtrado y paginado.")
    _add_filter_args(list_p)
    list_p.add_argument("--page", type=int, default=1)

    add_p = sub.add_parser("add", help="Registrar una lectura.")
    add_p.add_argument("value", type=float, help="Valor en mmol/L.")
    add_p.add_argument("--period", choices=PERIODS, default=PERIODS[0])
    add_p.add_argument("--at", help="Fecha/hora ISO (default: ahora).")
    add_p.add_argument("--note")

    edit_p = sub.add_parser("edit", help="Editar una lectura existente.")
    edit_p.add_argument("id")
    edit_p.add_argument("--value", type=float)
    edit_p.add_argument("--period", choices=PERIODS)
    edit_p.add_argument("--at")
    edit_p.add_argument("--note")

    delete_p = sub.add_parser("delete", help="Borrar una lectura.")
    delete_p.add_argument("id")

    export_p = sub.add_parser("export", help="Exportar el historial filtrado.")
    _add_filter_args(export_p)
    export_p.add_argument("--format", choices=("csv", "xlsx"), default="csv")
    export_p.add_argument("--out-dir", type=Path)

    cache_p = sub.add_parser("cache", help="Cache offline del shell.")
    cache_p.add_argument("action", choices=("install", "activate", "fetch", "status"))
    cache_p.add_argument("url", nargs="?")

    return parser.parse_args(argv)


def build_sync(settings: Settings) -> SyncService:
    """Wire the reading log to the remote store (if configured)."""
    store = None
    if settings.has_remote_store:
        store = SupabaseStore(SupabaseConfig.from_settings(settings), settings.local_tz)
    return SyncService(ReadingLog(), store, local_tz=settings.local_tz)


def build_cache_controller(settings: Settings) -> OfflineCacheController:
    return OfflineCacheController(
        CacheStore(settings.cache_db_path),
        base_url=settings.shell_url,
        version=settings.cache_version,
        timeout=settings.timeout,
    )


def _filters(ns: argparse.Namespace) -> FilterParams:
    return FilterParams(
        search_term=ns.search,
        period=ns.period,
        category=ns.category,
        start_date=ns.start_date,
        end_date=ns.end_date,
    )


def _parse_when(raw: str | None, settings: Settings) -> datetime:
    if not raw:
        return datetime.now(tz=settings.local_tz)
    return ensure_aware(date_parser.isoparse(raw), settings.local_tz)


def _format_reading(reading: Reading, settings: Settings) -> str:
    moment = local_time(reading.timestamp, settings.local_tz)
    note = f"  {reading.note}" if reading.note else ""
    return (
        f"{reading.id}  {moment:%Y-%m-%d %H:%M}  {reading.period:<9}  "
        f"{round_tenth(reading.value):.1f} mmol/L  [{category_for(reading.value)}]{note}"
    )


def _print_summary(sync: SyncService, settings: Settings) -> None:
    readings = sync.log.readings
    summary = compute_summary(readings)
    if readings:
        latest = readings[0]
        moment = local_time(latest.timestamp, settings.local_tz)
        print(
            f"Latest: {round_tenth(latest.value):.1f} mmol/L "
            f"({latest.period}, {moment:%Y-%m-%d %H:%M})"
        )
    sign = "+" if summary.trend > 0 else ""
    print(f"Average: {summary.average:.1f} mmol/L")
    print(f"Recent average (last 3): {summary.recent_average:.1f} mmol/L")
    print(f"Trend: {sign}{summary.trend:.1f} mmol/L vs overall")


def _print_chart(sync: SyncService, settings: Settings) -> None:
    points = compute_chart_series(sync.log.readings, settings.local_tz)
    periods = visible_periods(points)
    if not points:
        print("No readings to chart yet.")
        return
    print("Day     " + "".join(f"{period:>11}" for period in periods))
    for point in points:
        cells = []
        for period in periods:
            value = point.value_for(period)
            cells.append(f"{value:>11.1f}" if value is not None else f"{'-':>11}")
        print(f"{point.label:<8}" + "".join(cells))


def _print_list(sync: SyncService, ns: argparse.Namespace, settings: Settings) -> None:
    filtered = filter_readings(sync.log.readings, _filters(ns), settings.local_tz)
    page = paginate(filtered, ns.page)
    for reading in page.items:
        print(_format_reading(reading, settings))
    print(
        f"Showing {page.start_index}-{page.end_index} of {page.total} "
        f"(page {page.page}/{page.total_pages})"
    )


def _run_cache(ns: argparse.Namespace, settings: Settings) -> int:
    controller = build_cache_controller(settings)
    try:
        if ns.action == "install":
            deleted = controller.start()
            print(f"OK: installed {controller.version}; removed {len(deleted)} stale caches")
        elif ns.action == "activate":
            deleted = controller.activate()
            print(f"OK: active {controller.version}; removed {deleted or 'none'}")
        elif ns.action == "fetch":
            if not ns.url:
                print("cache fetch requires a URL")
                return 2
            response = controller.handle_fetch(ShellRequest(ns.url))
            controller.drain()
            if response is not None:
                print(f"{response.status} {response.url} ({len(response.body)} bytes)")
        else:
            store = CacheStore(settings.cache_db_path)
            for name in store.bucket_names():
                marker = "*" if name == controller.version else " "
                print(f"{marker} {name}: {len(store.keys(name))} entries")
    finally:
        controller.close()
    return 0


def _edit(sync: SyncService, ns: argparse.Namespace, settings: Settings) -> Reading:
    current = sync.log.get(ns.id)
    if current is None:
        raise UnknownReadingError(ns.id)
    changes: dict[str, object] = {}
    if ns.value is not None:
        changes["value"] = ns.value
    if ns.period is not None:
        changes["period"] = ns.period
    if ns.at is not None:
        changes["timestamp"] = _parse_when(ns.at, settings)
    if ns.note is not None:
        changes["note"] = ns.note.strip() or None
    return replace(current, **changes)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the glucose log CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if ns.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 1

    if ns.command == "cache":
        try:
            return _run_cache(ns, settings)
        except (CacheInstallError, OfflineFetchError, RuntimeError) as exc:
            print(f"Cache error: {exc}")
            return 1

    sync = build_sync(settings)
    sync.load()
    if sync.sync_error:
        print(f"WARNING: {sync.sync_error}")

    try:
        if ns.command == "summary":
            _print_summary(sync, settings)
        elif ns.command == "chart":
            _print_chart(sync, settings)
        elif ns.command == "list":
            _print_list(sync, ns, settings)
        elif ns.command == "add":
            draft = new_reading(
                ns.value, _parse_when(ns.at, settings), ns.period, ns.note
            )
            print(sync.save(draft).message)
        elif ns.command == "edit":
            print(sync.update(_edit(sync, ns, settings)).message)
        elif ns.command == "delete":
            print(sync.delete(ns.id).message)
        elif ns.command == "export":
            filtered = filter_readings(
                sync.log.readings, _filters(ns), settings.local_tz
            )
            out_dir = ns.out_dir or settings.export_dir
            if ns.format == "xlsx":
                if not filtered:
                    raise NothingToExportError("No readings to export yet.")
                stamp = datetime.now(tz=settings.local_tz).strftime("%Y-%m-%d_%H-%M-%S")
                out_path = out_dir / f"glucose-readings-{stamp}.xlsx"
                write_readings_xlsx(filtered, out_path, ExcelLayout(), settings.local_tz)
                print(f"OK: Output: {out_path}")
            else:
                out_path = write_csv_export(filtered, out_dir, settings.local_tz)
                print(f"OK: Output: {out_path} ({CSV_MIME_TYPE})")
    except UnknownReadingError as exc:
        print(f"Unknown reading id: {exc.args[0]}")
        return 1
    except ValueError as exc:
        print(str(exc))
        return 1
    return 0
