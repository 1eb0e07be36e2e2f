"""Configuracion del logger de glucosa leida desde variables de entorno."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path

from dateutil import tz

DEFAULT_TABLE = "glucose_entries"
DEFAULT_CACHE_VERSION = "sgt-cache-v1"
DEFAULT_SHELL_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 10.0


class ConfigurationError(RuntimeError):
    """Raised when the environment holds an unusable setting."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the CLI and the sync layer."""

    supabase_url: str
    supabase_key: str
    table: str
    local_tz: tzinfo
    home: Path
    shell_url: str
    cache_version: str
    timeout: float

    @property
    def has_remote_store(self) -> bool:
        """True when both remote store credentials are present."""
        return bool(self.supabase_url and self.supabase_key)

    @property
    def cache_db_path(self) -> Path:
        return self.home / "offline_cache.sqlite3"

    @property
    def export_dir(self) -> Path:
        return self.home / "exports"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``environ`` (defaults to ``os.environ``).

        Raises:
            ConfigurationError: If the time zone or timeout cannot be parsed.
        """
        env = os.environ if environ is None else environ
        return cls(
            supabase_url=env.get("SUPABASE_URL", "").strip().rstrip("/"),
            supabase_key=env.get("SUPABASE_ANON_KEY", "").strip(),
            table=env.get("GLUCOSE_LOG_TABLE", DEFAULT_TABLE).strip() or DEFAULT_TABLE,
            local_tz=_parse_tz(env.get("GLUCOSE_LOG_TZ", "")),
            home=Path(
                env.get("GLUCOSE_LOG_HOME", "") or Path.home() / ".glucose_log"
            ).expanduser(),
            shell_url=env.get("GLUCOSE_LOG_SHELL_URL", DEFAULT_SHELL_URL).rstrip("/"),
            cache_version=env.get("GLUCOSE_LOG_CACHE_VERSION", DEFAULT_CACHE_VERSION),
            timeout=_parse_timeout(env.get("GLUCOSE_LOG_TIMEOUT", "")),
        )


def _parse_tz(raw: str) -> tzinfo:
    name = raw.strip()
    if not name:
        return tz.tzlocal()
    zone = tz.gettz(name)
    if zone is None:
        raise ConfigurationError(f"Unknown time zone: {name}")
    return zone


def _parse_timeout(raw: str) -> float:
    if not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid timeout: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Timeout must be positive: {raw}")
    return value
