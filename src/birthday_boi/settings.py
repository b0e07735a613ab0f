from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SCAN_INTERVAL_SECONDS = 60 * 60


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    database_path: Path
    scan_interval_seconds: int
    scan_on_startup: bool


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    if not raw.strip().isdecimal() or int(raw) <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return int(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be true or false")


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")
    database_path = Path(os.getenv("DATABASE_PATH", root / "data" / "birthdays.sqlite3"))

    return Settings(
        telegram_bot_token=token,
        database_path=database_path,
        scan_interval_seconds=_positive_int_env("SCAN_INTERVAL_SECONDS", DEFAULT_SCAN_INTERVAL_SECONDS),
        scan_on_startup=_bool_env("SCAN_ON_STARTUP", False),
    )
