from datetime import datetime, timezone
from pathlib import Path

import pytest

from birthday_boi.main import seconds_until_next_tick
from birthday_boi.settings import load_settings


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " token ")
    monkeypatch.delenv("DATABASE_PATH", raising=False)
    monkeypatch.delenv("SCAN_INTERVAL_SECONDS", raising=False)
    monkeypatch.delenv("SCAN_ON_STARTUP", raising=False)

    settings = load_settings()

    assert settings.telegram_bot_token == "token"
    assert settings.database_path == Path.cwd() / "data" / "birthdays.sqlite3"
    assert settings.scan_interval_seconds == 3600
    assert settings.scan_on_startup is False


def test_load_settings_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "bot.db"))
    monkeypatch.setenv("SCAN_INTERVAL_SECONDS", "600")
    monkeypatch.setenv("SCAN_ON_STARTUP", "yes")

    settings = load_settings()

    assert settings.database_path == tmp_path / "bot.db"
    assert settings.scan_interval_seconds == 600
    assert settings.scan_on_startup is True


def test_load_settings_requires_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    with pytest.raises(ValueError):
        load_settings()


@pytest.mark.parametrize(("name", "value"), [("SCAN_INTERVAL_SECONDS", "0"), ("SCAN_ON_STARTUP", "maybe")])
def test_load_settings_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_settings()


def test_first_tick_lands_on_top_of_hour() -> None:
    assert seconds_until_next_tick(datetime(2024, 6, 15, 10, 20, tzinfo=timezone.utc), 3600) == 2400
    assert seconds_until_next_tick(datetime(2024, 6, 15, 11, 0, tzinfo=timezone.utc), 3600) == 3600
