from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple


DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class BirthdayRecord:
    community_id: int
    user_id: int
    day: int
    month: int
    year: int | None = None
    timezone: str = DEFAULT_TIMEZONE
    display_name: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class CommunityConfig:
    community_id: int
    announcement_destination_id: int | None


class LocalDate(NamedTuple):
    day: int
    month: int
    year: int


class LedgerKey(NamedTuple):
    community_id: int
    user_id: int
    local_day: int
    local_month: int
