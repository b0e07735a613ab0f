from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from birthday_boi.errors import NotConfiguredError, StoreIOError
from birthday_boi.models import DEFAULT_TIMEZONE, BirthdayRecord, CommunityConfig

LOGGER = logging.getLogger(__name__)

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS communities (
    community_id INTEGER PRIMARY KEY,
    announcement_destination_id INTEGER
);

CREATE TABLE IF NOT EXISTS birthdays (
    community_id INTEGER NOT NULL
        REFERENCES communities (community_id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL,
    display_name TEXT NOT NULL DEFAULT '',
    day INTEGER NOT NULL,
    month INTEGER NOT NULL,
    year INTEGER,
    timezone TEXT NOT NULL DEFAULT '{DEFAULT_TIMEZONE}',
    created_at TEXT NOT NULL,
    PRIMARY KEY (community_id, user_id)
);
"""

_BIRTHDAY_COLUMNS = "community_id, user_id, display_name, day, month, year, timezone, created_at"


def _record_from_row(row: aiosqlite.Row) -> BirthdayRecord:
    created_at = row["created_at"]
    return BirthdayRecord(
        community_id=int(row["community_id"]),
        user_id=int(row["user_id"]),
        day=int(row["day"]),
        month=int(row["month"]),
        year=int(row["year"]) if row["year"] is not None else None,
        timezone=str(row["timezone"] or DEFAULT_TIMEZONE),
        display_name=str(row["display_name"] or ""),
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )


def _community_from_row(row: aiosqlite.Row) -> CommunityConfig:
    destination = row["announcement_destination_id"]
    return CommunityConfig(
        community_id=int(row["community_id"]),
        announcement_destination_id=int(destination) if destination is not None else None,
    )


class BirthdayStore:
    """Communities and their birthdays in one SQLite database.

    Every database failure is re-raised as StoreIOError.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(self._path) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            raise StoreIOError(f"Birthday store query failed: {exc}") from exc

    async def initialize(self) -> None:
        async with self._connect() as db:
            await db.executescript(SCHEMA)
            await db.commit()
        LOGGER.info("Birthday store ready at %s", self._path)

    async def list_communities(self) -> list[CommunityConfig]:
        async with self._connect() as db:
            async with db.execute(
                "SELECT community_id, announcement_destination_id FROM communities ORDER BY community_id"
            ) as cursor:
                rows = await cursor.fetchall()
        return [_community_from_row(row) for row in rows]

    async def get_community(self, community_id: int) -> CommunityConfig | None:
        async with self._connect() as db:
            async with db.execute(
                "SELECT community_id, announcement_destination_id FROM communities WHERE community_id = ?",
                (community_id,),
            ) as cursor:
                row = await cursor.fetchone()
        return _community_from_row(row) if row is not None else None

    async def upsert_community_config(self, community_id: int, destination_id: int | None) -> CommunityConfig:
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO communities (community_id, announcement_destination_id) VALUES (?, ?)
                ON CONFLICT (community_id) DO UPDATE
                SET announcement_destination_id = excluded.announcement_destination_id
                """,
                (community_id, destination_id),
            )
            await db.commit()
        return CommunityConfig(community_id=community_id, announcement_destination_id=destination_id)

    async def delete_community_and_data(self, community_id: int) -> bool:
        async with self._connect() as db:
            try:
                await db.execute("DELETE FROM birthdays WHERE community_id = ?", (community_id,))
                cursor = await db.execute("DELETE FROM communities WHERE community_id = ?", (community_id,))
                deleted = cursor.rowcount > 0
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise
        if deleted:
            LOGGER.info("Deleted community %s and all of its birthdays", community_id)
        return deleted

    async def list_birthdays(self, community_id: int) -> list[BirthdayRecord]:
        async with self._connect() as db:
            async with db.execute(
                f"SELECT {_BIRTHDAY_COLUMNS} FROM birthdays WHERE community_id = ? "
                "ORDER BY month, day, user_id",
                (community_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [_record_from_row(row) for row in rows]

    async def get_birthday(self, community_id: int, user_id: int) -> BirthdayRecord | None:
        async with self._connect() as db:
            async with db.execute(
                f"SELECT {_BIRTHDAY_COLUMNS} FROM birthdays WHERE community_id = ? AND user_id = ?",
                (community_id, user_id),
            ) as cursor:
                row = await cursor.fetchone()
        return _record_from_row(row) if row is not None else None

    async def upsert_birthday(self, record: BirthdayRecord) -> None:
        created_at = (record.created_at or datetime.now(timezone.utc)).isoformat()
        async with self._connect() as db:
            async with db.execute(
                "SELECT 1 FROM communities WHERE community_id = ?", (record.community_id,)
            ) as cursor:
                if await cursor.fetchone() is None:
                    raise NotConfiguredError(record.community_id)

            await db.execute(
                f"""
                INSERT INTO birthdays ({_BIRTHDAY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (community_id, user_id) DO UPDATE SET
                    display_name = excluded.display_name,
                    day = excluded.day,
                    month = excluded.month,
                    year = excluded.year,
                    timezone = excluded.timezone
                """,
                (
                    record.community_id,
                    record.user_id,
                    record.display_name,
                    record.day,
                    record.month,
                    record.year,
                    record.timezone or DEFAULT_TIMEZONE,
                    created_at,
                ),
            )
            await db.commit()

    async def delete_birthday(self, community_id: int, user_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM birthdays WHERE community_id = ? AND user_id = ?",
                (community_id, user_id),
            )
            deleted = cursor.rowcount > 0
            await db.commit()
        return deleted
