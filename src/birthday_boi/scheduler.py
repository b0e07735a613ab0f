from __future__ import annotations

import logging
from datetime import datetime

from birthday_boi.announcements import AnnouncementSink, format_announcement
from birthday_boi.date_logic import is_birthday_on
from birthday_boi.errors import DeliveryError, DestinationUnavailableError, StoreIOError
from birthday_boi.ledger import AnnouncementLedger
from birthday_boi.models import BirthdayRecord, LedgerKey, LocalDate
from birthday_boi.store import BirthdayStore
from birthday_boi.timezones import local_date

LOGGER = logging.getLogger(__name__)


class BirthdayScheduler:
    """Finds birthdays that are due in each user's local timezone and announces them.

    ``run_scan`` is driven by the recurring job; ``check_one`` is called by the
    set/edit commands. Both share one ledger, so a user is announced at most
    once per local day between two ledger resets whichever path fires first.

    Failed sends are not retried here: the key is released and the next scan
    tries again while the user's local date still matches.
    """

    def __init__(self, *, store: BirthdayStore, ledger: AnnouncementLedger, sink: AnnouncementSink) -> None:
        self._store = store
        self._ledger = ledger
        self._sink = sink

    async def run_scan(self, reference: datetime) -> int:
        if self._ledger.reset_if_new_day(reference):
            LOGGER.info("Reset announced birthdays for UTC day %s", self._ledger.last_reset)

        try:
            communities = await self._store.list_communities()
        except StoreIOError:
            LOGGER.exception("Could not list communities, skipping this scan")
            return 0

        sent_count = 0
        for community in communities:
            destination_id = community.announcement_destination_id
            if destination_id is None:
                continue

            try:
                birthdays = await self._store.list_birthdays(community.community_id)
            except StoreIOError:
                LOGGER.exception("Could not load birthdays for community %s", community.community_id)
                continue

            LOGGER.debug("Found %s birthday records for community %s", len(birthdays), community.community_id)
            if not birthdays:
                continue

            try:
                destination = await self._sink.resolve_destination(destination_id)
            except DestinationUnavailableError as exc:
                LOGGER.error("Skipping community %s: %s", community.community_id, exc)
                continue

            for record in birthdays:
                due = self._due(record, reference)
                if due is None:
                    continue
                today, key = due
                if await self._announce(record, today, key, destination):
                    sent_count += 1

        if sent_count:
            LOGGER.info("Sent %s birthday announcements", sent_count)
        return sent_count

    async def check_one(self, community_id: int, user_id: int, destination_id: int, reference: datetime) -> bool:
        record = await self._store.get_birthday(community_id, user_id)
        if record is None:
            return False

        due = self._due(record, reference)
        if due is None:
            return False
        today, key = due

        try:
            destination = await self._sink.resolve_destination(destination_id)
        except DestinationUnavailableError as exc:
            LOGGER.error("Cannot announce user %s in community %s: %s", user_id, community_id, exc)
            return False

        return await self._announce(record, today, key, destination)

    def _due(self, record: BirthdayRecord, reference: datetime) -> tuple[LocalDate, LedgerKey] | None:
        today = local_date(record.timezone, reference)
        if not is_birthday_on(record, today):
            return None
        key = LedgerKey(record.community_id, record.user_id, today.day, today.month)
        if self._ledger.has_announced(key):
            return None
        return today, key

    async def _announce(self, record: BirthdayRecord, today: LocalDate, key: LedgerKey, destination: int) -> bool:
        if not self._ledger.claim(key):
            return False

        try:
            await self._sink.send(destination, format_announcement(record, today))
        except DeliveryError as exc:
            self._ledger.release(key)
            LOGGER.error(
                "Error sending birthday message for user %s in community %s: %s",
                record.user_id,
                record.community_id,
                exc,
            )
            return False

        self._ledger.confirm(key)
        LOGGER.info("Announced birthday for user %s in community %s", record.user_id, record.community_id)
        return True
