from __future__ import annotations

from datetime import date, datetime, timezone

from birthday_boi.models import LedgerKey


def _utc_day(reference: datetime) -> date:
    if reference.tzinfo is None:
        raise ValueError("reference instant must be timezone-aware")
    return reference.astimezone(timezone.utc).date()


class AnnouncementLedger:
    """Process-local record of birthdays already announced today.

    Keys are evaluated in each user's local day/month, but the whole ledger is
    cleared on a UTC day boundary, at the first ``reset_if_new_day`` call that
    observes a later UTC date. Nothing is persisted; a restart starts empty.
    """

    def __init__(self, *, started_at: datetime | None = None) -> None:
        self._announced: set[LedgerKey] = set()
        self._in_flight: set[LedgerKey] = set()
        self._last_reset: date | None = _utc_day(started_at) if started_at is not None else None

    def __len__(self) -> int:
        return len(self._announced)

    @property
    def last_reset(self) -> date | None:
        return self._last_reset

    def has_announced(self, key: LedgerKey) -> bool:
        return key in self._announced

    def mark_announced(self, key: LedgerKey) -> None:
        self._announced.add(key)

    def reset_if_new_day(self, reference: datetime) -> bool:
        today = _utc_day(reference)
        if self._last_reset is None:
            self._last_reset = today
            return False
        if today <= self._last_reset:
            return False

        self._announced.clear()
        self._last_reset = today
        return True

    # claim/confirm/release bracket a send. claim is synchronous so no other
    # task can run between the check and the reservation.

    def claim(self, key: LedgerKey) -> bool:
        if key in self._announced or key in self._in_flight:
            return False
        self._in_flight.add(key)
        return True

    def confirm(self, key: LedgerKey) -> None:
        self._in_flight.discard(key)
        self._announced.add(key)

    def release(self, key: LedgerKey) -> None:
        self._in_flight.discard(key)
