from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from birthday_boi.errors import TimezoneResolutionError
from birthday_boi.models import DEFAULT_TIMEZONE, LocalDate

LOGGER = logging.getLogger(__name__)

UTC = ZoneInfo(DEFAULT_TIMEZONE)

COMMON_TIMEZONES = (
    "UTC",
    # North America
    "America/New_York", "America/Chicago", "America/Denver", "America/Los_Angeles",
    "America/Phoenix", "America/Anchorage", "America/Adak",
    "America/Toronto", "America/Vancouver", "America/Edmonton", "America/Halifax",
    "America/St_Johns", "America/Mexico_City", "America/Tijuana", "America/Monterrey",
    # South America
    "America/Sao_Paulo", "America/Argentina/Buenos_Aires", "America/Santiago", "America/Lima",
    "America/Bogota", "America/Caracas", "America/La_Paz", "America/Montevideo",
    # Europe
    "Europe/London", "Europe/Paris", "Europe/Berlin", "Europe/Moscow",
    "Europe/Madrid", "Europe/Rome", "Europe/Amsterdam", "Europe/Brussels",
    "Europe/Vienna", "Europe/Stockholm", "Europe/Oslo", "Europe/Copenhagen",
    "Europe/Helsinki", "Europe/Athens", "Europe/Istanbul", "Europe/Warsaw",
    "Europe/Bucharest", "Europe/Kyiv", "Europe/Lisbon", "Europe/Dublin",
    # Asia
    "Asia/Tokyo", "Asia/Shanghai", "Asia/Singapore", "Asia/Dubai",
    "Asia/Hong_Kong", "Asia/Seoul", "Asia/Bangkok", "Asia/Jakarta",
    "Asia/Manila", "Asia/Kuala_Lumpur", "Asia/Taipei", "Asia/Kolkata",
    "Asia/Karachi", "Asia/Tehran", "Asia/Jerusalem", "Asia/Baghdad",
    "Asia/Riyadh", "Asia/Qatar", "Asia/Dhaka", "Asia/Ho_Chi_Minh",
    # Africa
    "Africa/Cairo", "Africa/Lagos", "Africa/Johannesburg", "Africa/Nairobi",
    "Africa/Casablanca", "Africa/Tunis", "Africa/Algiers", "Africa/Khartoum",
    "Africa/Accra", "Africa/Addis_Ababa",
    # Oceania
    "Australia/Sydney", "Australia/Melbourne", "Australia/Brisbane", "Australia/Perth",
    "Australia/Adelaide", "Australia/Darwin", "Australia/Hobart",
    "Pacific/Auckland", "Pacific/Fiji", "Pacific/Honolulu", "Pacific/Guam",
    "Pacific/Pago_Pago", "Pacific/Tahiti", "Pacific/Noumea",
)


def resolve_zone(timezone_id: str) -> ZoneInfo:
    """Return the zone for ``timezone_id`` or raise TimezoneResolutionError."""
    name = (timezone_id or "").strip()
    if not name:
        raise TimezoneResolutionError("Empty timezone identifier")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise TimezoneResolutionError(f"Unknown timezone: {timezone_id!r}") from exc


def is_known_timezone(timezone_id: str) -> bool:
    try:
        resolve_zone(timezone_id)
    except TimezoneResolutionError:
        return False
    return True


def local_date(timezone_id: str, reference: datetime) -> LocalDate:
    """Calendar date of ``reference`` as observed in ``timezone_id``.

    Unknown identifiers fall back to UTC with a warning; this never raises for
    a bad zone.
    """
    if reference.tzinfo is None:
        raise ValueError("reference instant must be timezone-aware")

    try:
        zone = resolve_zone(timezone_id)
    except TimezoneResolutionError:
        LOGGER.warning("Invalid timezone %r, defaulting to %s", timezone_id, DEFAULT_TIMEZONE)
        zone = UTC

    observed = reference.astimezone(zone)
    return LocalDate(day=observed.day, month=observed.month, year=observed.year)


def suggest_timezones(query: str, *, limit: int = 25) -> list[str]:
    needle = query.strip().lower()
    matches = [name for name in COMMON_TIMEZONES if needle in name.lower()]
    return matches[:limit]
