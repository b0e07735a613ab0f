from __future__ import annotations

from datetime import date

from birthday_boi.errors import InvalidBirthdayError
from birthday_boi.models import BirthdayRecord, LocalDate

MIN_BIRTH_YEAR = 1900


def validate_month_day(month: int, day: int, *, allow_feb_29: bool = True) -> None:
    if month < 1 or month > 12:
        raise InvalidBirthdayError(f"Invalid month: {month}")

    if day < 1 or day > 31:
        raise InvalidBirthdayError(f"Invalid day: {day}")

    year = 2000 if allow_feb_29 else 2001
    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidBirthdayError(f"Invalid day/month combination: {day:02d}/{month:02d}") from exc


def validate_birthday(day: int, month: int, year: int | None, *, today: date) -> None:
    """Reject dates that do not exist or birth years outside 1900..today.

    Without a year only a non-leap reference is checked, so 29 February needs
    a year to be accepted.
    """
    if year is None:
        validate_month_day(month, day, allow_feb_29=False)
        return

    validate_month_day(month, day, allow_feb_29=True)
    if year < MIN_BIRTH_YEAR or year > today.year:
        raise InvalidBirthdayError(f"Year must be between {MIN_BIRTH_YEAR} and {today.year}")
    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidBirthdayError(f"{day:02d}/{month:02d}/{year} is not a real date") from exc


def is_birthday_on(record: BirthdayRecord, today: LocalDate) -> bool:
    return record.day == today.day and record.month == today.month


def turning_age(record: BirthdayRecord, today: LocalDate) -> int | None:
    if record.year is None:
        return None
    return today.year - record.year
