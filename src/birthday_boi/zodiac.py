from __future__ import annotations

from dataclasses import dataclass

from birthday_boi.date_logic import validate_month_day


@dataclass(frozen=True)
class ZodiacSign:
    name: str
    symbol: str
    start: tuple[int, int]  # (month, day), inclusive


# Ordered by start date within the calendar year; Capricorn wraps into January.
ZODIAC_SIGNS = (
    ZodiacSign("Capricorn", "♑", (1, 1)),
    ZodiacSign("Aquarius", "♒", (1, 20)),
    ZodiacSign("Pisces", "♓", (2, 19)),
    ZodiacSign("Aries", "♈", (3, 21)),
    ZodiacSign("Taurus", "♉", (4, 20)),
    ZodiacSign("Gemini", "♊", (5, 21)),
    ZodiacSign("Cancer", "♋", (6, 21)),
    ZodiacSign("Leo", "♌", (7, 23)),
    ZodiacSign("Virgo", "♍", (8, 23)),
    ZodiacSign("Libra", "♎", (9, 23)),
    ZodiacSign("Scorpio", "♏", (10, 23)),
    ZodiacSign("Sagittarius", "♐", (11, 22)),
    ZodiacSign("Capricorn", "♑", (12, 22)),
)


def zodiac_sign(day: int, month: int) -> ZodiacSign:
    validate_month_day(month, day, allow_feb_29=True)

    current = ZODIAC_SIGNS[0]
    for sign in ZODIAC_SIGNS:
        if (month, day) < sign.start:
            break
        current = sign
    return current
