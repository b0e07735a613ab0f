from __future__ import annotations

import hashlib
import html
from typing import Protocol

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, TelegramError

from birthday_boi.date_logic import turning_age
from birthday_boi.errors import DeliveryError, DestinationUnavailableError
from birthday_boi.models import BirthdayRecord, LocalDate

TODAY_TEMPLATES = (
    "🎉 Happy Birthday to {mention}! 🎂",
    "🥳 Today we celebrate {mention}. Happy birthday! 🎂",
    "🎈 {mention} leveled up today. Happy birthday! 🎉",
    "🚨 Birthday Alert 🚨\nIt's {mention}'s big day!",
    "🎂 It's {mention} Day™. Happy birthday!",
    "🌟 Today's featured human: {mention}. Happy birthday! 🎉",
)

TODAY_AGE_TEMPLATES = (
    "🎉 Happy Birthday to {mention}! They are turning {age} today! 🎂",
    "🎈 {mention} officially turns {age} today. Happy birthday! 🎉",
    "🚨 {mention} levels up to {age} today. Happy birthday!",
    "🥳 Today marks {age} years of {mention}. Happy birthday! 🎂",
    "🌟 {mention} unlocks level {age} today. Happy birthday!",
)


class AnnouncementSink(Protocol):
    async def resolve_destination(self, destination_id: int) -> int: ...

    async def send(self, destination_id: int, text: str) -> None: ...


class TelegramAnnouncementSink:
    """Posts announcements through the Telegram Bot API."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def resolve_destination(self, destination_id: int) -> int:
        try:
            chat = await self._bot.get_chat(chat_id=destination_id)
        except (Forbidden, BadRequest) as exc:
            raise DestinationUnavailableError(f"Chat {destination_id} is not reachable: {exc}") from exc
        except TelegramError as exc:
            raise DestinationUnavailableError(f"Could not look up chat {destination_id}: {exc}") from exc
        return chat.id

    async def send(self, destination_id: int, text: str) -> None:
        try:
            await self._bot.send_message(chat_id=destination_id, text=text, parse_mode=ParseMode.HTML)
        except (Forbidden, BadRequest) as exc:
            raise DestinationUnavailableError(f"Cannot post to chat {destination_id}: {exc}") from exc
        except TelegramError as exc:
            raise DeliveryError(f"Sending to chat {destination_id} failed: {exc}") from exc


def mention_html(user_id: int, display_name: str) -> str:
    label = display_name.strip() or str(user_id)
    return f'<a href="tg://user?id={user_id}">{html.escape(label)}</a>'


def format_announcement(record: BirthdayRecord, today: LocalDate) -> str:
    age = turning_age(record, today)
    has_age = age is not None and age > 0
    templates = TODAY_AGE_TEMPLATES if has_age else TODAY_TEMPLATES

    template = _select_rotating_template(record, today, templates)
    return template.format(mention=mention_html(record.user_id, record.display_name), age=age)


def _select_rotating_template(record: BirthdayRecord, today: LocalDate, templates: tuple[str, ...]) -> str:
    seed = f"{record.community_id}|{record.user_id}|{today.year}"
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "big") % len(templates)
    return templates[index]
