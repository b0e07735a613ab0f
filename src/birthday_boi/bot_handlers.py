from __future__ import annotations

import calendar
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone

from telegram import Update
from telegram.constants import ChatMemberStatus, ChatType
from telegram.error import TelegramError
from telegram.ext import CallbackContext, CommandHandler

from birthday_boi.announcements import AnnouncementSink
from birthday_boi.date_logic import validate_birthday
from birthday_boi.errors import DestinationUnavailableError, InvalidBirthdayError, NotConfiguredError, StoreIOError
from birthday_boi.models import DEFAULT_TIMEZONE, BirthdayRecord
from birthday_boi.scheduler import BirthdayScheduler
from birthday_boi.store import BirthdayStore
from birthday_boi.timezones import is_known_timezone, suggest_timezones
from birthday_boi.zodiac import zodiac_sign

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Birthday Boi has not been set up for this chat yet. "
    "Please ask an admin to run /setup first."
)
RETRY_LATER_MESSAGE = "Something went wrong on my side. Please try again later."
ADMIN_ONLY_MESSAGE = "Only chat administrators can use this command."
SET_USAGE = "/set_birthday <day> <month> [year] [timezone]"
EDIT_USAGE = "/edit_birthday <day> <month> [year] [timezone]"


@dataclass(frozen=True)
class HandlerDependencies:
    store: BirthdayStore
    scheduler: BirthdayScheduler
    sink: AnnouncementSink


@dataclass(frozen=True)
class BirthdayArgs:
    day: int
    month: int
    year: int | None
    timezone: str | None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_birthday_args(args: Sequence[str], *, today: date) -> BirthdayArgs:
    values = [arg.strip() for arg in args if arg.strip()]
    if len(values) < 2:
        raise InvalidBirthdayError("Please give at least a day and a month")
    if len(values) > 4:
        raise InvalidBirthdayError("Too many arguments")

    day_text, month_text, *rest = values
    if not day_text.isdecimal() or not month_text.isdecimal():
        raise InvalidBirthdayError("Day and month must be numbers")

    year: int | None = None
    timezone_id: str | None = None
    if rest and rest[0].isdecimal():
        year = int(rest.pop(0))
    if rest:
        timezone_id = rest.pop(0)
    if rest:
        raise InvalidBirthdayError("Too many arguments")

    day, month = int(day_text), int(month_text)
    validate_birthday(day, month, year, today=today)
    return BirthdayArgs(day=day, month=month, year=year, timezone=timezone_id)


def _format_birthday(day: int, month: int, year: int | None) -> str:
    if year is None:
        return f"{day:02d}/{month:02d}"
    return f"{day:02d}/{month:02d}/{year:04d}"


def _render_help() -> str:
    return (
        "Commands:\n"
        f"{SET_USAGE} - Set your birthday\n"
        f"{EDIT_USAGE} - Change your birthday\n"
        "/delete_birthday - Delete your birthday\n"
        "/list_birthdays - Show everyone's birthdays in this chat\n"
        "/timezones [filter] - Suggest timezone names\n"
        "/setup [chat_id] - (admins) Choose where announcements are posted\n"
        "/delete_setup - (admins) Delete all birthday data for this chat\n\n"
        "Examples:\n"
        "- /set_birthday 14 3\n"
        "- /set_birthday 14 3 1990 Europe/Berlin"
    )


def _render_list_message(records: Sequence[BirthdayRecord]) -> str:
    by_month: dict[int, list[BirthdayRecord]] = {}
    for record in records:
        by_month.setdefault(record.month, []).append(record)

    lines = [f"🎂 Registered birthdays ({len(records)})"]
    for month in sorted(by_month):
        lines.append("")
        lines.append(calendar.month_name[month])
        for record in sorted(by_month[month], key=lambda item: (item.day, item.display_name.lower())):
            year_text = f" ({record.year})" if record.year is not None else ""
            name = record.display_name or str(record.user_id)
            sign = zodiac_sign(record.day, record.month)
            lines.append(f"- {name}: {record.day}{year_text} {sign.symbol}")

    return "\n".join(lines)


async def is_community_admin(update: Update, context: CallbackContext) -> bool:
    chat = update.effective_chat
    user = update.effective_user
    if chat is None or user is None:
        return False
    if chat.type == ChatType.PRIVATE:
        return True

    try:
        member = await context.bot.get_chat_member(chat_id=chat.id, user_id=user.id)
    except TelegramError:
        LOGGER.exception("Could not check admin status of user %s in chat %s", user.id, chat.id)
        return False
    return member.status in (ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.OWNER)


async def help_command(update: Update, context: CallbackContext) -> None:
    if update.effective_message:
        await update.effective_message.reply_text(_render_help())


async def setup_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    chat = update.effective_chat
    message = update.effective_message
    if chat is None or message is None:
        return

    if not await is_community_admin(update, context):
        await message.reply_text(ADMIN_ONLY_MESSAGE)
        return

    args = context.args or []
    if len(args) > 1:
        await message.reply_text("Usage: /setup [chat_id]")
        return
    try:
        destination_id = int(args[0]) if args else chat.id
    except ValueError:
        await message.reply_text("The chat id must be a number. Usage: /setup [chat_id]")
        return

    try:
        destination_id = await deps.sink.resolve_destination(destination_id)
    except DestinationUnavailableError as exc:
        LOGGER.warning("Setup for chat %s rejected destination %s: %s", chat.id, destination_id, exc)
        await message.reply_text(
            "I can't reach that chat. Add me there and make sure I'm allowed to post messages."
        )
        return

    try:
        await deps.store.upsert_community_config(chat.id, destination_id)
    except StoreIOError:
        LOGGER.exception("Could not save setup for chat %s", chat.id)
        await message.reply_text(RETRY_LATER_MESSAGE)
        return

    where = "this chat" if destination_id == chat.id else f"chat {destination_id}"
    await message.reply_text(f"Birthday Boi is set up! Birthday announcements will be sent to {where}.")
    LOGGER.info("Community %s announces birthdays in %s", chat.id, destination_id)


async def delete_setup_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    chat = update.effective_chat
    message = update.effective_message
    if chat is None or message is None:
        return

    if not await is_community_admin(update, context):
        await message.reply_text(ADMIN_ONLY_MESSAGE)
        return

    try:
        deleted = await deps.store.delete_community_and_data(chat.id)
    except StoreIOError:
        LOGGER.exception("Could not delete data for chat %s", chat.id)
        await message.reply_text("There was an error deleting this chat's data. Please try again later.")
        return

    if not deleted:
        await message.reply_text("Birthday Boi has not been set up for this chat yet.")
        return
    await message.reply_text(
        "All data for this chat has been deleted. The setup and every registered birthday are gone."
    )


async def _save_birthday(update: Update, context: CallbackContext, *, require_existing: bool) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    chat = update.effective_chat
    user = update.effective_user
    message = update.effective_message
    if chat is None or user is None or message is None:
        return

    usage = EDIT_USAGE if require_existing else SET_USAGE
    now = _utc_now()
    try:
        parsed = parse_birthday_args(context.args or [], today=now.date())
    except InvalidBirthdayError as exc:
        await message.reply_text(f"{exc}.\nUsage: {usage}")
        return

    try:
        community = await deps.store.get_community(chat.id)
        if community is None:
            raise NotConfiguredError(chat.id)

        existing = await deps.store.get_birthday(chat.id, user.id)
        if require_existing and existing is None:
            await message.reply_text("You have not set your birthday yet. Please use /set_birthday first.")
            return

        if parsed.timezone is not None:
            timezone_id = parsed.timezone
        else:
            timezone_id = existing.timezone if existing is not None else DEFAULT_TIMEZONE

        record = BirthdayRecord(
            community_id=chat.id,
            user_id=user.id,
            day=parsed.day,
            month=parsed.month,
            year=parsed.year,
            timezone=timezone_id,
            display_name=user.full_name,
            created_at=existing.created_at if existing is not None else None,
        )
        await deps.store.upsert_birthday(record)
    except NotConfiguredError:
        await message.reply_text(NOT_CONFIGURED_MESSAGE)
        return
    except StoreIOError:
        LOGGER.exception("Could not save birthday for user %s in chat %s", user.id, chat.id)
        await message.reply_text(RETRY_LATER_MESSAGE)
        return

    verb = "updated" if existing is not None else "set"
    sign = zodiac_sign(record.day, record.month)
    lines = [
        f"Your birthday has been {verb} to {_format_birthday(record.day, record.month, record.year)}"
        f" ({record.timezone}).",
        f"Your zodiac sign is {sign.symbol} {sign.name}.",
    ]
    if not is_known_timezone(record.timezone):
        lines.append(
            f'I don\'t recognise the timezone "{record.timezone}", so UTC will be used. '
            "Try /timezones for suggestions."
        )
    await message.reply_text("\n".join(lines))
    LOGGER.info("Saved birthday for user %s in community %s", user.id, chat.id)

    if community.announcement_destination_id is None:
        return
    try:
        announced = await deps.scheduler.check_one(chat.id, user.id, community.announcement_destination_id, now)
    except StoreIOError:
        LOGGER.exception("Could not check today's birthday for user %s in chat %s", user.id, chat.id)
        return
    if announced:
        await message.reply_text("Since today is your birthday, I've sent a birthday announcement! 🎉")


async def set_birthday_command(update: Update, context: CallbackContext) -> None:
    await _save_birthday(update, context, require_existing=False)


async def edit_birthday_command(update: Update, context: CallbackContext) -> None:
    await _save_birthday(update, context, require_existing=True)


async def delete_birthday_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    chat = update.effective_chat
    user = update.effective_user
    message = update.effective_message
    if chat is None or user is None or message is None:
        return

    try:
        if await deps.store.get_community(chat.id) is None:
            await message.reply_text(NOT_CONFIGURED_MESSAGE)
            return
        deleted = await deps.store.delete_birthday(chat.id, user.id)
    except StoreIOError:
        LOGGER.exception("Could not delete birthday for user %s in chat %s", user.id, chat.id)
        await message.reply_text(RETRY_LATER_MESSAGE)
        return

    if not deleted:
        await message.reply_text("You have not set your birthday yet.")
        return
    await message.reply_text("Your birthday information has been deleted.")


async def list_birthdays_command(update: Update, context: CallbackContext) -> None:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    chat = update.effective_chat
    message = update.effective_message
    if chat is None or message is None:
        return

    try:
        if await deps.store.get_community(chat.id) is None:
            await message.reply_text(NOT_CONFIGURED_MESSAGE)
            return
        records = await deps.store.list_birthdays(chat.id)
    except StoreIOError:
        LOGGER.exception("Could not list birthdays for chat %s", chat.id)
        await message.reply_text(RETRY_LATER_MESSAGE)
        return

    if not records:
        await message.reply_text("No birthdays have been registered in this chat yet.")
        return
    await message.reply_text(_render_list_message(records))


async def timezones_command(update: Update, context: CallbackContext) -> None:
    message = update.effective_message
    if message is None:
        return

    query = " ".join(context.args or [])
    matches = suggest_timezones(query)
    if not matches:
        await message.reply_text(f'No suggested timezone matches "{query}". Any IANA name like Europe/Berlin works.')
        return
    await message.reply_text("Timezones:\n" + "\n".join(matches))


async def error_handler(update: object, context: CallbackContext) -> None:
    LOGGER.error("Unhandled error while processing an update", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text("There was an error executing this command!")


def build_handlers() -> list:
    return [
        CommandHandler(["start", "help"], help_command),
        CommandHandler("setup", setup_command),
        CommandHandler("delete_setup", delete_setup_command),
        CommandHandler("set_birthday", set_birthday_command),
        CommandHandler("edit_birthday", edit_birthday_command),
        CommandHandler("delete_birthday", delete_birthday_command),
        CommandHandler("list_birthdays", list_birthdays_command),
        CommandHandler("timezones", timezones_command),
    ]
