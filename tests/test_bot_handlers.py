from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

import birthday_boi.bot_handlers as bot_handlers
from birthday_boi.bot_handlers import (
    ADMIN_ONLY_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    BirthdayArgs,
    HandlerDependencies,
    _render_list_message,
    delete_birthday_command,
    delete_setup_command,
    edit_birthday_command,
    is_community_admin,
    list_birthdays_command,
    parse_birthday_args,
    set_birthday_command,
    setup_command,
)
from birthday_boi.errors import DestinationUnavailableError, InvalidBirthdayError
from birthday_boi.ledger import AnnouncementLedger
from birthday_boi.models import BirthdayRecord, CommunityConfig
from birthday_boi.scheduler import BirthdayScheduler
from birthday_boi.store import BirthdayStore

TODAY = date(2024, 6, 15)
GROUP_ID = -100123


def test_parse_birthday_args_day_month() -> None:
    assert parse_birthday_args(["14", "3"], today=TODAY) == BirthdayArgs(day=14, month=3, year=None, timezone=None)


def test_parse_birthday_args_with_year_and_timezone() -> None:
    parsed = parse_birthday_args(["14", "3", "1990", "Europe/Berlin"], today=TODAY)
    assert parsed == BirthdayArgs(day=14, month=3, year=1990, timezone="Europe/Berlin")


def test_parse_birthday_args_timezone_without_year() -> None:
    parsed = parse_birthday_args(["14", "3", "Asia/Tokyo"], today=TODAY)
    assert parsed == BirthdayArgs(day=14, month=3, year=None, timezone="Asia/Tokyo")


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["14"],
        ["x", "3"],
        ["31", "4"],
        ["29", "2"],
        ["29", "2", "2023"],
        ["1", "1", "1850"],
        ["14", "3", "1990", "UTC", "extra"],
        ["²", "3"],
        ["14", "³"],
    ],
)
def test_parse_birthday_args_rejects_bad_input(args: list[str]) -> None:
    with pytest.raises(InvalidBirthdayError):
        parse_birthday_args(args, today=TODAY)


def test_render_list_message_groups_by_month() -> None:
    message = _render_list_message(
        [
            BirthdayRecord(community_id=1, user_id=1, day=14, month=3, year=1990, display_name="Alice"),
            BirthdayRecord(community_id=1, user_id=2, day=22, month=8, display_name="Bob"),
            BirthdayRecord(community_id=1, user_id=3, day=5, month=3, display_name="Carol"),
        ]
    )

    assert message == (
        "🎂 Registered birthdays (3)\n"
        "\n"
        "March\n"
        "- Carol: 5 ♓\n"
        "- Alice: 14 (1990) ♓\n"
        "\n"
        "August\n"
        "- Bob: 22 ♌"
    )


@dataclass
class FakeMessage:
    replies: list[str] = field(default_factory=list)

    async def reply_text(self, text: str) -> None:
        self.replies.append(text)


@dataclass
class FakeUser:
    id: int
    full_name: str = "Alice Example"


@dataclass
class FakeChat:
    id: int
    type: str = "group"


@dataclass
class FakeUpdate:
    effective_user: FakeUser
    effective_chat: FakeChat
    effective_message: FakeMessage = field(default_factory=FakeMessage)


@dataclass
class FakeChatMember:
    status: str


@dataclass
class FakeBot:
    status: str = "member"

    async def get_chat_member(self, chat_id: int, user_id: int) -> FakeChatMember:
        return FakeChatMember(status=self.status)


@dataclass
class FakeApplication:
    bot_data: dict


@dataclass
class FakeContext:
    application: FakeApplication
    args: list[str] = field(default_factory=list)
    bot: FakeBot = field(default_factory=FakeBot)


@dataclass
class FakeSink:
    sent: list[tuple[int, str]] = field(default_factory=list)
    unavailable: set[int] = field(default_factory=set)

    async def resolve_destination(self, destination_id: int) -> int:
        if destination_id in self.unavailable:
            raise DestinationUnavailableError(f"chat {destination_id} is gone")
        return destination_id

    async def send(self, destination_id: int, text: str) -> None:
        self.sent.append((destination_id, text))


@pytest.fixture
def deps(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> HandlerDependencies:
    monkeypatch.setattr(bot_handlers, "_utc_now", lambda: datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc))

    store = BirthdayStore(tmp_path / "birthdays.sqlite3")
    asyncio.run(store.initialize())
    sink = FakeSink()
    scheduler = BirthdayScheduler(store=store, ledger=AnnouncementLedger(), sink=sink)
    return HandlerDependencies(store=store, scheduler=scheduler, sink=sink)


def _context(deps: HandlerDependencies, args: list[str], *, status: str = "member") -> FakeContext:
    return FakeContext(
        application=FakeApplication(bot_data={"handler_deps": deps}),
        args=args,
        bot=FakeBot(status=status),
    )


def _update(user_id: int = 10, chat_type: str = "group") -> FakeUpdate:
    return FakeUpdate(effective_user=FakeUser(id=user_id), effective_chat=FakeChat(id=GROUP_ID, type=chat_type))


def test_is_community_admin() -> None:
    context = FakeContext(application=FakeApplication(bot_data={}), bot=FakeBot(status="administrator"))
    assert asyncio.run(is_community_admin(_update(), context)) is True

    context.bot = FakeBot(status="member")
    assert asyncio.run(is_community_admin(_update(), context)) is False
    assert asyncio.run(is_community_admin(_update(chat_type="private"), context)) is True


def test_setup_requires_admin(deps: HandlerDependencies) -> None:
    update = _update()

    asyncio.run(setup_command(update, _context(deps, [], status="member")))

    assert update.effective_message.replies == [ADMIN_ONLY_MESSAGE]
    assert asyncio.run(deps.store.get_community(GROUP_ID)) is None


def test_setup_defaults_destination_to_current_chat(deps: HandlerDependencies) -> None:
    update = _update()

    asyncio.run(setup_command(update, _context(deps, [], status="creator")))

    assert asyncio.run(deps.store.get_community(GROUP_ID)) == CommunityConfig(
        community_id=GROUP_ID, announcement_destination_id=GROUP_ID
    )
    assert "this chat" in update.effective_message.replies[0]


def test_setup_rejects_unreachable_destination(deps: HandlerDependencies) -> None:
    deps.sink.unavailable.add(-100999)
    update = _update()

    asyncio.run(setup_command(update, _context(deps, ["-100999"], status="administrator")))

    assert "can't reach" in update.effective_message.replies[0]
    assert asyncio.run(deps.store.get_community(GROUP_ID)) is None


def test_set_birthday_requires_setup(deps: HandlerDependencies) -> None:
    update = _update()

    asyncio.run(set_birthday_command(update, _context(deps, ["14", "3"])))

    assert update.effective_message.replies == [NOT_CONFIGURED_MESSAGE]


def test_set_birthday_reports_usage_on_bad_input(deps: HandlerDependencies) -> None:
    update = _update()

    asyncio.run(set_birthday_command(update, _context(deps, ["31", "2"])))

    assert "Usage: /set_birthday" in update.effective_message.replies[0]


def test_set_birthday_today_announces_immediately(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    update = _update()

    asyncio.run(set_birthday_command(update, _context(deps, ["15", "6", "1990"])))

    record = asyncio.run(deps.store.get_birthday(GROUP_ID, 10))
    assert record is not None
    assert (record.day, record.month, record.year, record.timezone) == (15, 6, 1990, "UTC")
    assert record.display_name == "Alice Example"

    replies = update.effective_message.replies
    assert "Your birthday has been set to 15/06/1990 (UTC)." in replies[0]
    assert "Gemini" in replies[0]
    assert "birthday announcement" in replies[1]
    assert len(deps.sink.sent) == 1

    # Running the command again the same day does not announce twice.
    again = _update()
    asyncio.run(set_birthday_command(again, _context(deps, ["15", "6", "1990"])))
    assert len(again.effective_message.replies) == 1
    assert "updated" in again.effective_message.replies[0]
    assert len(deps.sink.sent) == 1


def test_set_birthday_warns_about_unknown_timezone(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    update = _update()

    asyncio.run(set_birthday_command(update, _context(deps, ["1", "1", "Mars/Base"])))

    assert "UTC will be used" in update.effective_message.replies[0]
    record = asyncio.run(deps.store.get_birthday(GROUP_ID, 10))
    assert record is not None and record.timezone == "Mars/Base"


def test_edit_birthday_requires_existing_record(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    update = _update()

    asyncio.run(edit_birthday_command(update, _context(deps, ["1", "1"])))

    assert "/set_birthday first" in update.effective_message.replies[0]
    assert asyncio.run(deps.store.get_birthday(GROUP_ID, 10)) is None


def test_edit_birthday_keeps_timezone_when_omitted(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    asyncio.run(set_birthday_command(_update(), _context(deps, ["1", "1", "Asia/Tokyo"])))

    asyncio.run(edit_birthday_command(_update(), _context(deps, ["2", "1"])))

    record = asyncio.run(deps.store.get_birthday(GROUP_ID, 10))
    assert record is not None
    assert (record.day, record.month, record.timezone) == (2, 1, "Asia/Tokyo")


def test_delete_setup_removes_community_and_birthdays(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    asyncio.run(set_birthday_command(_update(), _context(deps, ["1", "1"])))
    update = _update()

    asyncio.run(delete_setup_command(update, _context(deps, [], status="administrator")))

    assert "deleted" in update.effective_message.replies[0]
    assert asyncio.run(deps.store.get_community(GROUP_ID)) is None
    assert asyncio.run(deps.store.list_birthdays(GROUP_ID)) == []


def test_list_and_delete_birthday(deps: HandlerDependencies) -> None:
    asyncio.run(deps.store.upsert_community_config(GROUP_ID, GROUP_ID))
    asyncio.run(set_birthday_command(_update(), _context(deps, ["14", "3", "1990"])))

    listing = _update(user_id=20)
    asyncio.run(list_birthdays_command(listing, _context(deps, [])))
    assert listing.effective_message.replies == [
        "🎂 Registered birthdays (1)\n\nMarch\n- Alice Example: 14 (1990) ♓"
    ]

    removal = _update()
    asyncio.run(delete_birthday_command(removal, _context(deps, [])))
    assert removal.effective_message.replies == ["Your birthday information has been deleted."]

    empty = _update()
    asyncio.run(list_birthdays_command(empty, _context(deps, [])))
    assert empty.effective_message.replies == ["No birthdays have been registered in this chat yet."]
