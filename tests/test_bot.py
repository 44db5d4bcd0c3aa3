import asyncio
import logging
import os
from types import SimpleNamespace

import pytest
from discord import app_commands
from django.db import DatabaseError

os.environ.setdefault("BOT_NO_RUN", "1")

import bot  # noqa: E402
from tracker.stats import UserStats  # noqa: E402


class _User:
    def __init__(self, uid, name):
        self.id = uid
        self.name = name

    def __str__(self):
        return self.name


class _Interaction:
    def __init__(self, guild_id=None, done=False):
        self.guild = SimpleNamespace(id=guild_id) if guild_id else None
        self.calls = []
        self._done = done
        self.response = SimpleNamespace(
            defer=self._record("defer"),
            send_message=self._record("send_message"),
            is_done=lambda: self._done,
        )
        self.followup = SimpleNamespace(send=self._record("followup.send"))

    def _record(self, name):
        async def call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
        return call


def _message(guild_id=1):
    return SimpleNamespace(
        id=99,
        guild=SimpleNamespace(id=guild_id),
        channel=SimpleNamespace(id=20),
        author=SimpleNamespace(id=7, bot=False, system=False),
        attachments=[],
        content="hello",
    )


def _voice_args(old=None, new=5):
    member = SimpleNamespace(id=7, bot=False, guild=SimpleNamespace(id=1))
    state = lambda ch: SimpleNamespace(channel=SimpleNamespace(id=ch) if ch else None)  # noqa: E731
    return member, state(old), state(new)


@pytest.fixture(autouse=True)
def all_guilds(monkeypatch):
    monkeypatch.setattr(bot, "GUILD_ID", 0)


async def _raise_db_error(*args, **kwargs):
    raise DatabaseError("storage unavailable")


def test_message_write_failure_is_logged_and_dropped(monkeypatch, caplog):
    recorded = []

    async def ok(fact):
        recorded.append(fact)

    monkeypatch.setattr(bot, "ingest_message", _raise_db_error)
    with caplog.at_level(logging.ERROR, logger="bot"):
        asyncio.run(bot.on_message(_message()))

    errors = [r for r in caplog.records if r.name == "bot" and r.exc_info]
    assert len(errors) == 1
    assert isinstance(errors[0].exc_info[1], DatabaseError)

    # next event is still handled
    monkeypatch.setattr(bot, "ingest_message", ok)
    asyncio.run(bot.on_message(_message()))
    assert [f.message_id for f in recorded] == ["99"]


def test_voice_write_failure_is_logged_and_dropped(monkeypatch, caplog):
    monkeypatch.setattr(bot, "track_voice", _raise_db_error)
    with caplog.at_level(logging.ERROR, logger="bot"):
        asyncio.run(bot.on_voice_state_update(*_voice_args()))

    errors = [r for r in caplog.records if r.name == "bot" and r.exc_info]
    assert len(errors) == 1
    assert isinstance(errors[0].exc_info[1], DatabaseError)


def test_events_from_other_guilds_are_ignored(monkeypatch):
    seen = []

    async def record(fact):
        seen.append(fact)

    monkeypatch.setattr(bot, "GUILD_ID", 42)
    monkeypatch.setattr(bot, "ingest_message", record)
    monkeypatch.setattr(bot, "track_voice", record)

    asyncio.run(bot.on_message(_message(guild_id=1)))
    asyncio.run(bot.on_voice_state_update(*_voice_args()))
    assert seen == []


def test_userstats_in_dm_replies_with_hint(monkeypatch):
    async def never(*args):
        raise AssertionError("stats must not be queried outside a guild")

    monkeypatch.setattr(bot, "aggregate_stats", never)
    interaction = _Interaction()
    asyncio.run(bot.userstats.callback(interaction, _User(7, "someone")))

    assert len(interaction.calls) == 1
    name, args, kwargs = interaction.calls[0]
    assert name == "send_message"
    assert "inside a server" in args[0]
    assert kwargs["ephemeral"] is True


def test_userstats_defers_then_sends_embed(monkeypatch):
    queried = []

    async def fake_stats(guild_id, user_id):
        queried.append((guild_id, user_id))
        return UserStats(3, 3, 5400, 1)

    monkeypatch.setattr(bot, "aggregate_stats", fake_stats)
    interaction = _Interaction(guild_id=1)
    asyncio.run(bot.userstats.callback(interaction, _User(7, "someone")))

    assert queried == [("1", "7")]
    assert [c[0] for c in interaction.calls] == ["defer", "followup.send"]
    embed = interaction.calls[1][2]["embed"]
    assert embed.title == "someone — server stats"
    assert {f.name: f.value for f in embed.fields}["Voice time"] == "1h 30m"


def test_userstats_with_unavailable_stats_still_replies(monkeypatch):
    async def fake_stats(guild_id, user_id):
        return UserStats.unavailable()

    monkeypatch.setattr(bot, "aggregate_stats", fake_stats)
    interaction = _Interaction(guild_id=1)
    asyncio.run(bot.userstats.callback(interaction, _User(7, "someone")))

    embed = interaction.calls[-1][2]["embed"]
    assert embed.description == "Error building stats"


@pytest.mark.parametrize("done,expected", [(True, "followup.send"), (False, "send_message")])
def test_command_error_reply(done, expected, caplog):
    interaction = _Interaction(guild_id=1, done=done)
    with caplog.at_level(logging.ERROR, logger="bot"):
        asyncio.run(bot.on_app_command_error(interaction, app_commands.AppCommandError("boom")))

    assert [c[0] for c in interaction.calls] == [expected]
    assert "unexpected error" in interaction.calls[0][1][0]
    assert any(r.name == "bot" and "Command error" in r.getMessage() for r in caplog.records)
