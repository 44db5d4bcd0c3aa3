import pytest
from django.conf import settings

from tracker.facts import MessagePosted
from tracker.ingest import MessageIngestor
from tracker.models import MessageEvent, UserPresence
from tracker.store import ActivityStore

pytestmark = pytest.mark.django_db


@pytest.fixture
def ingestor():
    return MessageIngestor(ActivityStore(), settings.LINK_PATTERN)


def _msg(message_id="m1", ts=1000, attachments=0, text="", guild="g1", user="u1"):
    return MessagePosted(guild_id=guild, channel_id="c1", author_id=user, is_bot=False,
                         message_id=message_id, created_at=ts,
                         attachment_count=attachments, text=text)


def test_records_message_with_counts(ingestor):
    assert ingestor.handle(_msg(attachments=2, text="https://x.com/a/1 and t.co/xyz")) is True

    row = MessageEvent.objects.get(message_id="m1")
    assert (row.guild_id, row.channel_id, row.user_id) == ("g1", "c1", "u1")
    assert row.attachment_count == 2
    assert row.has_attachment is True
    assert row.link_count == 2


def test_duplicate_message_id_is_absorbed(ingestor):
    assert ingestor.handle(_msg(ts=1000)) is True
    assert ingestor.handle(_msg(ts=1005)) is False
    assert MessageEvent.objects.filter(message_id="m1").count() == 1


def test_presence_first_seen_never_regresses(ingestor):
    ingestor.handle(_msg("m1", ts=1000))
    ingestor.handle(_msg("m2", ts=2000))
    ingestor.handle(_msg("m3", ts=1500))

    p = UserPresence.objects.get(guild_id="g1", user_id="u1")
    assert p.first_seen == 1000
    assert p.last_seen == 2000


def test_presence_is_per_guild(ingestor):
    ingestor.handle(_msg("m1", guild="g1"))
    ingestor.handle(_msg("m2", guild="g2"))
    assert UserPresence.objects.filter(user_id="u1").count() == 2


def test_ignores_missing_and_bot_facts(ingestor):
    bot = MessagePosted(guild_id="g1", channel_id="c1", author_id="b1", is_bot=True,
                        message_id="m9", created_at=1, attachment_count=0, text="")
    assert ingestor.handle(None) is False
    assert ingestor.handle(bot) is False
    assert MessageEvent.objects.count() == 0
    assert UserPresence.objects.count() == 0
