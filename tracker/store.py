"""
Persistence for presence, message facts and voice sessions.

All methods are synchronous ORM calls; the bot wraps them with
``sync_to_async(thread_sensitive=True)`` so they run one at a time on the
database thread.
"""
import logging
from typing import Iterable, List, Optional

from django.core.management import call_command
from django.db import connections, transaction
from django.db.models import BigIntegerField, Count, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .models import MessageEvent, UserPresence, VoiceSession

logger = logging.getLogger(__name__)


def now_ts() -> int:
    return int(timezone.now().timestamp())


class ActivityStore:

    def __init__(self, migrate: bool = False):
        self.migrate = migrate

    # ============= lifecycle =============
    def open(self) -> 'ActivityStore':
        if self.migrate:
            logger.info("Applying migrations")
            call_command('migrate', interactive=False, verbosity=0)
        return self

    def close(self):
        connections.close_all()

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()

    # ============= presence =============
    def upsert_presence(self, guild_id: str, user_id: str, ts: int) -> UserPresence:
        row, created = UserPresence.objects.get_or_create(
            guild_id=guild_id, user_id=user_id,
            defaults={'first_seen': ts, 'last_seen': ts},
        )
        if not created and ts > row.last_seen:
            # last_seen only moves forward, first_seen is never touched
            UserPresence.objects.filter(pk=row.pk, last_seen__lt=ts).update(last_seen=ts)
            row.last_seen = ts
        return row

    # ============= messages =============
    def insert_message_fact(self, *, guild_id: str, channel_id: str, user_id: str,
                            message_id: str, created_at: int,
                            attachment_count: int = 0, link_count: int = 0) -> bool:
        """Insert a message row; returns False when message_id was already stored."""
        _, created = MessageEvent.objects.get_or_create(
            message_id=message_id,
            defaults=dict(
                guild_id=guild_id,
                channel_id=channel_id,
                user_id=user_id,
                created_at=created_at,
                has_attachment=attachment_count > 0,
                attachment_count=attachment_count,
                link_count=link_count,
            ),
        )
        return created

    # ============= voice =============
    def open_voice_session(self, guild_id: str, user_id: str, channel_id: str, joined_at: int) -> VoiceSession:
        return VoiceSession.objects.create(
            guild_id=guild_id, user_id=user_id, channel_id=channel_id, joined_at=joined_at,
        )

    def open_sessions(self, guild_id: Optional[str] = None, user_id: Optional[str] = None) -> List[VoiceSession]:
        qs = VoiceSession.objects.filter(left_at__isnull=True)
        if guild_id is not None:
            qs = qs.filter(guild_id=guild_id)
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        return list(qs.order_by('-joined_at', '-pk'))

    def find_open_session(self, guild_id: str, user_id: str) -> Optional[VoiceSession]:
        return (
            VoiceSession.objects
            .filter(guild_id=guild_id, user_id=user_id, left_at__isnull=True)
            .order_by('-joined_at', '-pk')
            .first()
        )

    def close_voice_session(self, session: VoiceSession, left_at: int) -> bool:
        """Close ``session`` once; a second close of the same row is a no-op."""
        left_at = max(left_at, session.joined_at)
        duration = left_at - session.joined_at
        updated = VoiceSession.objects.filter(pk=session.pk, left_at__isnull=True)\
            .update(left_at=left_at, duration_seconds=duration)
        if updated:
            session.left_at = left_at
            session.duration_seconds = duration
        return bool(updated)

    def sessions_for(self, guild_id: str, user_id: str, only_open: bool = False) -> Iterable[VoiceSession]:
        qs = VoiceSession.objects.filter(guild_id=guild_id, user_id=user_id)
        if only_open:
            qs = qs.filter(left_at__isnull=True)
        return qs.order_by('-joined_at', '-pk')

    # ============= aggregates =============
    def aggregate_stats(self, guild_id: str, user_id: str) -> dict:
        with transaction.atomic():
            msg = MessageEvent.objects.filter(guild_id=guild_id, user_id=user_id).aggregate(
                total_messages=Count('id'),
                total_attachments=Coalesce(Sum('attachment_count'), 0, output_field=BigIntegerField()),
                total_links=Coalesce(Sum('link_count'), 0, output_field=BigIntegerField()),
            )
            voice = VoiceSession.objects.filter(
                guild_id=guild_id, user_id=user_id, left_at__isnull=False,
            ).aggregate(total_voice_seconds=Coalesce(Sum('duration_seconds'), 0, output_field=BigIntegerField()))
        return {
            'total_messages': int(msg['total_messages'] or 0),
            'total_attachments': int(msg['total_attachments'] or 0),
            'total_voice_seconds': int(voice['total_voice_seconds'] or 0),
            'total_links': int(msg['total_links'] or 0),
        }
