"""
Gateway event normalization.

discord.py hands us loosely shaped objects (Message, Member, VoiceState).
Everything past this module works on the frozen fact dataclasses below;
irrelevant events (DMs, bots, system messages, unknown members) are turned
into ``None`` here and never reach the tracker or the store.
"""
import enum
import re
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class MessagePosted:
    guild_id: str
    channel_id: str
    author_id: str
    is_bot: bool
    message_id: str
    created_at: int
    attachment_count: int
    text: str


@dataclass(frozen=True)
class VoiceStateChanged:
    guild_id: str
    user_id: str
    is_bot: bool
    old_channel_id: Optional[str]
    new_channel_id: Optional[str]


@dataclass(frozen=True)
class StatsRequested:
    guild_id: str
    requested_user_id: str


class VoiceTransition(enum.Enum):
    NONE = 'none'
    JOIN = 'join'
    LEAVE = 'leave'
    SWITCH = 'switch'


def classify(fact: VoiceStateChanged) -> VoiceTransition:
    old, new = fact.old_channel_id, fact.new_channel_id
    if old == new:
        return VoiceTransition.NONE
    if old is None:
        return VoiceTransition.JOIN
    if new is None:
        return VoiceTransition.LEAVE
    return VoiceTransition.SWITCH


def count_links(text: str, pattern: Union[str, re.Pattern]) -> int:
    """Number of non-overlapping, case-insensitive matches of ``pattern``."""
    if not text:
        return 0
    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)
    return sum(1 for _ in pattern.finditer(text))


# ============= discord.py -> facts =============
def _channel_id(state) -> Optional[str]:
    ch = getattr(state, 'channel', None) if state is not None else None
    return str(ch.id) if ch is not None else None


def message_posted_from(msg, now: int) -> Optional[MessagePosted]:
    guild = getattr(msg, 'guild', None)
    author = getattr(msg, 'author', None)
    if guild is None or author is None:
        return None
    if getattr(author, 'bot', False) or getattr(author, 'system', False):
        return None

    attachments = getattr(msg, 'attachments', None) or []
    return MessagePosted(
        guild_id=str(guild.id),
        channel_id=str(msg.channel.id),
        author_id=str(author.id),
        is_bot=False,
        message_id=str(msg.id),
        created_at=now,
        attachment_count=len(attachments),
        text=getattr(msg, 'content', '') or '',
    )


def voice_state_changed_from(member, before, after) -> Optional[VoiceStateChanged]:
    if member is None or getattr(member, 'bot', False):
        return None
    guild = getattr(member, 'guild', None)
    if guild is None:
        return None
    return VoiceStateChanged(
        guild_id=str(guild.id),
        user_id=str(member.id),
        is_bot=False,
        old_channel_id=_channel_id(before),
        new_channel_id=_channel_id(after),
    )
