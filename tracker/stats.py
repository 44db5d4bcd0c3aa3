import logging
from dataclasses import asdict, dataclass
from typing import Optional

import discord
from django.utils import timezone

from .store import ActivityStore

logger = logging.getLogger(__name__)

UNAVAILABLE = 'n/a'


@dataclass(frozen=True)
class UserStats:
    total_messages: Optional[int] = 0
    total_attachments: Optional[int] = 0
    total_voice_seconds: Optional[int] = 0
    total_links: Optional[int] = 0
    available: bool = True

    @classmethod
    def unavailable(cls) -> 'UserStats':
        return cls(None, None, None, None, available=False)

    def as_dict(self) -> dict:
        return asdict(self)


def seconds_to_hours_minutes(sec: int) -> str:
    sec = max(int(sec or 0), 0)
    return f"{sec // 3600}h {(sec % 3600) // 60}m"


class StatsQuery:

    def __init__(self, store: ActivityStore):
        self.store = store

    def aggregate(self, guild_id: str, user_id: str) -> UserStats:
        try:
            row = self.store.aggregate_stats(str(guild_id), str(user_id))
        except Exception:
            logger.exception("Stats query failed for user %s in guild %s", user_id, guild_id)
            return UserStats.unavailable()
        return UserStats(**row)


def _fmt(v: Optional[int]) -> str:
    return UNAVAILABLE if v is None else str(v)


def build_stats_embed(stats: UserStats, user_label: str) -> discord.Embed:
    embed = discord.Embed(title=f"{user_label} — server stats", timestamp=timezone.now())
    if not stats.available:
        embed.description = "Error building stats"

    voice = UNAVAILABLE if stats.total_voice_seconds is None \
        else seconds_to_hours_minutes(stats.total_voice_seconds)
    embed.add_field(name="Messages", value=_fmt(stats.total_messages), inline=True)
    embed.add_field(name="Attachments / media", value=_fmt(stats.total_attachments), inline=True)
    embed.add_field(name="Voice time", value=voice, inline=True)
    embed.add_field(name="Contributions (links)", value=_fmt(stats.total_links), inline=True)
    return embed
