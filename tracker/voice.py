"""
Voice session lifecycle.

Per (guild, user) there is at most one open VoiceSession row. Gateway
transitions map onto the store like this:

    join    (None -> C)  open a session on C
    leave   (C -> None)  close the open session, if any
    switch  (A -> B)     close the open session, then open one on B
    A -> A               nothing

A join that finds a session still open (the leave was missed while the bot
was offline) closes the stale row with zero duration before opening the new
one, so the old row never inflates voice time.
"""
import logging
from typing import Dict, Optional

from .facts import VoiceStateChanged, VoiceTransition, classify
from .models import VoiceSession
from .store import ActivityStore, now_ts

logger = logging.getLogger(__name__)


class VoiceSessionTracker:

    def __init__(self, store: ActivityStore):
        self.store = store

    def handle(self, fact: VoiceStateChanged, now: Optional[int] = None) -> VoiceTransition:
        transition = classify(fact)
        if transition is VoiceTransition.NONE:
            return transition

        ts = now_ts() if now is None else now
        if transition is VoiceTransition.JOIN:
            self._open(fact.guild_id, fact.user_id, fact.new_channel_id, ts)
        elif transition is VoiceTransition.LEAVE:
            self._close(fact.guild_id, fact.user_id, ts)
        else:
            self._close(fact.guild_id, fact.user_id, ts)
            self._open(fact.guild_id, fact.user_id, fact.new_channel_id, ts)
        return transition

    def _open(self, guild_id: str, user_id: str, channel_id: str, ts: int) -> VoiceSession:
        for stale in self.store.open_sessions(guild_id, user_id):
            self._abandon(stale)
        return self.store.open_voice_session(guild_id, user_id, channel_id, ts)

    def _close(self, guild_id: str, user_id: str, ts: int) -> Optional[VoiceSession]:
        session = self.store.find_open_session(guild_id, user_id)
        if session is None:
            logger.info("No open voice session for user %s in guild %s, leave dropped", user_id, guild_id)
            return None
        self.store.close_voice_session(session, ts)
        return session

    def _abandon(self, session: VoiceSession):
        logger.warning(
            "Abandoning stale voice session %s (user %s, guild %s, joined_at %s)",
            session.pk, session.user_id, session.guild_id, session.joined_at,
        )
        self.store.close_voice_session(session, session.joined_at)

    def reconcile(self, guild_id: str, in_voice: Dict[str, str], now: Optional[int] = None) -> dict:
        """
        Align open sessions with who is actually in voice right now.

        Args:
            guild_id: guild being reconciled
            in_voice: {user_id: channel_id} for non-bot members currently in voice

        Returns:
            {'opened': n, 'abandoned': n}
        """
        ts = now_ts() if now is None else now
        opened = abandoned = 0

        open_by_user: Dict[str, list] = {}
        for s in self.store.open_sessions(guild_id):
            open_by_user.setdefault(s.user_id, []).append(s)

        for uid, sessions in open_by_user.items():
            # newest first; keep it only if the member is still in that channel
            keep = sessions[0] if in_voice.get(uid) == sessions[0].channel_id else None
            for s in sessions:
                if s is not keep:
                    self._abandon(s)
                    abandoned += 1

        for uid, ch_id in in_voice.items():
            current = open_by_user.get(uid)
            if current and current[0].channel_id == ch_id:
                continue
            self.store.open_voice_session(guild_id, uid, ch_id, ts)
            opened += 1

        if opened or abandoned:
            logger.info("Voice reconcile for guild %s: opened=%s abandoned=%s", guild_id, opened, abandoned)
        return {'opened': opened, 'abandoned': abandoned}


def members_in_voice(guild) -> Dict[str, str]:
    """{user_id: channel_id} for non-bot members of a discord.py guild currently in voice."""
    out: Dict[str, str] = {}
    for m in getattr(guild, 'members', []) or []:
        voice = getattr(m, 'voice', None)
        if voice and voice.channel and not getattr(m, 'bot', False):
            out[str(m.id)] = str(voice.channel.id)
    return out
