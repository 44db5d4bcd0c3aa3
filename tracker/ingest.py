import logging
import re
from typing import Optional, Union

from .facts import MessagePosted, count_links
from .store import ActivityStore

logger = logging.getLogger(__name__)


class MessageIngestor:
    """Records presence and one MessageEvent row per posted message."""

    def __init__(self, store: ActivityStore, link_pattern: Union[str, re.Pattern]):
        self.store = store
        if isinstance(link_pattern, str):
            link_pattern = re.compile(link_pattern, re.IGNORECASE)
        self.link_pattern = link_pattern

    def handle(self, fact: Optional[MessagePosted]) -> bool:
        """Returns True when a new message row was written."""
        if fact is None or fact.is_bot or not fact.guild_id:
            return False

        self.store.upsert_presence(fact.guild_id, fact.author_id, fact.created_at)
        created = self.store.insert_message_fact(
            guild_id=fact.guild_id,
            channel_id=fact.channel_id,
            user_id=fact.author_id,
            message_id=fact.message_id,
            created_at=fact.created_at,
            attachment_count=max(fact.attachment_count, 0),
            link_count=count_links(fact.text, self.link_pattern),
        )
        if not created:
            logger.debug("Message %s already recorded", fact.message_id)
        return created
