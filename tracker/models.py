from django.db import models

# timestamps are unix seconds; ids are discord snowflakes kept as strings


class UserPresence(models.Model):
    guild_id = models.CharField(max_length=32)
    user_id = models.CharField(max_length=32)
    first_seen = models.BigIntegerField()
    last_seen = models.BigIntegerField()

    class Meta:
        db_table = 'tracker_userpresence'
        unique_together = (('guild_id', 'user_id'),)


# ------ Messages (one row per observed message) ------
class MessageEvent(models.Model):
    guild_id = models.CharField(max_length=32)
    channel_id = models.CharField(max_length=32)
    user_id = models.CharField(max_length=32)
    message_id = models.CharField(max_length=32, unique=True)
    created_at = models.BigIntegerField()
    has_attachment = models.BooleanField(default=False)
    attachment_count = models.PositiveIntegerField(default=0)
    link_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'tracker_messageevent'
        indexes = [models.Index(fields=['guild_id', 'user_id'], name='msg_guild_user_idx')]


# ------ Voice (one row per continuous occupancy) ------
class VoiceSession(models.Model):
    guild_id = models.CharField(max_length=32)
    user_id = models.CharField(max_length=32)
    channel_id = models.CharField(max_length=32)
    joined_at = models.BigIntegerField()
    left_at = models.BigIntegerField(null=True, blank=True)
    duration_seconds = models.BigIntegerField(null=True, blank=True)

    class Meta:
        db_table = 'tracker_voicesession'
        indexes = [models.Index(fields=['guild_id', 'user_id', 'left_at'], name='voice_open_idx')]

    @property
    def is_open(self) -> bool:
        return self.left_at is None
