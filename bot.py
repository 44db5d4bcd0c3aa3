# bot.py
import os
import sys
import logging
import discord
from discord import app_commands

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'proj.settings')
import django
django.setup()

from asgiref.sync import sync_to_async
from django.conf import settings

from tracker.facts import StatsRequested, message_posted_from, voice_state_changed_from
from tracker.ingest import MessageIngestor
from tracker.stats import StatsQuery, build_stats_embed
from tracker.store import ActivityStore, now_ts
from tracker.voice import VoiceSessionTracker, members_in_voice

logger = logging.getLogger('bot')

# ====== ENV ======
GUILD_ID = settings.GUILD_ID

intents = discord.Intents.none()
intents.guilds = True
intents.members = True
intents.messages = True
intents.message_content = True
intents.voice_states = True

client = discord.Client(intents=intents)
tree = app_commands.CommandTree(client)

store = ActivityStore(migrate=settings.AUTO_MIGRATE)
ingestor = MessageIngestor(store, settings.LINK_PATTERN)
voice_tracker = VoiceSessionTracker(store)
stats_query = StatsQuery(store)

# ===== async wrappers
ingest_message  = sync_to_async(ingestor.handle, thread_sensitive=True)
track_voice     = sync_to_async(voice_tracker.handle, thread_sensitive=True)
reconcile_voice = sync_to_async(voice_tracker.reconcile, thread_sensitive=True)
aggregate_stats = sync_to_async(stats_query.aggregate, thread_sensitive=True)

_commands_synced = False


def _tracked(guild) -> bool:
    return guild is not None and (not GUILD_ID or guild.id == GUILD_ID)

# ============= commands =============
async def register_commands():
    try:
        if GUILD_ID:
            if client.get_guild(GUILD_ID) is None:
                logger.warning("GUILD_ID %s not found in client cache, registering globally instead", GUILD_ID)
                await tree.sync()
                return
            guild = discord.Object(id=GUILD_ID)
            tree.copy_global_to(guild=guild)
            await tree.sync(guild=guild)
            logger.info("Registered guild commands to %s", GUILD_ID)
        else:
            await tree.sync()
            logger.info("Registered global commands (may take up to 1 hour)")
    except discord.DiscordException:
        logger.exception("Failed to register commands")


@tree.command(name='userstats', description='Show stats for a user')
@app_commands.describe(user='Select user')
async def userstats(interaction: discord.Interaction, user: discord.User):
    if interaction.guild is None:
        await interaction.response.send_message(
            "This command must be used inside a server (not in DMs).", ephemeral=True
        )
        return
    req = StatsRequested(guild_id=str(interaction.guild.id), requested_user_id=str(user.id))
    await interaction.response.defer()
    stats = await aggregate_stats(req.guild_id, req.requested_user_id)
    await interaction.followup.send(embed=build_stats_embed(stats, str(user)))


@tree.error
async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    logger.error("Command error: %r", error, exc_info=error)
    text = "An unexpected error occurred while processing your command."
    try:
        if interaction.response.is_done():
            await interaction.followup.send(text)
        else:
            await interaction.response.send_message(text, ephemeral=True)
    except discord.HTTPException:
        logger.exception("Failed to send error reply")

# ============= Discord events =============
@client.event
async def on_ready():
    global _commands_synced
    logger.info("Logged in as %s (%s)", client.user, client.user.id)
    for g in client.guilds:
        logger.info(" - %s (%s)", g.name, g.id)
        if not _tracked(g):
            continue
        try:
            await reconcile_voice(str(g.id), members_in_voice(g))
        except Exception:
            logger.exception("Voice reconcile failed for guild %s", g.id)

    if not _commands_synced:
        await register_commands()
        _commands_synced = True


@client.event
async def on_message(msg):
    if not _tracked(msg.guild):
        return
    try:
        fact = message_posted_from(msg, now_ts())
        if fact:
            await ingest_message(fact)
    except Exception:
        logger.exception("Failed to record message %s", msg.id)


@client.event
async def on_voice_state_update(member, before, after):
    if not _tracked(getattr(member, 'guild', None)):
        return
    try:
        fact = voice_state_changed_from(member, before, after)
        if fact:
            await track_voice(fact)
    except Exception:
        logger.exception("Failed to track voice update for member %s", getattr(member, 'id', None))

# ============= run =============
def main():
    token = os.getenv('DISCORD_TOKEN')
    if not token:
        logger.error("Missing DISCORD_TOKEN in environment or .env, please set it and restart.")
        sys.exit(1)

    store.open()
    try:
        client.run(token, log_handler=None)
    finally:
        store.close()


if __name__ == "__main__" and not os.getenv("BOT_NO_RUN"):
    main()
