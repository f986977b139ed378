"""Gateway ``ready``: presence, connection summary and slash command sync."""

from __future__ import annotations

import datetime

import discord

from lucybot.handlers.descriptor import HandlerDescriptor
from lucybot.util.logger import get_logger

logger = get_logger("event_ready")


async def on_ready(client) -> None:
    bot = client.bot
    user = client.user
    if user is None:
        logger.warning("[READY] Connected, but user information is not available yet.")
    else:
        logger.info("[READY] Logged in as %s (ID: %s)", user, user.id)

    guilds = len(bot.guilds)
    users = len(bot.users)
    logger.info("[READY] Connected to %d guilds, serving %d users", guilds, users)

    await bot.change_presence(
        status=discord.Status.online,
        activity=discord.Activity(type=discord.ActivityType.watching, name=client.config.presence_text),
    )

    await client.sync_application_commands()

    logger.info("--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--")
    bot.dispatch("bot_ready", {
        "timestamp": datetime.datetime.now(datetime.timezone.utc),
        "guilds": guilds,
        "users": users,
    })


handler = HandlerDescriptor(
    name="ready",
    description="Runs once when the bot is connected and ready",
    execute=on_ready,
    once=True,
)
