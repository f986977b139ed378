"""
Embed construction and error replies shared by the built-in commands.
"""

from __future__ import annotations

import datetime
from typing import Any, Iterable, Mapping, Optional

import discord

from lucybot.util.logger import get_logger

logger = get_logger("embeds")

COLORS = {
    "success": discord.Color(0x00FF00),
    "error": discord.Color(0xFF0000),
    "warning": discord.Color(0xFF9900),
    "info": discord.Color(0x00AAFF),
    "default": discord.Color(0x7289DA),
}

DEFAULT_ERROR_MESSAGE = "❌ Something went wrong while performing this action!"


def resolve_color(color: Any) -> Optional[discord.Color]:
    """Accept a preset name, an int or a ``discord.Color``."""
    if color is None:
        return None
    if isinstance(color, discord.Color):
        return color
    if isinstance(color, str):
        return COLORS.get(color.lower(), COLORS["default"])
    return discord.Color(int(color))


def create_embed(
    title: Optional[str] = None,
    description: Optional[str] = None,
    color: Any = "default",
    fields: Optional[Iterable[Mapping[str, Any]]] = None,
    footer: Optional[str] = None,
    footer_icon: Optional[str] = None,
    thumbnail: Optional[str] = None,
    url: Optional[str] = None,
    timestamp: bool = False,
) -> discord.Embed:
    """
    Build an embed from keyword options.

    Args:
        color: Preset name (``success``, ``error``, ``warning``, ``info``,
            ``default``), an RGB int or a ``discord.Color``.
        fields: Mappings with ``name``, ``value`` and optional ``inline``.
        timestamp: Stamp the embed with the current UTC time.

    Returns:
        discord.Embed: The assembled embed.
    """
    embed = discord.Embed(title=title, description=description, url=url)
    resolved = resolve_color(color)
    if resolved is not None:
        embed.color = resolved
    if timestamp:
        embed.timestamp = datetime.datetime.now(datetime.timezone.utc)

    for field in fields or []:
        embed.add_field(name=field["name"], value=field["value"], inline=bool(field.get("inline", False)))

    if footer:
        if footer_icon:
            embed.set_footer(text=footer, icon_url=footer_icon)
        else:
            embed.set_footer(text=footer)
    if thumbnail:
        embed.set_thumbnail(url=thumbnail)
    return embed


async def send_error(context: Any, error: BaseException, where: str, message: Optional[str] = None) -> None:
    """Log ``error`` and tell the user, on whichever response channel is open.

    A deferred interaction gets its placeholder edited, an answered one gets an
    ephemeral follow-up, anything else an ephemeral reply. Failing to send is
    logged and swallowed.
    """
    logger.error("Error in %s: %s", where, error, exc_info=error)
    text = message or DEFAULT_ERROR_MESSAGE

    try:
        if context.deferred:
            await context.edit_reply(text)
        elif context.responded:
            await context.follow_up(text, ephemeral=True)
        else:
            await context.reply(text, ephemeral=True)
    except Exception as exc:
        logger.error("Could not send error message for %s: %s", where, exc)
