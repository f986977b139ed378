"""
discord_utils.py
================

Stateless helpers for the built-in commands: moderation target checks and
small formatting functions.
"""

from __future__ import annotations

from typing import Any, Optional

import discord

from lucybot.util.logger import get_logger

logger = get_logger("discord_utils")


def _top_position(member: Any) -> int:
    role = getattr(member, "top_role", None)
    return getattr(role, "position", 0)


def validate_target(context: Any, target: discord.User | discord.Member, member: Optional[discord.Member] = None) -> Optional[str]:
    """
    Check whether the invoking user may moderate ``target``.

    Args:
        context: The interaction context of the moderator.
        target: The user being acted on.
        member: ``target`` as a guild member, when it is one. Enables the role
            hierarchy checks against the moderator and the bot.

    Returns:
        str | None: The refusal reason, or ``None`` when the action is allowed.
    """
    if target.id == context.user_id:
        return "❌ You cannot perform this action on yourself!"

    if getattr(target, "bot", False):
        return "❌ I cannot perform this action on a bot!"

    guild = context.guild
    if guild is not None and target.id == guild.owner_id:
        return "❌ I cannot perform this action on the server owner!"

    moderator = context.user
    if member is not None and isinstance(moderator, discord.Member):
        if _top_position(member) >= _top_position(moderator):
            return "❌ You cannot perform this action on someone with an equal or higher role!"

        me = getattr(guild, "me", None)
        if me is not None and _top_position(member) >= _top_position(me):
            return "❌ I cannot perform this action on someone with an equal or higher role than mine!"

    return None


def format_duration(minutes: int) -> str:
    """
    Convert a duration in minutes to a human-readable string.

    Args:
        minutes (int): Duration in minutes.

    Returns:
        str: e.g. ``"1 hour and 30 minutes"``, ``"2 days and 3 hours"``.
    """
    if minutes <= 0:
        return "0 minutes"

    def plural(value: int, unit: str) -> str:
        return f"{value} {unit}{'s' if value != 1 else ''}"

    if minutes < 60:
        return plural(minutes, "minute")

    hours, rest = divmod(minutes, 60)
    if hours < 24:
        text = plural(hours, "hour")
        return f"{text} and {plural(rest, 'minute')}" if rest else text

    days, rest_hours = divmod(hours, 24)
    text = plural(days, "day")
    return f"{text} and {plural(rest_hours, 'hour')}" if rest_hours else text


def truncate_text(text: Optional[str], max_length: int = 100, suffix: str = "...") -> str:
    """Cut ``text`` to ``max_length`` characters, ending with ``suffix`` when cut."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[: max(max_length - len(suffix), 0)] + suffix


def latency_grade(latency_ms: float) -> str:
    if latency_ms < 100:
        return "🟢 Excellent"
    if latency_ms < 200:
        return "🟡 Good"
    if latency_ms < 300:
        return "🟠 Fair"
    return "🔴 Poor"


def format_bytes(size: float, decimals: int = 2) -> str:
    """``1536`` -> ``"1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = 0
    while size >= 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return f"{round(size, max(decimals, 0)):g} {units[index]}"
