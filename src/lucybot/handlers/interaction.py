"""
Adapter between py-cord interactions and command handlers.

:class:`InteractionContext` is what every command's ``execute`` receives and
what :class:`lucybot.handlers.router.DispatchRouter` inspects. It enforces the
response order Discord requires: the first response is either a reply or a
defer, and follow-ups or edits only come after it.
"""

from __future__ import annotations

from typing import Any, Optional

import discord

from lucybot.handlers.errors import ResponseStateError
from lucybot.handlers.permissions import granted_permissions


class InteractionContext:
    """Wraps a ``discord.Interaction`` for command handlers.

    Parameters
    ----------
    interaction:
        The raw py-cord interaction.
    services:
        Optional shared objects handlers may need (for example the database
        manager), reachable as ``context.services``.
    """

    def __init__(self, interaction: discord.Interaction, services: Any = None) -> None:
        self.interaction = interaction
        self.services = services
        self._deferred = False

    # ------------------------------------------------------------------
    # Inbound data
    # ------------------------------------------------------------------

    @property
    def is_command(self) -> bool:
        return self.interaction.type == discord.InteractionType.application_command

    @property
    def command_name(self) -> Optional[str]:
        data = self.interaction.data or {}
        return data.get("name")

    @property
    def user(self) -> discord.User | discord.Member | None:
        return self.interaction.user

    @property
    def user_id(self) -> Optional[int]:
        user = self.interaction.user
        return user.id if user else None

    @property
    def user_name(self) -> str:
        user = self.interaction.user
        return user.name if user else "unknown"

    @property
    def guild(self) -> Optional[discord.Guild]:
        return self.interaction.guild

    @property
    def guild_id(self) -> Optional[int]:
        return self.interaction.guild_id

    @property
    def guild_name(self) -> str:
        guild = self.interaction.guild
        return guild.name if guild else "DM"

    @property
    def client(self) -> Any:
        return self.interaction.client

    @property
    def permissions(self) -> Optional[frozenset[str]]:
        """Permissions of the invoking member, ``None`` outside a guild."""
        user = self.interaction.user
        if self.interaction.guild_id is None or not isinstance(user, discord.Member):
            return None
        return granted_permissions(user.guild_permissions)

    def option(self, name: str, default: Any = None) -> Any:
        """Value of the slash-command option ``name``.

        User and member options are resolved from the interaction payload when
        possible; otherwise the raw value (an ID) is returned.
        """
        data = self.interaction.data or {}
        for option in data.get("options", []) or []:
            if option.get("name") != name:
                continue
            value = option.get("value", default)
            if option.get("type") == discord.SlashCommandOptionType.user.value:
                return self._resolve_user(value)
            return value
        return default

    def _resolve_user(self, raw_id: Any) -> Any:
        resolved = (self.interaction.data or {}).get("resolved", {})
        user_id = int(raw_id)
        guild = self.interaction.guild
        if guild is not None:
            member = guild.get_member(user_id)
            if member is not None:
                return member
        client = self.interaction.client
        user = client.get_user(user_id) if client is not None else None
        if user is not None:
            return user
        if str(raw_id) in resolved.get("users", {}):
            return discord.Object(id=user_id)
        return raw_id

    # ------------------------------------------------------------------
    # Response state
    # ------------------------------------------------------------------

    @property
    def responded(self) -> bool:
        return self.interaction.response.is_done()

    @property
    def deferred(self) -> bool:
        return self._deferred

    async def reply(self, content: str | None = None, *, embed: discord.Embed | None = None, ephemeral: bool = False) -> None:
        if self.responded:
            raise ResponseStateError("Interaction already received its first response")
        kwargs: dict[str, Any] = {"ephemeral": ephemeral}
        if embed is not None:
            kwargs["embed"] = embed
        await self.interaction.response.send_message(content, **kwargs)

    async def defer(self, *, ephemeral: bool = False) -> None:
        if self.responded:
            raise ResponseStateError("Interaction already received its first response")
        await self.interaction.response.defer(ephemeral=ephemeral)
        self._deferred = True

    async def follow_up(self, content: str | None = None, *, embed: discord.Embed | None = None, ephemeral: bool = False) -> None:
        if not self.responded:
            raise ResponseStateError("Follow-ups need a reply or defer first")
        kwargs: dict[str, Any] = {"ephemeral": ephemeral}
        if embed is not None:
            kwargs["embed"] = embed
        await self.interaction.followup.send(content, **kwargs)

    async def edit_reply(self, content: str | None = None, *, embed: discord.Embed | None = None) -> None:
        if not self.responded:
            raise ResponseStateError("Nothing to edit before the first response")
        kwargs: dict[str, Any] = {}
        if content is not None:
            kwargs["content"] = content
        if embed is not None:
            kwargs["embed"] = embed
        await self.interaction.edit_original_response(**kwargs)
