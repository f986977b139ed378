"""/kick: remove a member from the server."""

from __future__ import annotations

import discord

from lucybot.util.discord_utils import truncate_text, validate_target
from lucybot.util.embeds import create_embed, send_error
from lucybot.util.logger import get_logger

logger = get_logger("cmd_kick")

USER_OPTION = discord.SlashCommandOptionType.user.value
STRING_OPTION = discord.SlashCommandOptionType.string.value


class KickCommand:
    name = "kick"
    description = "Kick a member from the server"
    category = "moderation"
    permissions = ["KickMembers"]
    cooldown = 5000
    usage = "/kick user:<member> [reason:<text>]"
    examples = ["/kick user:@someone reason:Spamming invites"]
    options = [
        {"type": USER_OPTION, "name": "user", "description": "Member to kick", "required": True},
        {"type": STRING_OPTION, "name": "reason", "description": "Reason for the kick", "required": False},
    ]

    async def execute(self, context) -> None:
        try:
            guild = context.guild
            if guild is None:
                await context.reply("❌ This command can only be used in a server.", ephemeral=True)
                return

            target = context.option("user")
            reason = context.option("reason") or "No reason provided"

            member = await self._resolve_member(guild, target)
            if member is None:
                await context.reply("❌ User not found in this server!", ephemeral=True)
                return

            refusal = validate_target(context, member, member)
            if refusal:
                await context.reply(refusal, ephemeral=True)
                return

            me = getattr(guild, "me", None)
            if me is not None and not me.guild_permissions.kick_members:
                await context.reply(
                    "❌ I cannot kick this user. Check my permissions and role hierarchy.",
                    ephemeral=True,
                )
                return

            await member.kick(reason=reason)

            embed = create_embed(
                title="✅ Member kicked",
                color="success",
                fields=[
                    {"name": "👤 User", "value": f"{member.name} ({member.id})", "inline": True},
                    {"name": "👮 Moderator", "value": context.user_name, "inline": True},
                    {"name": "📝 Reason", "value": truncate_text(reason, 1024), "inline": False},
                ],
                footer=f"Server: {guild.name}",
                timestamp=True,
            )
            await context.reply(embed=embed)

            logger.info(
                "[KICK] %s (%s) kicked by %s (%s) in %s. Reason: %s",
                member.name, member.id, context.user_name, context.user_id, guild.name, reason,
            )
            await self._record(context, member, reason)
        except Exception as exc:
            await send_error(context, exc, "kick", "❌ Something went wrong while trying to kick the user.")

    async def _resolve_member(self, guild, target):
        if target is None:
            return None
        if isinstance(target, discord.Member):
            return target
        target_id = int(getattr(target, "id", target))
        member = guild.get_member(target_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(target_id)
        except discord.NotFound:
            return None

    async def _record(self, context, member, reason: str) -> None:
        """Keep the action in the durable store when one is connected."""
        database = getattr(context.services, "database", None)
        store = getattr(database, "persistent", None)
        if store is None or not store.is_connected:
            return
        try:
            await store.insert("moderation_actions", {
                "guild_id": context.guild_id,
                "user_id": member.id,
                "moderator_id": context.user_id,
                "action": "kick",
                "reason": reason,
            })
        except Exception as exc:
            logger.warning("[KICK] Could not record kick of %s: %s", member.id, exc)


handler = KickCommand
