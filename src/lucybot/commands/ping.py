"""/ping: response time and gateway latency."""

from __future__ import annotations

import math
import time

from lucybot.util.discord_utils import latency_grade
from lucybot.util.embeds import create_embed, send_error
from lucybot.util.logger import get_logger

logger = get_logger("cmd_ping")


class PingCommand:
    name = "ping"
    description = "Show the bot's latency"
    category = "utility"
    permissions: list[str] = []
    usage = "/ping"
    examples = ["/ping"]

    async def execute(self, context) -> None:
        started = time.perf_counter()
        try:
            await context.defer()
            response_ms = round((time.perf_counter() - started) * 1000)

            latency = getattr(context.client, "latency", float("nan"))
            latency_ms = round(latency * 1000) if math.isfinite(latency) else 0

            embed = create_embed(
                title="🏓 Pong!",
                color="success",
                fields=[
                    {"name": "⏱️ Response time", "value": f"{response_ms}ms", "inline": True},
                    {"name": "📡 Gateway latency", "value": f"{latency_ms}ms", "inline": True},
                    {"name": "📊 Status", "value": latency_grade(latency_ms), "inline": True},
                ],
                footer=f"Requested by {context.user_name}",
                timestamp=True,
            )
            await context.edit_reply(embed=embed)
        except Exception as exc:
            await send_error(context, exc, "ping")
            await self._fallback(context)

    async def _fallback(self, context) -> None:
        try:
            if context.responded:
                await context.edit_reply("🏓 Pong! (plain mode)")
            else:
                await context.reply("🏓 Pong! (plain mode)")
        except Exception as exc:
            logger.error("Ping fallback reply failed: %s", exc)


handler = PingCommand
