"""
Routes one inbound interaction to its command handler.

Each call to :meth:`DispatchRouter.dispatch` makes a single pass through these
stages and returns a :class:`DispatchOutcome`:

1. ignore anything that is not a command invocation
2. resolve the command by name (unknown -> "not found" reply)
3. cooldown gate
4. permission gate
5. run the handler; a raised error is logged and answered with an apology
6. on success, start the caller's cooldown

Gate rejections are outcomes, not exceptions. Nothing raised by a handler
leaves this module, and failed invocations are never retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from lucybot.handlers.cooldowns import CooldownTracker
from lucybot.handlers.descriptor import cooldown_ms, invoke, required_permissions
from lucybot.handlers.errors import HandlerExecutionError
from lucybot.handlers.permissions import has_permissions
from lucybot.handlers.registry import HandlerTable
from lucybot.util.logger import get_logger

logger = get_logger("dispatch_router")


class DispatchOutcome(str, Enum):
    NOT_HANDLED = "not_handled"
    HANDLED = "handled"
    FAILED = "failed"
    COOLDOWN_ACTIVE = "cooldown_active"
    PERMISSION_DENIED = "permission_denied"

    @property
    def handled(self) -> bool:
        """True when the handler was invoked, whether or not it succeeded."""
        return self in (DispatchOutcome.HANDLED, DispatchOutcome.FAILED)


@dataclass
class RouterMessages:
    """User-facing texts. ``cooldown`` receives a ``{seconds}`` placeholder."""

    not_found: str = "Command not found!"
    cooldown: str = "Please wait {seconds} seconds before using this command again."
    permission_denied: str = "You do not have permission to use this command!"
    execution_failed: str = "Something went wrong while running this command!"

    @classmethod
    def from_mapping(cls, data: Optional[dict]) -> "RouterMessages":
        if not isinstance(data, dict):
            return cls()
        known = {key: str(value) for key, value in data.items() if key in cls.__dataclass_fields__ and value}
        return cls(**known)


class DispatchRouter:
    """Resolve, gate and invoke command handlers.

    The router reads ``table.commands`` but never mutates it. Cooldowns are
    read through :meth:`CooldownTracker.is_on_cooldown` and written only via
    :meth:`CooldownTracker.mark_used` after a successful run.
    """

    def __init__(
        self,
        table: HandlerTable,
        cooldowns: CooldownTracker,
        messages: RouterMessages | None = None,
        on_failure: Callable[[HandlerExecutionError], Any] | None = None,
    ) -> None:
        self.table = table
        self.cooldowns = cooldowns
        self.messages = messages or RouterMessages()
        self.on_failure = on_failure

    async def dispatch(self, context: Any) -> DispatchOutcome:
        if not getattr(context, "is_command", False):
            return DispatchOutcome.NOT_HANDLED

        name = context.command_name
        command = self.table.commands.get(name) if name else None
        if command is None:
            logger.warning("[ROUTER] Unknown command '%s' from user %s", name, context.user_id)
            await self._notify(context, self.messages.not_found)
            return DispatchOutcome.NOT_HANDLED

        user_id = context.user_id
        cooldown = cooldown_ms(command)
        if cooldown and self.cooldowns.is_on_cooldown(command.name, user_id):
            seconds = self.cooldowns.remaining_seconds(command.name, user_id)
            await self._notify(context, self.messages.cooldown.format(seconds=seconds))
            return DispatchOutcome.COOLDOWN_ACTIVE

        if not has_permissions(required_permissions(command), context.permissions):
            logger.info("[ROUTER] User %s lacks permissions for '%s'", user_id, command.name)
            await self._notify(context, self.messages.permission_denied)
            return DispatchOutcome.PERMISSION_DENIED

        logger.info(
            "[ROUTER] Command '%s' invoked by %s in %s",
            command.name,
            getattr(context, "user_name", user_id),
            getattr(context, "guild_name", context.guild_id),
        )

        try:
            await invoke(command.execute, context)
        except Exception as exc:
            error = HandlerExecutionError(command.name)
            error.__cause__ = exc
            logger.error("[ROUTER] %s: %s", error, exc, exc_info=exc)
            self._report(error)
            await self._notify(context, self.messages.execution_failed)
            return DispatchOutcome.FAILED

        if cooldown:
            self.cooldowns.mark_used(command.name, user_id, cooldown)
        return DispatchOutcome.HANDLED

    async def _notify(self, context: Any, message: str) -> None:
        """Send an ephemeral notice on whichever channel is still open."""
        try:
            if context.responded:
                await context.follow_up(message, ephemeral=True)
            else:
                await context.reply(message, ephemeral=True)
        except Exception as exc:
            logger.error("[ROUTER] Could not notify user %s: %s", context.user_id, exc)

    def _report(self, error: HandlerExecutionError) -> None:
        if self.on_failure is None:
            return
        try:
            self.on_failure(error)
        except Exception as exc:
            logger.error("[ROUTER] Failure reporter raised: %s", exc)
