"""Tests for DispatchRouter, including end-to-end runs of the built-in commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lucybot.commands.moderation.kick import KickCommand
from lucybot.commands.ping import PingCommand
from lucybot.handlers.cooldowns import CooldownTracker
from lucybot.handlers.descriptor import HandlerDescriptor
from lucybot.handlers.errors import HandlerExecutionError
from lucybot.handlers.registry import CommandRegistry, HandlerTable
from lucybot.handlers.router import DispatchOutcome, DispatchRouter, RouterMessages


@pytest.fixture
def table():
    return HandlerTable()


@pytest.fixture
def commands(table):
    return CommandRegistry(table)


@pytest.fixture
def cooldowns(clock):
    tracker = CooldownTracker(clock=clock)
    yield tracker
    tracker.clear()


@pytest.fixture
def failures():
    return []


@pytest.fixture
def router(table, cooldowns, failures):
    return DispatchRouter(table, cooldowns, on_failure=failures.append)


def make_guild(member):
    return SimpleNamespace(
        id=500,
        name="Lucy HQ",
        owner_id=99,
        me=SimpleNamespace(guild_permissions=SimpleNamespace(kick_members=True)),
        get_member=MagicMock(return_value=member),
        fetch_member=AsyncMock(),
    )


@pytest.mark.asyncio
async def test_ping_end_to_end(router, commands, cooldowns, make_context):
    commands.register(PingCommand())
    context = make_context(command_name="ping")

    outcome = await router.dispatch(context)

    assert outcome is DispatchOutcome.HANDLED
    assert outcome.handled
    assert context.deferred
    assert context.edits[-1].embed.title == "🏓 Pong!"
    assert len(cooldowns) == 0


@pytest.mark.asyncio
async def test_kick_end_to_end_starts_cooldown(router, commands, cooldowns, make_context):
    commands.register(KickCommand())
    target = SimpleNamespace(id=2, name="target", bot=False, kick=AsyncMock())
    guild = make_guild(target)

    first = make_context(
        command_name="kick",
        permissions=frozenset({"KickMembers"}),
        guild=guild,
        options={"user": target, "reason": "spam"},
    )
    assert await router.dispatch(first) is DispatchOutcome.HANDLED

    target.kick.assert_awaited_once_with(reason="spam")
    assert first.replies[0].embed is not None
    assert ("kick", 1) in cooldowns

    second = make_context(
        command_name="kick",
        permissions=frozenset({"KickMembers"}),
        guild=guild,
        options={"user": target},
    )
    assert await router.dispatch(second) is DispatchOutcome.COOLDOWN_ACTIVE

    assert target.kick.await_count == 1
    assert second.replies[0].content == "Please wait 5 seconds before using this command again."
    assert second.replies[0].ephemeral


@pytest.mark.asyncio
async def test_non_command_interaction_is_ignored(router, make_context):
    context = make_context(is_command=False)

    assert await router.dispatch(context) is DispatchOutcome.NOT_HANDLED
    assert context.replies == []


@pytest.mark.asyncio
async def test_unknown_command(router, make_context):
    context = make_context(command_name="ghost")

    outcome = await router.dispatch(context)

    assert outcome is DispatchOutcome.NOT_HANDLED
    assert not outcome.handled
    assert context.replies[0].content == "Command not found!"
    assert context.replies[0].ephemeral


@pytest.mark.asyncio
async def test_all_permissions_are_required(router, commands, make_context):
    execute = AsyncMock()
    commands.register(HandlerDescriptor(
        name="purge", description="Purge", execute=execute, permissions=["KickMembers", "BanMembers"],
    ))

    partial = make_context(command_name="purge", permissions=frozenset({"KickMembers"}))
    direct_message = make_context(command_name="purge", permissions=None)

    assert await router.dispatch(partial) is DispatchOutcome.PERMISSION_DENIED
    assert await router.dispatch(direct_message) is DispatchOutcome.PERMISSION_DENIED
    execute.assert_not_awaited()
    assert partial.replies[0].content == "You do not have permission to use this command!"


@pytest.mark.asyncio
async def test_administrator_passes_permission_gate(router, commands, make_context):
    execute = AsyncMock()
    commands.register(HandlerDescriptor(name="purge", description="Purge", execute=execute, permissions=["BanMembers"]))

    context = make_context(command_name="purge", permissions=frozenset({"Administrator"}))

    assert await router.dispatch(context) is DispatchOutcome.HANDLED
    execute.assert_awaited_once_with(context)


@pytest.mark.asyncio
async def test_failure_before_response_replies(router, commands, cooldowns, failures, make_context):
    boom = ValueError("boom")
    commands.register(HandlerDescriptor(
        name="flaky", description="Flaky", execute=AsyncMock(side_effect=boom), cooldown=5000,
    ))
    context = make_context(command_name="flaky")

    outcome = await router.dispatch(context)

    assert outcome is DispatchOutcome.FAILED
    assert outcome.handled
    assert context.replies[0].content == "Something went wrong while running this command!"
    assert context.follow_ups == []
    assert len(cooldowns) == 0
    assert isinstance(failures[0], HandlerExecutionError)
    assert failures[0].__cause__ is boom


@pytest.mark.asyncio
async def test_failure_after_defer_follows_up(router, commands, make_context):
    async def execute(context):
        await context.defer()
        raise RuntimeError("late failure")

    commands.register(HandlerDescriptor(name="slow", description="Slow", execute=execute))
    context = make_context(command_name="slow")

    assert await router.dispatch(context) is DispatchOutcome.FAILED
    assert context.replies == []
    assert context.follow_ups[0].content == "Something went wrong while running this command!"
    assert context.follow_ups[0].ephemeral


@pytest.mark.asyncio
async def test_notify_failure_is_logged_not_raised(router, make_context):
    context = make_context(command_name="ghost")
    context.reply = AsyncMock(side_effect=RuntimeError("gone"))

    assert await router.dispatch(context) is DispatchOutcome.NOT_HANDLED


@pytest.mark.asyncio
async def test_custom_messages(table, cooldowns, make_context):
    messages = RouterMessages.from_mapping({"not_found": "Nope.", "unknown_key": "ignored"})
    router = DispatchRouter(table, cooldowns, messages)
    context = make_context(command_name="ghost")

    await router.dispatch(context)

    assert context.replies[0].content == "Nope."
    assert messages.permission_denied == RouterMessages().permission_denied


@pytest.mark.asyncio
async def test_router_never_mutates_command_table(router, commands, table, make_context):
    commands.register(PingCommand())
    before = dict(table.commands)

    await router.dispatch(make_context(command_name="ping"))
    await router.dispatch(make_context(command_name="ghost"))

    assert table.commands == before
