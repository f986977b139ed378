"""Tests for console.py module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lucybot.database.cache_store import CleanupCounts
from lucybot.handlers.cooldowns import CooldownTracker
from lucybot.handlers.errors import HandlerLoadError
from lucybot.ui import console


def make_client():
    bot = SimpleNamespace(is_closed=lambda: False, close=AsyncMock(), guilds=[], latency=0.05)
    commands = MagicMock()
    commands.search.return_value = [SimpleNamespace(name="kick", description="Kick a member")]
    commands.info.return_value = {
        "kick": {
            "description": "Kick a member",
            "category": "moderation",
            "cooldown": 5000,
            "permissions": ["KickMembers"],
            "usage": "/kick",
            "examples": [],
        },
    }
    return SimpleNamespace(
        bot=bot,
        is_ready=True,
        table=SimpleNamespace(commands={"kick": object()}, events={}, plugins={}),
        cooldowns=CooldownTracker(clock=lambda: 1000.0),
        commands=commands,
        events=MagicMock(),
        database=None,
        reload_command=AsyncMock(),
        reload_event=MagicMock(),
        sync_application_commands=AsyncMock(return_value=True),
        clear_application_commands=AsyncMock(return_value=True),
    )


@pytest.fixture
def control():
    control = console.ConsoleControl()
    control.set_client(make_client())
    return control


def printed(mock):
    return [call.args[0] for call in mock.call_args_list]


def test_console_print_without_style():
    with patch("lucybot.ui.console.print_formatted_text") as mock_print:
        console.console_print("Test message")
        mock_print.assert_called_once_with("Test message")


def test_console_print_with_style():
    with patch("lucybot.ui.console.print_formatted_text") as mock_print:
        console.console_print("Test message", "ansigreen")
        assert mock_print.call_count == 1


def test_box_title_is_aligned():
    lines = console.box_title("Status")

    assert len({len(line) for line in lines}) == 1
    assert "Status" in lines[1]


def test_console_control_flags():
    control = console.ConsoleControl()
    assert not control.is_shutdown_requested()

    control.request_restart()
    control.stop()

    assert control.is_shutdown_requested()
    assert control.is_restart_requested()


@pytest.mark.asyncio
async def test_close_client_when_none():
    await console.close_client(None)


@pytest.mark.asyncio
async def test_close_client_when_already_closed():
    close = AsyncMock()
    client = SimpleNamespace(bot=SimpleNamespace(is_closed=lambda: True, close=close))

    await console.close_client(client)

    close.assert_not_awaited()


@pytest.mark.asyncio
async def test_handle_console_command_empty(control):
    await console.handle_console_command("", control)
    await console.handle_console_command("   ", control)


@pytest.mark.asyncio
async def test_unknown_command(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("dance", control)

    assert "Unknown command 'dance'" in printed(print_mock)[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("alias", ["shutdown", "quit", "exit", "stop"])
async def test_shutdown_aliases_close_the_bot(control, alias):
    with patch("lucybot.ui.console.console_print"):
        await console.handle_console_command(alias, control)

    assert control.is_shutdown_requested()
    assert not control.is_restart_requested()
    control.client.bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_restart_sets_both_flags(control):
    with patch("lucybot.ui.console.console_print"):
        await console.handle_console_command("restart", control)

    assert control.is_shutdown_requested()
    assert control.is_restart_requested()


@pytest.mark.asyncio
async def test_reload_success_and_failure(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("reload kick", control)
        control.client.reload_command.side_effect = HandlerLoadError("kick.py", "SyntaxError")
        await console.handle_console_command("reload kick", control)

    control.client.reload_command.assert_awaited_with("kick")
    lines = printed(print_mock)
    assert lines[0] == "Command 'kick' reloaded."
    assert lines[1].startswith("Reload failed:")


@pytest.mark.asyncio
async def test_reload_requires_argument(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("reload", control)

    control.client.reload_command.assert_not_awaited()
    assert printed(print_mock) == ["Usage: reload <command>"]


@pytest.mark.asyncio
async def test_commands_need_a_client():
    control = console.ConsoleControl()

    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("reload kick", control)

    assert printed(print_mock) == ["Bot is not initialized."]


@pytest.mark.asyncio
async def test_enable_and_disable_event(control):
    with patch("lucybot.ui.console.console_print"):
        await console.handle_console_command("disable-event ready", control)
        await console.handle_console_command("enable-event ready", control)

    control.client.events.disable.assert_called_once_with("ready")
    control.client.events.enable.assert_called_once_with("ready")


@pytest.mark.asyncio
async def test_search(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("find kick members", control)

    control.client.commands.search.assert_called_once_with("kick members")
    assert printed(print_mock) == ["  • /kick: Kick a member"]


@pytest.mark.asyncio
async def test_commands_listing(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("commands", control)

    assert any("cooldown 5s" in line and "KickMembers" in line for line in printed(print_mock))


@pytest.mark.asyncio
async def test_cooldowns_and_clear(control):
    tracker = control.client.cooldowns
    tracker.mark_used("kick", 7, 5000)
    tracker.mark_used("ban", 8, 5000)

    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("cooldowns", control)
        await console.handle_console_command("clear-cooldowns user 7", control)
        await console.handle_console_command("ccd command ban", control)
        await console.handle_console_command("ccd user seven", control)

    lines = printed(print_mock)
    assert "    • user 7: 5.0s left" in lines
    assert "Removed 1 cooldown(s)." in lines
    assert "'seven' is not a user ID." in lines
    assert len(tracker) == 0


@pytest.mark.asyncio
async def test_sync_and_clear_commands(control):
    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("sync", control)
        control.client.clear_application_commands.return_value = False
        await console.handle_console_command("clear-commands", control)

    lines = printed(print_mock)
    assert lines[0] == "Slash commands synced."
    assert lines[1].startswith("Clearing slash commands failed")


@pytest.mark.asyncio
async def test_cleanup(control):
    control.client.database = SimpleNamespace(run_cleanup=AsyncMock(return_value=CleanupCounts(2, 1, 0)))

    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("cleanup", control)

    assert printed(print_mock) == ["Removed 2 cache entries, 1 settings, 0 sessions."]


@pytest.mark.asyncio
async def test_status_without_client():
    control = console.ConsoleControl()

    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("status", control)

    assert "  Bot:        🔴 Not initialized" in printed(print_mock)


@pytest.mark.asyncio
async def test_handler_errors_are_reported(control):
    control.client.sync_application_commands.side_effect = RuntimeError("boom")

    with patch("lucybot.ui.console.console_print") as print_mock:
        await console.handle_console_command("sync", control)

    assert printed(print_mock) == ["Error executing command: boom"]


@pytest.mark.asyncio
async def test_run_console_with_eof(control):
    async def fake_prompt():
        raise EOFError()

    fake_session = SimpleNamespace(prompt_async=fake_prompt)

    with patch("lucybot.ui.console.PromptSession", return_value=fake_session):
        with patch("lucybot.ui.console.console_print"):
            await console.run_console(control)

    assert control.is_shutdown_requested()
    control.client.bot.close.assert_awaited_once()
