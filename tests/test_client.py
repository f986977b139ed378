"""Tests for ClientFacade and the py-cord event source."""

import asyncio
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from lucybot.bot.client import ClientFacade, DiscordEventSource, listener_name
from lucybot.handlers.descriptor import HandlerDescriptor
from lucybot.handlers.errors import HandlerExecutionError
from lucybot.handlers.router import DispatchOutcome, RouterMessages

PACKAGE_DIR = Path(__file__).resolve().parents[1] / "src" / "lucybot"


def make_bot(application_id=1234, ready=True):
    bot = MagicMock()
    bot.application_id = application_id
    bot.user = SimpleNamespace(id=application_id) if application_id else None
    bot.is_ready.return_value = ready
    bot.is_closed.return_value = False
    bot.close = AsyncMock()
    bot.http.bulk_upsert_global_commands = AsyncMock()
    bot.http.bulk_upsert_guild_commands = AsyncMock()
    return bot


def make_config(tmp_path, plugins_dir=None):
    return SimpleNamespace(
        commands_dir=PACKAGE_DIR / "commands",
        events_dir=PACKAGE_DIR / "events",
        plugins_dir=plugins_dir,
        router_messages=RouterMessages(),
    )


@pytest.fixture
def bot():
    return make_bot()


@pytest.fixture
def client(tmp_path, bot):
    facade = ClientFacade(make_config(tmp_path), bot=bot)
    yield facade
    facade.cooldowns.clear()


def test_listener_name():
    assert listener_name("ready") == "on_ready"
    assert listener_name("on_message") == "on_message"


def test_interaction_listener_installed(client, bot):
    bot.add_listener.assert_any_call(client.on_interaction, "on_interaction")


@pytest.mark.asyncio
async def test_event_source_appends_facade():
    bot = MagicMock()
    facade = object()
    source = DiscordEventSource(bot, facade)
    received = []

    async def on_message(*args):
        received.append(args)

    source.add_listener(on_message, "message")
    wrapper, name = bot.add_listener.call_args.args
    assert name == "on_message"

    await wrapper("hello")
    assert received == [("hello", facade)]

    source.remove_listener(on_message, "message")
    bot.remove_listener.assert_called_once_with(wrapper, "on_message")

    source.remove_listener(on_message, "message")
    assert bot.remove_listener.call_count == 1


@pytest.mark.asyncio
async def test_load_components_uses_builtin_handlers(client, bot):
    await client.load_components()

    assert sorted(client.table.commands) == ["kick", "ping"]
    assert list(client.table.events) == ["ready"]
    assert client.source_of("kick") == (PACKAGE_DIR / "commands" / "moderation" / "kick.py").resolve()
    assert any(call.args[1] == "on_ready" for call in bot.add_listener.call_args_list)


@pytest.mark.asyncio
async def test_load_components_with_plugins(tmp_path, bot):
    plugins = tmp_path / "plugins"
    plugins.mkdir()
    (plugins / "extras.py").write_text(
        "class Extras:\n    name = 'extras'\n    version = '0.1.0'\n\nplugin = Extras\n",
        encoding="utf-8",
    )
    facade = ClientFacade(make_config(tmp_path, plugins_dir=plugins), bot=bot)

    await facade.load_components()

    assert list(facade.table.plugins) == ["extras"]


@pytest.mark.asyncio
async def test_command_payloads(client):
    await client.load_components()

    payloads = {payload["name"]: payload for payload in client.build_command_payloads()}

    assert payloads["ping"]["type"] == 1
    assert payloads["ping"]["options"] == []
    assert "default_member_permissions" not in payloads["ping"]
    assert payloads["kick"]["default_member_permissions"] == str(discord.Permissions(kick_members=True).value)
    assert [option["name"] for option in payloads["kick"]["options"]] == ["user", "reason"]


def test_command_payloads_resolve_acronym_permissions(client):
    async def execute(context):
        return None

    client.commands.register(
        HandlerDescriptor(name="say", description="Speak", execute=execute, permissions=["SendTTSMessages"])
    )

    (payload,) = client.build_command_payloads()

    assert payload["default_member_permissions"] == str(discord.Permissions(send_tts_messages=True).value)


@pytest.mark.asyncio
async def test_sync_global(client, bot):
    await client.load_components()

    assert await client.sync_application_commands() is True

    bot.http.bulk_upsert_global_commands.assert_awaited_once()
    app_id, payloads = bot.http.bulk_upsert_global_commands.await_args.args
    assert app_id == 1234
    assert len(payloads) == 2
    bot.http.bulk_upsert_guild_commands.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_dev_guild(tmp_path, bot):
    facade = ClientFacade(make_config(tmp_path), bot=bot, development=True, dev_guild_id=42)

    assert await facade.sync_application_commands() is True

    bot.http.bulk_upsert_guild_commands.assert_awaited_once_with(1234, 42, [])
    bot.http.bulk_upsert_global_commands.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_without_application_id(tmp_path):
    bot = make_bot(application_id=None)
    facade = ClientFacade(make_config(tmp_path), bot=bot)

    assert await facade.sync_application_commands() is False
    bot.http.bulk_upsert_global_commands.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_http_failure(client, bot):
    response = MagicMock(status=500, reason="Internal Server Error")
    bot.http.bulk_upsert_global_commands.side_effect = discord.HTTPException(response, "boom")

    assert await client.sync_application_commands() is False


@pytest.mark.asyncio
async def test_clear_application_commands(client, bot):
    await client.load_components()

    assert await client.clear_application_commands() is True
    bot.http.bulk_upsert_global_commands.assert_awaited_once_with(1234, [])


@pytest.mark.asyncio
async def test_reload_command_resyncs_when_ready(client, bot):
    await client.load_components()

    command = await client.reload_command("ping")

    assert client.table.commands["ping"] is command
    bot.http.bulk_upsert_global_commands.assert_awaited_once()


@pytest.mark.asyncio
async def test_on_interaction_ignores_components(client):
    interaction = SimpleNamespace(type=discord.InteractionType.component, data={})

    assert await client.on_interaction(interaction) is DispatchOutcome.NOT_HANDLED


@pytest.mark.asyncio
async def test_record_failure_writes_temp_log(tmp_path, bot):
    log_event = AsyncMock()
    database = SimpleNamespace(cache=SimpleNamespace(is_connected=True, log_event=log_event))
    facade = ClientFacade(make_config(tmp_path), database=database, bot=bot)
    error = HandlerExecutionError("kick")
    error.__cause__ = ValueError("boom")

    facade.record_failure(error)
    await asyncio.sleep(0)

    log_event.assert_awaited_once()
    level, message, data = log_event.await_args.args
    assert level == "error"
    assert "kick" in message
    assert data == {"handler": "kick", "cause": "ValueError('boom')"}


def test_record_failure_without_database(client):
    client.record_failure(HandlerExecutionError("kick"))


@pytest.mark.asyncio
async def test_stop_releases_everything(tmp_path, bot):
    database = SimpleNamespace(shutdown=AsyncMock(), is_initialized=True)
    facade = ClientFacade(make_config(tmp_path), database=database, bot=bot)
    await facade.load_components()
    facade.cooldowns.mark_used("kick", 1, 60_000)

    await facade.stop()

    bot.close.assert_awaited_once()
    database.shutdown.assert_awaited_once()
    assert len(facade.cooldowns) == 0


@pytest.mark.asyncio
async def test_start_initializes_database_and_loads_once(tmp_path, bot):
    database = SimpleNamespace(initialize=AsyncMock(), is_initialized=False)
    bot.start = AsyncMock()
    facade = ClientFacade(make_config(tmp_path), database=database, bot=bot)
    await facade.load_components()

    await facade.start("token")

    database.initialize.assert_awaited_once()
    bot.start.assert_awaited_once_with("token")
    assert sorted(facade.table.commands) == ["kick", "ping"]
