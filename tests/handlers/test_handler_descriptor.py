"""Tests for handler descriptor validation."""

from types import SimpleNamespace

import pytest

from lucybot.handlers.descriptor import (
    HandlerDescriptor,
    HandlerKind,
    cooldown_ms,
    event_name,
    invoke,
    validate_handler,
)
from lucybot.handlers.errors import ValidationError


async def noop(*args):
    return None


def command(**overrides):
    values = {"name": "ping", "description": "Ping the bot", "execute": noop}
    values.update(overrides)
    return SimpleNamespace(**values)


def test_valid_command_passes():
    validate_handler(HandlerDescriptor(name="ping", description="Ping", execute=noop), HandlerKind.COMMAND)


def test_event_without_description_passes():
    validate_handler(SimpleNamespace(name="ready", execute=noop), HandlerKind.EVENT)


@pytest.mark.parametrize(
    "field, overrides",
    [
        ("name", {"name": ""}),
        ("name", {"name": 3}),
        ("execute", {"execute": "not callable"}),
        ("description", {"description": ""}),
        ("cooldown", {"cooldown": -1}),
        ("cooldown", {"cooldown": "5"}),
        ("permissions", {"permissions": "KickMembers"}),
        ("permissions", {"permissions": [""]}),
        ("permissions", {"permissions": ["KickMember"]}),
        ("category", {"category": 7}),
        ("aliases", {"aliases": [1]}),
        ("once", {"once": "yes"}),
        ("options", {"options": ["user"]}),
    ],
)
def test_invalid_command_reports_offending_field(field, overrides):
    with pytest.raises(ValidationError) as info:
        validate_handler(command(**overrides), HandlerKind.COMMAND)

    assert info.value.field == field


def test_missing_execute_is_rejected():
    with pytest.raises(ValidationError) as info:
        validate_handler(SimpleNamespace(name="ping", description="Ping"), HandlerKind.COMMAND)

    assert info.value.field == "execute"


@pytest.mark.parametrize("value", [None, "ping", 12, HandlerDescriptor])
def test_non_object_handlers_are_rejected(value):
    with pytest.raises(ValidationError) as info:
        validate_handler(value, HandlerKind.COMMAND)

    assert info.value.field == "handler"


@pytest.mark.parametrize(
    "field, overrides",
    [
        ("description", {"description": 5}),
        ("type", {"type": 3}),
        ("event", {"event": ""}),
        ("enabled", {"enabled": 1}),
    ],
)
def test_invalid_event_reports_offending_field(field, overrides):
    values = {"name": "ready", "execute": noop}
    values.update(overrides)

    with pytest.raises(ValidationError) as info:
        validate_handler(SimpleNamespace(**values), HandlerKind.EVENT)

    assert info.value.field == field


def test_cooldown_ms_prefers_explicit_field():
    assert cooldown_ms(command()) == 0
    assert cooldown_ms(command(cooldown=3000)) == 3000
    assert cooldown_ms(command(cooldown=3000, cooldown_ms=1500)) == 1500


def test_event_name_defaults_to_handler_name():
    assert event_name(SimpleNamespace(name="ready")) == "ready"
    assert event_name(SimpleNamespace(name="welcome", event="member_join")) == "member_join"


@pytest.mark.asyncio
async def test_invoke_handles_sync_and_async_callables():
    async def async_execute(value):
        return value * 2

    def sync_execute(value):
        return value + 1

    assert await invoke(async_execute, 4) == 8
    assert await invoke(sync_execute, 4) == 5
