"""Tests for EventRegistry: shims, once, enable/disable and reload."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lucybot.handlers.descriptor import HandlerDescriptor
from lucybot.handlers.errors import HandlerExecutionError, NotFoundError
from lucybot.handlers.registry import EventRegistry, HandlerTable


EVENT_SOURCE = """
async def execute(calls):
    calls.append("{marker}")


class Event:
    name = "member_join"
    description = "Greets new members"
    execute = staticmethod(execute)

handler = Event
"""


@pytest.fixture
def table():
    return HandlerTable()


@pytest.fixture
def failures():
    return []


@pytest.fixture
def registry(table, event_source, failures):
    return EventRegistry(table, event_source, on_failure=failures.append)


@pytest.mark.asyncio
async def test_register_attaches_shim_under_event_name(registry, table, event_source):
    execute = AsyncMock()
    event = registry.register(HandlerDescriptor(name="message", execute=execute))

    assert table.events == {"message": event}
    assert event_source.listeners["message"] == [registry.shim_for("message")]
    assert registry.is_attached("message")

    await event_source.emit("message", "hello")
    execute.assert_awaited_once_with("hello")


@pytest.mark.asyncio
async def test_shim_isolates_failures(registry, event_source, failures):
    boom = ValueError("boom")
    healthy = AsyncMock()
    registry.register(HandlerDescriptor(name="broken", event="message", execute=AsyncMock(side_effect=boom)))
    registry.register(HandlerDescriptor(name="healthy", event="message", execute=healthy))

    await event_source.emit("message", "payload")

    healthy.assert_awaited_once_with("payload")
    assert len(failures) == 1
    assert isinstance(failures[0], HandlerExecutionError)
    assert failures[0].name == "broken"
    assert failures[0].__cause__ is boom


@pytest.mark.asyncio
async def test_failure_reporter_errors_are_swallowed(table, event_source):
    reporter = MagicMock(side_effect=RuntimeError("reporter down"))
    registry = EventRegistry(table, event_source, on_failure=reporter)
    registry.register(HandlerDescriptor(name="message", execute=AsyncMock(side_effect=ValueError())))

    await event_source.emit("message")

    reporter.assert_called_once()


@pytest.mark.asyncio
async def test_sync_execute_is_supported(registry, event_source):
    seen = []
    registry.register(HandlerDescriptor(name="typing", execute=seen.append))

    await event_source.emit("typing", "x")

    assert seen == ["x"]


@pytest.mark.asyncio
async def test_once_event_detaches_after_first_delivery(registry, table, event_source):
    execute = AsyncMock()
    registry.register(HandlerDescriptor(name="ready", execute=execute, once=True))

    await event_source.emit("ready", "client")
    await event_source.emit("ready", "client")

    execute.assert_awaited_once_with("client")
    assert event_source.count("ready") == 0
    assert not registry.is_attached("ready")
    assert "ready" in table.events


@pytest.mark.asyncio
async def test_once_event_detaches_even_when_it_fails(registry, event_source, failures):
    registry.register(HandlerDescriptor(name="ready", execute=AsyncMock(side_effect=RuntimeError()), once=True))

    await event_source.emit("ready")

    assert event_source.count("ready") == 0
    assert len(failures) == 1


@pytest.mark.asyncio
async def test_enable_rearms_fired_once_event(registry, event_source):
    execute = AsyncMock()
    registry.register(HandlerDescriptor(name="ready", execute=execute, once=True))
    await event_source.emit("ready")

    registry.enable("ready")
    await event_source.emit("ready")

    assert execute.await_count == 2
    assert event_source.count("ready") == 0


def test_disabled_event_is_registered_but_not_attached(registry, table, event_source):
    registry.register(HandlerDescriptor(name="message", execute=AsyncMock(), enabled=False))

    assert "message" in table.events
    assert event_source.count("message") == 0


def test_enable_and_disable(registry, event_source):
    event = registry.register(HandlerDescriptor(name="message", execute=AsyncMock(), enabled=False))

    registry.enable("message")
    registry.enable("message")
    assert event.enabled is True
    assert event_source.count("message") == 1

    registry.disable("message")
    registry.disable("message")
    assert event.enabled is False
    assert event_source.count("message") == 0


def test_enable_unknown_event(registry):
    with pytest.raises(NotFoundError):
        registry.enable("ghost")
    with pytest.raises(NotFoundError):
        registry.disable("ghost")


@pytest.mark.asyncio
async def test_duplicate_name_replaces_previous_event(registry, table, event_source):
    old = AsyncMock()
    new = AsyncMock()
    registry.register(HandlerDescriptor(name="message", execute=old))
    replacement = registry.register(HandlerDescriptor(name="message", execute=new))

    assert table.events["message"] is replacement
    assert event_source.count("message") == 1

    await event_source.emit("message")
    old.assert_not_awaited()
    new.assert_awaited_once()


def test_unregister_detaches(registry, table, event_source):
    registry.register(HandlerDescriptor(name="message", execute=AsyncMock()))

    registry.unregister("message")

    assert table.events == {}
    assert event_source.count("message") == 0
    assert registry.shim_for("message") is None


@pytest.mark.asyncio
async def test_reload_invokes_new_implementation_exactly_once(registry, event_source, write_handler):
    path = write_handler("member_join.py", EVENT_SOURCE.format(marker="v1"))
    registry.load_one(path)

    path.write_text(EVENT_SOURCE.format(marker="v2, reloaded"), encoding="utf-8")
    registry.reload("member_join")

    calls = []
    await event_source.emit("member_join", calls)

    assert calls == ["v2, reloaded"]
    assert event_source.count("member_join") == 1
    assert registry.path_of("member_join") == path.resolve()


def test_reload_keeps_disabled_state_from_file(registry, event_source, write_handler):
    path = write_handler("member_join.py", EVENT_SOURCE.format(marker="v1"))
    registry.load_one(path)
    registry.disable("member_join")

    registry.reload("member_join")

    # The fresh object comes from the file, which does not disable it
    assert event_source.count("member_join") == 1


def test_by_type_and_info(registry):
    registry.register(HandlerDescriptor(name="ready", execute=AsyncMock(), once=True))
    registry.register(HandlerDescriptor(name="tick", execute=AsyncMock(), type="custom", enabled=False))

    assert [event.name for event in registry.by_type("discord")] == ["ready"]
    assert [event.name for event in registry.by_type("custom")] == ["tick"]

    info = registry.info()
    assert info["ready"] == {
        "description": "No description",
        "once": True,
        "type": "discord",
        "event": "ready",
        "enabled": True,
        "attached": True,
    }
    assert info["tick"]["attached"] is False
