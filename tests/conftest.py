"""
Pytest configuration and fixtures for Lucy Bot tests.
"""

import sys
import textwrap
from collections import defaultdict
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


class FakeEventSource:
    """Event source that keeps listeners in lists and fires them on demand."""

    def __init__(self):
        self.listeners = defaultdict(list)

    def add_listener(self, func, name):
        self.listeners[name].append(func)

    def remove_listener(self, func, name):
        if func in self.listeners[name]:
            self.listeners[name].remove(func)

    def count(self, name):
        return len(self.listeners[name])

    async def emit(self, name, *args):
        for listener in list(self.listeners[name]):
            await listener(*args)


class FakeContext:
    """Stand-in for InteractionContext that records every response."""

    def __init__(
        self,
        command_name="ping",
        user_id=1,
        permissions=None,
        guild=None,
        options=None,
        client=None,
        services=None,
        is_command=True,
    ):
        self.is_command = is_command
        self.command_name = command_name
        self.user_id = user_id
        self.user_name = f"user{user_id}"
        self.user = SimpleNamespace(id=user_id, name=self.user_name, bot=False)
        self.guild = guild
        self.guild_id = getattr(guild, "id", None)
        self.guild_name = getattr(guild, "name", "DM")
        self.permissions = permissions
        self.client = client if client is not None else SimpleNamespace(latency=0.042)
        self.services = services
        self.options = options or {}

        self.responded = False
        self.deferred = False
        self.replies = []
        self.follow_ups = []
        self.edits = []

    def option(self, name, default=None):
        return self.options.get(name, default)

    async def reply(self, content=None, *, embed=None, ephemeral=False):
        self.responded = True
        self.replies.append(SimpleNamespace(content=content, embed=embed, ephemeral=ephemeral))

    async def defer(self, *, ephemeral=False):
        self.responded = True
        self.deferred = True

    async def follow_up(self, content=None, *, embed=None, ephemeral=False):
        self.follow_ups.append(SimpleNamespace(content=content, embed=embed, ephemeral=ephemeral))

    async def edit_reply(self, content=None, *, embed=None):
        self.edits.append(SimpleNamespace(content=content, embed=embed))


class FakeClock:
    """Manually advanced clock returning ``now``."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, amount):
        self.now += amount


@pytest.fixture
def event_source():
    return FakeEventSource()


@pytest.fixture
def make_context():
    return FakeContext


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def write_handler(tmp_path):
    """Write a dedented Python file below ``tmp_path`` and return its path."""

    def _write(relative, source):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write
