"""Tests for embed helpers."""

from unittest.mock import AsyncMock

import discord
import pytest

from lucybot.util.embeds import COLORS, DEFAULT_ERROR_MESSAGE, create_embed, resolve_color, send_error


def test_resolve_color():
    assert resolve_color("success") == COLORS["success"]
    assert resolve_color("SUCCESS") == COLORS["success"]
    assert resolve_color("unknown") == COLORS["default"]
    assert resolve_color(0x123456) == discord.Color(0x123456)
    assert resolve_color(None) is None


def test_create_embed_with_everything():
    embed = create_embed(
        title="Title",
        description="Body",
        color="error",
        fields=[{"name": "A", "value": "1", "inline": True}, {"name": "B", "value": "2"}],
        footer="footer",
        footer_icon="https://example.com/icon.png",
        thumbnail="https://example.com/thumb.png",
        timestamp=True,
    )

    assert embed.title == "Title"
    assert embed.color == COLORS["error"]
    assert [(f.name, f.value, f.inline) for f in embed.fields] == [("A", "1", True), ("B", "2", False)]
    assert embed.footer.text == "footer"
    assert embed.footer.icon_url == "https://example.com/icon.png"
    assert embed.thumbnail.url == "https://example.com/thumb.png"
    assert embed.timestamp is not None


def test_create_embed_defaults():
    embed = create_embed(title="Only a title")

    assert embed.color == COLORS["default"]
    assert embed.fields == []


@pytest.mark.asyncio
async def test_send_error_replies_when_fresh(make_context):
    context = make_context()

    await send_error(context, ValueError("boom"), "test")

    assert context.replies[0].content == DEFAULT_ERROR_MESSAGE
    assert context.replies[0].ephemeral


@pytest.mark.asyncio
async def test_send_error_edits_deferred_reply(make_context):
    context = make_context()
    await context.defer()

    await send_error(context, ValueError("boom"), "test", "custom")

    assert context.edits[0].content == "custom"
    assert context.replies == []


@pytest.mark.asyncio
async def test_send_error_follows_up_after_reply(make_context):
    context = make_context()
    await context.reply("first")

    await send_error(context, ValueError("boom"), "test")

    assert context.follow_ups[0].content == DEFAULT_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_send_error_swallows_send_failures(make_context):
    context = make_context()
    context.reply = AsyncMock(side_effect=RuntimeError("gone"))

    await send_error(context, ValueError("boom"), "test")
