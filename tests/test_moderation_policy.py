"""Tests for hierarchy checks and DM notifications."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import TARGET_ID, make_settings
from modwarden.datatypes.case_datatypes import CaseAction
from modwarden.moderation import moderation_policy
from modwarden.moderation.moderation_policy import (
    DM_TOGGLE_KEYS,
    build_dm_embed,
    check_hierarchy,
    notify,
    should_notify,
)


@pytest.mark.parametrize(
    "actor_rank, target_rank, allowed",
    [(5, 4, True), (5, 5, False), (4, 5, False), (1, 0, True), (0, 0, False)],
)
def test_check_hierarchy(actor_rank, target_rank, allowed):
    result = check_hierarchy(SimpleNamespace(rank=actor_rank), SimpleNamespace(rank=target_rank))

    if allowed:
        assert result is None
    else:
        assert "cannot moderate" in result


def test_tempban_and_softban_follow_ban_toggle():
    enabled = make_settings(dm_notifications={"ban": True})
    disabled = make_settings(dm_notifications={"ban": False, "tempban": True, "softban": True})

    assert should_notify(enabled, CaseAction.TEMPBAN) is True
    assert should_notify(enabled, CaseAction.SOFTBAN) is True
    assert should_notify(disabled, CaseAction.TEMPBAN) is False
    assert should_notify(disabled, CaseAction.SOFTBAN) is False


def test_should_notify_defaults_to_false():
    settings = make_settings(dm_notifications={"warn": True})

    assert should_notify(settings, CaseAction.WARN) is True
    assert should_notify(settings, CaseAction.KICK) is False
    assert should_notify(settings, CaseAction.UNBAN) is False
    assert should_notify(settings, CaseAction.LOCK) is False


def test_toggle_table_covers_only_user_facing_actions():
    assert set(DM_TOGGLE_KEYS.values()) == {"warn", "kick", "timeout", "ban"}
    assert CaseAction.PURGE not in DM_TOGGLE_KEYS


def test_dm_embed_uses_past_tense_and_reason_fallback():
    embed = build_dm_embed(CaseAction.KICK, None, "Test Server")

    assert embed.title == "You have been kicked in Test Server"
    assert embed.fields[0].name == "Reason"
    assert embed.fields[0].value == "No reason provided"


def test_dm_embed_includes_duration():
    embed = build_dm_embed(CaseAction.TIMEOUT, "spam", "Test Server", duration="1h")

    assert embed.fields[0].value == "spam"
    assert embed.fields[1].name == "Duration"
    assert embed.fields[1].value == "1h"


@pytest.mark.asyncio
async def test_notify_sends_dm(messenger):
    await notify(messenger, TARGET_ID, CaseAction.BAN, "raid", "Test Server")

    messenger.send_direct_message.assert_awaited_once()
    user_id, embed = messenger.send_direct_message.await_args.args
    assert user_id == TARGET_ID
    assert embed.title == "You have been banned in Test Server"


@pytest.mark.asyncio
async def test_notify_swallows_closed_dms():
    response = MagicMock(status=403, reason="Forbidden")
    messenger = MagicMock()
    messenger.send_direct_message = AsyncMock(side_effect=discord.Forbidden(response, "Cannot send messages to this user"))

    await notify(messenger, TARGET_ID, CaseAction.WARN, None, "Test Server")

    messenger.send_direct_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_notify_swallows_unexpected_errors(caplog):
    messenger = MagicMock()
    messenger.send_direct_message = AsyncMock(side_effect=RuntimeError("gateway down"))
    moderation_policy.logger.propagate = True

    try:
        await notify(messenger, TARGET_ID, CaseAction.WARN, None, "Test Server")
    finally:
        moderation_policy.logger.propagate = False

    assert "gateway down" in caplog.text
