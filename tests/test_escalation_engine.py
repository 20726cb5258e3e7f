"""Tests for warn-threshold auto-escalation."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import GUILD_ID, MODERATOR_ID, TARGET_ID, make_settings, warn_fields
from modwarden.datatypes.case_datatypes import CaseAction
from modwarden.moderation.collaborators import MemberNotFoundError
from modwarden.moderation.escalation_engine import EscalationEngine

TIMEOUT_THEN_BAN = [
    {"warns": 3, "within_days": 7, "action": "timeout", "duration": "1h"},
    {"warns": 5, "within_days": 30, "action": "ban"},
]


def _settings(thresholds=TIMEOUT_THEN_BAN, enabled=True, **extra):
    return make_settings(escalation={"enabled": enabled, "thresholds": thresholds}, **extra)


async def _warn(case_store, times: int) -> None:
    for _ in range(times):
        await case_store.create(GUILD_ID, warn_fields())


async def _evaluate(case_store, actor, messenger, settings):
    engine = EscalationEngine(case_store)
    return await engine.evaluate(actor, messenger, GUILD_ID, TARGET_ID, MODERATOR_ID, "moderator", settings)


@pytest.mark.asyncio
async def test_threshold_fires_only_once_reached(case_store, actor, messenger):
    settings = _settings(thresholds=[{"warns": 3, "within_days": 7, "action": "timeout", "duration": "1h"}])

    await _warn(case_store, 2)
    assert await _evaluate(case_store, actor, messenger, settings) is None
    actor.timeout.assert_not_awaited()

    await _warn(case_store, 1)
    case = await _evaluate(case_store, actor, messenger, settings)

    assert case is not None
    assert case.action is CaseAction.TIMEOUT
    assert case.duration == "1h"
    assert case.case_number == 4
    actor.timeout.assert_awaited_once()
    guild_id, user_id, duration, reason = actor.timeout.await_args.args
    assert (guild_id, user_id, duration) == (GUILD_ID, TARGET_ID, timedelta(hours=1))
    assert reason == "Auto-escalation: 3 warns in 7 days"


@pytest.mark.asyncio
async def test_first_matching_threshold_wins(case_store, actor, messenger):
    await _warn(case_store, 6)

    case = await _evaluate(case_store, actor, messenger, _settings())

    assert case.action is CaseAction.TIMEOUT
    actor.timeout.assert_awaited_once()
    actor.ban.assert_not_awaited()


@pytest.mark.asyncio
async def test_configuration_order_decides_precedence(case_store, actor, messenger):
    await _warn(case_store, 6)

    case = await _evaluate(case_store, actor, messenger, _settings(thresholds=list(reversed(TIMEOUT_THEN_BAN))))

    assert case.action is CaseAction.BAN
    assert case.duration is None
    actor.ban.assert_awaited_once()
    actor.timeout.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_escalation_is_a_no_op(case_store, actor, messenger):
    await _warn(case_store, 10)

    assert await _evaluate(case_store, actor, messenger, _settings(enabled=False)) is None
    assert await _evaluate(case_store, actor, messenger, _settings(thresholds=[])) is None

    actor.fetch_member.assert_not_awaited()
    actor.timeout.assert_not_awaited()
    actor.ban.assert_not_awaited()


@pytest.mark.asyncio
async def test_warns_outside_window_are_ignored(connections, case_store, actor, messenger):
    await _warn(case_store, 3)
    async with connections.transaction() as conn:
        await conn.execute("UPDATE mod_cases SET created_at = created_at - ?", (8 * 24 * 60 * 60,))

    assert await _evaluate(case_store, actor, messenger, _settings()) is None


@pytest.mark.asyncio
async def test_case_is_attributed_to_original_moderator(case_store, actor, messenger):
    await _warn(case_store, 3)

    case = await _evaluate(case_store, actor, messenger, _settings())

    assert case.moderator_id == MODERATOR_ID
    assert case.moderator_tag == "moderator"
    assert case.target_tag == "target"
    assert case.reason == "Auto-escalation: 3 warns in 7 days"


@pytest.mark.asyncio
async def test_member_gone_is_not_an_error(case_store, actor, messenger):
    await _warn(case_store, 3)
    actor.fetch_member = AsyncMock(return_value=None)

    assert await _evaluate(case_store, actor, messenger, _settings()) is None
    actor.timeout.assert_not_awaited()
    assert len(await case_store.list_cases(GUILD_ID)) == 3


@pytest.mark.asyncio
async def test_member_leaving_mid_action_is_not_an_error(case_store, actor, messenger):
    await _warn(case_store, 3)
    actor.timeout = AsyncMock(side_effect=MemberNotFoundError(GUILD_ID, TARGET_ID))

    assert await _evaluate(case_store, actor, messenger, _settings()) is None
    assert len(await case_store.list_cases(GUILD_ID)) == 3


@pytest.mark.asyncio
async def test_action_failure_propagates_without_case(case_store, actor, messenger):
    await _warn(case_store, 3)
    actor.timeout = AsyncMock(side_effect=PermissionError("Missing Permissions"))

    with pytest.raises(PermissionError):
        await _evaluate(case_store, actor, messenger, _settings())

    assert len(await case_store.list_cases(GUILD_ID)) == 3


@pytest.mark.asyncio
async def test_escalation_is_posted_to_mod_log(case_store, actor, messenger):
    await _warn(case_store, 3)
    settings = _settings(logging={"channels": {"timeouts": 42}})

    case = await _evaluate(case_store, actor, messenger, settings)

    channel_id, _ = messenger.send_to_channel.await_args.args
    assert channel_id == 42
    assert case.log_message_id == 555


@pytest.mark.asyncio
async def test_mod_log_failure_does_not_affect_result(case_store, actor, messenger):
    await _warn(case_store, 3)
    messenger.send_to_channel = AsyncMock(side_effect=RuntimeError("Unknown Channel"))
    settings = _settings(logging={"channels": {"default": 42}})

    case = await _evaluate(case_store, actor, messenger, settings)

    assert case is not None
    assert case.log_message_id is None
