"""Tests for the tempban scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import BOT_ID, GUILD_ID, TARGET_ID, make_settings, warn_fields
from modwarden.datatypes.case_datatypes import CaseAction
from modwarden.repositories.case_repo import case_repo
from modwarden.scheduler.tempban_scheduler import TempbanScheduler


async def _tempban(case_store, target_id=TARGET_ID, expires_in=timedelta(hours=-1)):
    fields = warn_fields(target_id=target_id)
    return await case_store.create_tempban(GUILD_ID, fields, datetime.now(timezone.utc) + expires_in)


def _started(case_store, actor, messenger, settings=None, interval=60.0) -> TempbanScheduler:
    """A scheduler wired to the fakes without starting its loop."""
    scheduler = TempbanScheduler(case_store, interval=interval)
    scheduler._actor = actor
    scheduler._messenger = messenger
    scheduler._settings_provider = lambda: settings or make_settings()
    return scheduler


@pytest.mark.asyncio
async def test_due_tempban_is_lifted_and_recorded(case_store, actor, messenger):
    tempban, _ = await _tempban(case_store)
    scheduler = _started(case_store, actor, messenger)

    processed = await scheduler.poll()

    assert processed == 1
    actor.unban.assert_awaited_once_with(GUILD_ID, TARGET_ID, "Tempban expired")
    assert await case_store.due_scheduled_actions() == []

    unban = (await case_store.list_cases(GUILD_ID, action=CaseAction.UNBAN))[0]
    assert unban.reason == f"Tempban expired (case #{tempban.case_number})"
    assert unban.moderator_id == BOT_ID
    assert unban.moderator_tag == "Modwarden"
    assert unban.target_id == TARGET_ID
    assert unban.target_tag == "target"


@pytest.mark.asyncio
async def test_rows_not_yet_due_are_left_alone(case_store, actor, messenger):
    await _tempban(case_store, expires_in=timedelta(hours=1))
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 0
    actor.unban.assert_not_awaited()


@pytest.mark.asyncio
async def test_executed_rows_are_never_reselected(case_store, actor, messenger):
    _, scheduled = await _tempban(case_store)
    await case_store.mark_scheduled_executed(scheduled.id)
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 0
    actor.unban.assert_not_awaited()


@pytest.mark.asyncio
async def test_failure_on_one_row_does_not_stop_the_next(case_store, actor, messenger):
    _, first = await _tempban(case_store, target_id=TARGET_ID, expires_in=timedelta(hours=-2))
    _, second = await _tempban(case_store, target_id=TARGET_ID + 1, expires_in=timedelta(hours=-1))

    async def unban(guild_id, user_id, reason):
        if user_id == TARGET_ID:
            raise RuntimeError("Unknown Ban")

    actor.unban = AsyncMock(side_effect=unban)
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 1
    assert actor.unban.await_count == 2

    remaining = await case_store.due_scheduled_actions()
    assert [row.id for row in remaining] == [first.id]
    assert await case_store.list_cases(GUILD_ID, target_id=TARGET_ID + 1, action=CaseAction.UNBAN)


@pytest.mark.asyncio
async def test_failed_row_is_retried_on_next_poll(case_store, actor, messenger):
    await _tempban(case_store)
    actor.unban = AsyncMock(side_effect=[RuntimeError("guild unavailable"), None])
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 0
    assert await scheduler.poll() == 1
    assert await case_store.due_scheduled_actions() == []


@pytest.mark.asyncio
async def test_row_flipped_elsewhere_is_not_recorded_twice(case_store, actor, messenger):
    _, scheduled = await _tempban(case_store)

    async def unban(guild_id, user_id, reason):
        await case_store.mark_scheduled_executed(scheduled.id)

    actor.unban = AsyncMock(side_effect=unban)
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 0
    assert await case_store.list_cases(GUILD_ID, action=CaseAction.UNBAN) == []


@pytest.mark.asyncio
async def test_unban_is_posted_to_mod_log(case_store, actor, messenger):
    await _tempban(case_store)
    settings = make_settings(logging={"channels": {"bans": 77}})
    scheduler = _started(case_store, actor, messenger, settings=settings)

    await scheduler.poll()

    channel_id, _ = messenger.send_to_channel.await_args.args
    assert channel_id == 77


@pytest.mark.asyncio
async def test_mod_log_failure_still_completes_row(case_store, actor, messenger):
    await _tempban(case_store)
    messenger.send_to_channel = AsyncMock(side_effect=RuntimeError("Missing Access"))
    scheduler = _started(case_store, actor, messenger, settings=make_settings(logging={"channels": {"default": 1}}))

    assert await scheduler.poll() == 1
    assert await case_store.due_scheduled_actions() == []


@pytest.mark.asyncio
async def test_poll_before_start_raises(case_store):
    with pytest.raises(RuntimeError):
        await TempbanScheduler(case_store).poll()


@pytest.mark.asyncio
async def test_start_polls_immediately_and_stop_is_idempotent(case_store, actor, messenger):
    await _tempban(case_store)
    scheduler = TempbanScheduler(case_store, interval=3600)

    scheduler.start(actor, messenger, make_settings)
    scheduler.start(actor, messenger, make_settings)
    assert scheduler.is_running

    for _ in range(50):
        if actor.unban.await_count:
            break
        await asyncio.sleep(0.01)

    await scheduler.stop()
    await scheduler.stop()

    assert not scheduler.is_running
    actor.unban.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_lets_in_flight_poll_finish(case_store, actor, messenger):
    await _tempban(case_store)
    release = asyncio.Event()
    entered = asyncio.Event()

    async def slow_unban(guild_id, user_id, reason):
        entered.set()
        await release.wait()

    actor.unban = AsyncMock(side_effect=slow_unban)
    scheduler = TempbanScheduler(case_store, interval=3600)
    scheduler.start(actor, messenger, make_settings)
    await asyncio.wait_for(entered.wait(), timeout=5)

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0)
    assert not stopping.done()

    release.set()
    await asyncio.wait_for(stopping, timeout=5)

    assert await case_store.due_scheduled_actions() == []
    assert await case_store.list_cases(GUILD_ID, action=CaseAction.UNBAN)


@pytest.mark.asyncio
async def test_separate_schedulers_do_not_share_state(case_store, actor, messenger):
    first = TempbanScheduler(case_store, interval=3600)
    second = TempbanScheduler(case_store, interval=3600)

    first.start(actor, messenger, make_settings)
    try:
        assert first.is_running
        assert not second.is_running
    finally:
        await first.stop()


@pytest.mark.asyncio
async def test_failed_case_write_leaves_row_pending(monkeypatch, case_store, actor, messenger):
    _, scheduled = await _tempban(case_store)
    monkeypatch.setattr(case_repo, "insert", AsyncMock(side_effect=RuntimeError("store down")))
    scheduler = _started(case_store, actor, messenger)

    assert await scheduler.poll() == 0
    assert [row.id for row in await case_store.due_scheduled_actions()] == [scheduled.id]

    monkeypatch.undo()
    assert await case_store.list_cases(GUILD_ID, action=CaseAction.UNBAN) == []

    assert await scheduler.poll() == 1
    assert await case_store.due_scheduled_actions() == []
    assert len(await case_store.list_cases(GUILD_ID, action=CaseAction.UNBAN)) == 1
