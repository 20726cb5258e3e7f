from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from conftest import GUILD_ID, MODERATOR_ID, make_settings, warn_fields
from modwarden.bot.cogs import case_cmds
from modwarden.datatypes.case_datatypes import CaseAction, ModCase


def _case(reason: str | None = "spam", number: int = 1) -> ModCase:
    return ModCase(
        id=number,
        guild_id=GUILD_ID,
        case_number=number,
        action=CaseAction.WARN,
        target_id=3000,
        target_tag="target",
        moderator_id=MODERATOR_ID,
        moderator_tag="moderator",
        reason=reason,
        duration=None,
        expires_at=None,
        log_message_id=None,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _ctx() -> Any:
    return SimpleNamespace(
        guild_id=GUILD_ID,
        author=SimpleNamespace(id=MODERATOR_ID),
        defer=AsyncMock(),
        send_followup=AsyncMock(),
    )


@pytest.fixture
def cog(monkeypatch, case_store, messenger):
    monkeypatch.setattr(case_cmds, "has_permissions", lambda ctx, **_: True)
    services = SimpleNamespace(
        case_store=case_store,
        messenger=messenger,
        settings=make_settings(logging={"channels": {"default": 10}}),
    )
    return case_cmds.CaseCog(SimpleNamespace(), services)


def test_case_line_truncates_long_reasons():
    line = case_cmds.format_case_line(_case(reason="x" * 100))

    assert line.startswith("**#1** `warn` target by moderator")
    assert line.endswith("x" * 57 + "...")


def test_case_line_uses_default_reason():
    assert case_cmds.format_case_line(_case(reason=None)).endswith("No reason provided")


def test_empty_case_list_embed():
    embed = case_cmds.build_case_list_embed("Recent cases", [])

    assert embed.description == "No cases found."


def test_case_list_embed_has_one_line_per_case():
    embed = case_cmds.build_case_list_embed("Recent cases", [_case(number=2), _case(number=1)])

    assert embed.description.count("\n") == 1


@pytest.mark.asyncio
async def test_view_unknown_case(cog):
    ctx = _ctx()

    await case_cmds.CaseCog.view.callback(cog, ctx, 42)

    ctx.send_followup.assert_awaited_once_with("❌ Case #42 not found.")


@pytest.mark.asyncio
async def test_reason_update_refreshes_mod_log(cog, case_store, messenger):
    case = await case_store.create(GUILD_ID, warn_fields())
    await case_store.set_log_message_id(case.id, 99)
    ctx = _ctx()

    await case_cmds.CaseCog.reason.callback(cog, ctx, case.case_number, "actually spam links")

    assert (await case_store.view(GUILD_ID, case.case_number)).reason == "actually spam links"
    messenger.edit_channel_message.assert_awaited_once()
    assert "mod log entry was updated" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_delete_requires_administrator(monkeypatch, cog, case_store):
    case = await case_store.create(GUILD_ID, warn_fields())
    monkeypatch.setattr(case_cmds, "has_permissions", lambda ctx, **perms: "administrator" not in perms)
    ctx = _ctx()

    await case_cmds.CaseCog.delete.callback(cog, ctx, case.case_number)

    ctx.send_followup.assert_awaited_once_with("Only administrators can delete cases.")
    assert await case_store.view(GUILD_ID, case.case_number) is not None


@pytest.mark.asyncio
async def test_delete_removes_case(cog, case_store):
    case = await case_store.create(GUILD_ID, warn_fields())
    ctx = _ctx()

    await case_cmds.CaseCog.delete.callback(cog, ctx, case.case_number)

    assert await case_store.view(GUILD_ID, case.case_number) is None
