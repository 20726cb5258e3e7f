"""
Role hierarchy checks and the DM-before-action notification contract.

Callers DM the target *before* an irreversible action (kick, ban), because
afterwards the bot may share no guild with the user and the DM can no longer
be delivered. A failed DM never stops the action.
"""

import datetime
from typing import Mapping, Protocol

import discord

from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.datatypes.case_datatypes import DEFAULT_REASON, CaseAction
from modwarden.moderation.collaborators import Messenger
from modwarden.util.logger import get_logger

logger = get_logger("moderation_policy")

HIERARCHY_REJECTION = "❌ You cannot moderate a member with an equal or higher role than yours."

# Concrete action -> dm_notifications key. Tempban and softban share the ban toggle.
DM_TOGGLE_KEYS: Mapping[CaseAction, str] = {
    CaseAction.WARN: "warn",
    CaseAction.KICK: "kick",
    CaseAction.TIMEOUT: "timeout",
    CaseAction.BAN: "ban",
    CaseAction.TEMPBAN: "ban",
    CaseAction.SOFTBAN: "ban",
}

PAST_TENSE: Mapping[CaseAction, str] = {
    CaseAction.WARN: "warned",
    CaseAction.KICK: "kicked",
    CaseAction.TIMEOUT: "timed out",
    CaseAction.UNTIMEOUT: "released from timeout",
    CaseAction.BAN: "banned",
    CaseAction.TEMPBAN: "temporarily banned",
    CaseAction.UNBAN: "unbanned",
    CaseAction.SOFTBAN: "soft-banned",
}

_DM_COLORS: Mapping[CaseAction, discord.Color] = {
    CaseAction.WARN: discord.Color.yellow(),
    CaseAction.KICK: discord.Color.orange(),
    CaseAction.TIMEOUT: discord.Color.blue(),
    CaseAction.BAN: discord.Color.red(),
    CaseAction.TEMPBAN: discord.Color.red(),
    CaseAction.SOFTBAN: discord.Color.dark_orange(),
}


class Ranked(Protocol):
    rank: int


def check_hierarchy(actor: Ranked, target: Ranked) -> str | None:
    """
    Compare the ranks of two members' highest roles.

    Returns:
        ``None`` when ``actor`` outranks ``target``, otherwise a message
        suitable for showing to the moderator.
    """
    if target.rank >= actor.rank:
        return HIERARCHY_REJECTION
    return None


def should_notify(settings: ModerationSettings, action: CaseAction) -> bool:
    """Return the DM toggle for ``action``; actions without a toggle are never DMed."""
    key = DM_TOGGLE_KEYS.get(action)
    if key is None:
        return False
    return bool(settings.dm_notifications.get(key, False))


def build_dm_embed(
    action: CaseAction,
    reason: str | None,
    server_name: str,
    duration: str | None = None,
) -> discord.Embed:
    """Build the embed sent to a user who is about to be (or has been) actioned."""
    verb = PAST_TENSE.get(action, action.value)
    embed = discord.Embed(
        title=f"You have been {verb} in {server_name}",
        color=_DM_COLORS.get(action, discord.Color.light_grey()),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.add_field(name="Reason", value=reason or DEFAULT_REASON, inline=False)
    if duration:
        embed.add_field(name="Duration", value=duration, inline=False)
    return embed


async def notify(
    messenger: Messenger,
    target_id: int,
    action: CaseAction,
    reason: str | None,
    server_name: str,
    duration: str | None = None,
) -> None:
    """
    DM ``target_id`` about ``action``. Best-effort: never raises.

    Closed DMs are routine and logged at DEBUG; anything else at WARNING.
    """
    embed = build_dm_embed(action, reason, server_name, duration)
    try:
        await messenger.send_direct_message(target_id, embed)
    except discord.Forbidden:
        logger.debug("[DM POLICY] Could not DM %s about %s: DMs disabled", target_id, action.value)
    except Exception as exc:
        logger.warning("[DM POLICY] Failed to DM %s about %s: %s", target_id, action.value, exc)
