"""
Mod log router: picks the log channel for a case and posts an embed to it.

Logging is opt-in. No channel configured, a deleted channel or missing send
permission all end the same way: a log line and a ``None`` result. Posting
never raises into the command or scheduler that produced the case.
"""

from __future__ import annotations

from typing import Mapping

import discord

from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.datatypes.case_datatypes import CaseAction, ModCase
from modwarden.moderation.case_store import CaseStore
from modwarden.moderation.collaborators import MessageHandle, Messenger
from modwarden.util.logger import get_logger

logger = get_logger("mod_log")

# Action -> key under moderation.logging.channels
LOG_CHANNEL_KEYS: Mapping[CaseAction, str] = {
    CaseAction.WARN: "warns",
    CaseAction.KICK: "kicks",
    CaseAction.BAN: "bans",
    CaseAction.TEMPBAN: "bans",
    CaseAction.SOFTBAN: "bans",
    CaseAction.UNBAN: "bans",
    CaseAction.TIMEOUT: "timeouts",
    CaseAction.UNTIMEOUT: "timeouts",
    CaseAction.PURGE: "purges",
    CaseAction.LOCK: "locks",
    CaseAction.UNLOCK: "locks",
}

_EMBED_DETAILS = {
    CaseAction.WARN:      ("⚠️", "Warn", discord.Color.yellow()),
    CaseAction.KICK:      ("👢", "Kick", discord.Color.orange()),
    CaseAction.TIMEOUT:   ("⏱️", "Timeout", discord.Color.blue()),
    CaseAction.UNTIMEOUT: ("⏱️", "Timeout Removed", discord.Color.teal()),
    CaseAction.BAN:       ("🔨", "Ban", discord.Color.red()),
    CaseAction.TEMPBAN:   ("🔨", "Tempban", discord.Color.dark_red()),
    CaseAction.SOFTBAN:   ("🧹", "Softban", discord.Color.dark_orange()),
    CaseAction.UNBAN:     ("🔓", "Unban", discord.Color.green()),
    CaseAction.PURGE:     ("🗑️", "Purge", discord.Color.light_grey()),
    CaseAction.LOCK:      ("🔒", "Lock", discord.Color.dark_grey()),
    CaseAction.UNLOCK:    ("🔓", "Unlock", discord.Color.dark_green()),
}


def resolve_channel(settings: ModerationSettings, action: CaseAction) -> int | None:
    """Action-specific channel, else the default channel, else ``None``."""
    key = LOG_CHANNEL_KEYS.get(action)
    if key is not None:
        channel_id = settings.logging.channel_ids.get(key)
        if channel_id is not None:
            return channel_id
    return settings.logging.default_channel_id


def build_case_embed(case: ModCase) -> discord.Embed:
    """
    Build the mod log embed for a case.

    Args:
        case (ModCase): The recorded case.

    Returns:
        discord.Embed: Case number, action, target, moderator, reason and
        timestamp, plus duration and expiry when the case has them.
    """
    emoji, label, color = _EMBED_DETAILS.get(case.action, ("❓", case.action.value.title(), discord.Color.light_grey()))

    embed = discord.Embed(
        title=f"{emoji} Case #{case.case_number} | {label}",
        color=color,
        timestamp=case.created_at,
    )
    embed.add_field(name="Target", value=f"{case.target_tag} (`{case.target_id}`)", inline=True)
    embed.add_field(name="Moderator", value=f"{case.moderator_tag} (`{case.moderator_id}`)", inline=True)
    embed.add_field(name="Reason", value=case.display_reason, inline=False)

    if case.duration:
        if case.expires_at is not None:
            embed.add_field(
                name="Duration",
                value=f"{case.duration} (Expires: <t:{int(case.expires_at.timestamp())}:R>)",
                inline=False,
            )
        else:
            embed.add_field(name="Duration", value=case.duration, inline=False)

    embed.set_footer(text=f"Case ID: {case.id}")
    return embed


async def post(messenger: Messenger, settings: ModerationSettings, case: ModCase) -> MessageHandle | None:
    """
    Post ``case`` to its log channel.

    Returns:
        The posted message's handle, or ``None`` when no channel is
        configured or delivery failed.
    """
    channel_id = resolve_channel(settings, case.action)
    if channel_id is None:
        logger.debug("[MOD LOG] No log channel for %s; case #%d not posted", case.action.value, case.case_number)
        return None

    try:
        return await messenger.send_to_channel(channel_id, build_case_embed(case))
    except Exception as exc:
        logger.warning(
            "[MOD LOG] Failed to post case #%d to channel %s: %s",
            case.case_number, channel_id, exc,
        )
        return None


async def post_case(
    messenger: Messenger,
    settings: ModerationSettings,
    case: ModCase,
    case_store: CaseStore,
) -> MessageHandle | None:
    """
    Post ``case`` and remember the log message id on the case row.

    The write-back is best-effort as well; a failure there leaves the case
    without a link to its log message, which only disables later edits.
    """
    handle = await post(messenger, settings, case)
    if handle is None:
        return None

    try:
        await case_store.set_log_message_id(case.id, handle.message_id)
        case.log_message_id = handle.message_id
    except Exception as exc:
        logger.warning("[MOD LOG] Could not store log message id for case #%d: %s", case.case_number, exc)
    return handle


async def refresh(messenger: Messenger, settings: ModerationSettings, case: ModCase) -> bool:
    """
    Re-render the log message of an edited case in place.

    Returns:
        True if the message was edited, False if there is nothing to edit or
        the edit failed.
    """
    if case.log_message_id is None:
        return False
    channel_id = resolve_channel(settings, case.action)
    if channel_id is None:
        return False

    handle = MessageHandle(channel_id=channel_id, message_id=case.log_message_id)
    try:
        await messenger.edit_channel_message(handle, build_case_embed(case))
        return True
    except Exception as exc:
        logger.warning("[MOD LOG] Failed to edit log message for case #%d: %s", case.case_number, exc)
        return False
