"""
Moderation cog: slash commands that act on members and channels.

Every member-targeted command follows the same order:

1. permission and hierarchy checks (rejections are replied ephemerally)
2. DM the target, when enabled for the action, *before* acting
3. perform the action through the moderation actor
4. record the case
5. post the case to the mod log (best-effort)
6. for warns only, run auto-escalation

A failed DM or log post is invisible to the moderator. A failed action or a
failed case write is always reported back.

Quick usage example
    from modwarden.bot.cogs import moderation_cmds
    moderation_cmds.setup(bot, services)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

import discord
from discord import Option
from discord.ext import commands

from modwarden.bot.discord_adapters import member_info
from modwarden.bot.services import ModerationServices
from modwarden.datatypes.case_datatypes import DEFAULT_REASON, CaseAction, ModCase, NewCase
from modwarden.moderation import mod_log, moderation_policy
from modwarden.moderation.collaborators import MemberNotFoundError
from modwarden.util.discord_utils import (
    DELETE_MESSAGE_CHOICES,
    MAX_PURGE_COUNT,
    MAX_SLOWMODE_SECONDS,
    MAX_TIMEOUT_SECONDS,
    SOFTBAN_DELETE_SECONDS,
    has_permissions,
    user_tag,
)
from modwarden.util.duration import format_duration, parse_duration
from modwarden.util.logger import get_logger

logger = get_logger("moderation_cog")

REQUIRED_PERMISSIONS = {
    CaseAction.WARN: "moderate_members",
    CaseAction.TIMEOUT: "moderate_members",
    CaseAction.UNTIMEOUT: "moderate_members",
    CaseAction.KICK: "kick_members",
    CaseAction.BAN: "ban_members",
    CaseAction.TEMPBAN: "ban_members",
    CaseAction.SOFTBAN: "ban_members",
    CaseAction.UNBAN: "ban_members",
    CaseAction.LOCK: "manage_channels",
    CaseAction.UNLOCK: "manage_channels",
    CaseAction.PURGE: "manage_messages",
}


class ModerationActionCog(commands.Cog):
    """Cog containing the manual moderation slash commands."""

    def __init__(self, discord_bot_instance: discord.Bot, services: ModerationServices) -> None:
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Moderation cog loaded")

    # ------------------------------------------------------------------
    # Shared checks and flow
    # ------------------------------------------------------------------

    async def check_moderation_permissions(
        self,
        ctx: discord.ApplicationContext,
        action: CaseAction,
        target: discord.abc.User,
        member: discord.Member | None,
    ) -> bool:
        """Run the shared pre-checks. Returns ``False`` after replying if the command must stop."""
        if not has_permissions(ctx, **{REQUIRED_PERMISSIONS[action]: True}):
            await ctx.send_followup("You do not have permission to use this command.")
            return False

        if target.id == ctx.author.id:
            await ctx.send_followup("You cannot perform moderation actions on yourself.")
            return False

        if self.discord_bot_instance.user is not None and target.id == self.discord_bot_instance.user.id:
            await ctx.send_followup("I cannot moderate myself.")
            return False

        # Users who already left the guild have no roles to compare
        if member is not None and isinstance(ctx.author, discord.Member):
            rejection = moderation_policy.check_hierarchy(member_info(ctx.author), member_info(member))
            if rejection is not None:
                await ctx.send_followup(rejection)
                return False

        return True

    async def record_case(
        self,
        ctx: discord.ApplicationContext,
        fields: NewCase,
        execute_at: datetime | None = None,
    ) -> ModCase | None:
        """Write the case and post it to the mod log. Replies and returns ``None`` if the write fails."""
        case_store = self.services.case_store
        try:
            if execute_at is not None:
                case, _ = await case_store.create_tempban(ctx.guild_id, fields, execute_at)
            else:
                case = await case_store.create(ctx.guild_id, fields)
        except Exception as exc:
            logger.exception("Failed to record %s case in guild %s: %s", fields.action.value, ctx.guild_id, exc)
            await ctx.send_followup(
                f"The {fields.action.value} was applied, but the case could not be recorded. "
                "Please check the bot logs."
            )
            return None

        await mod_log.post_case(self.services.messenger, self.services.settings, case, case_store)
        return case

    async def moderate(
        self,
        ctx: discord.ApplicationContext,
        *,
        action: CaseAction,
        target: discord.abc.User,
        member: discord.Member | None,
        reason: str | None,
        perform: Callable[[str], Awaitable[None]],
        duration: str | None = None,
        execute_at: datetime | None = None,
    ) -> ModCase | None:
        """Check, notify, act and record. Returns the new case, or ``None`` if the command stopped early."""
        if not await self.check_moderation_permissions(ctx, action, target, member):
            return None

        settings = self.services.settings
        if moderation_policy.should_notify(settings, action):
            await moderation_policy.notify(
                self.services.messenger, target.id, action, reason, ctx.guild.name, duration
            )

        audit_reason = f"{user_tag(ctx.author)}: {reason or DEFAULT_REASON}"
        try:
            await perform(audit_reason)
        except discord.Forbidden:
            await ctx.send_followup(f"I don't have permission to {action.value} {target.mention}.")
            return None
        except (discord.NotFound, MemberNotFoundError):
            if action is CaseAction.UNBAN:
                await ctx.send_followup(f"{target.mention} is not banned.")
            else:
                await ctx.send_followup(f"{target.mention} is no longer in this server.")
            return None
        except discord.HTTPException as exc:
            logger.warning("Discord rejected %s for %s in guild %s: %s", action.value, target.id, ctx.guild_id, exc)
            await ctx.send_followup(f"Discord rejected the {action.value}: {exc.text or exc}")
            return None

        return await self.record_case(
            ctx,
            NewCase(
                action=action,
                target_id=target.id,
                target_tag=user_tag(target),
                moderator_id=ctx.author.id,
                moderator_tag=user_tag(ctx.author),
                reason=reason,
                duration=duration,
            ),
            execute_at=execute_at,
        )

    async def run_escalation(self, ctx: discord.ApplicationContext, target: discord.abc.User) -> str:
        """Evaluate auto-escalation after a warn and describe the outcome for the moderator."""
        try:
            escalated = await self.services.escalation.evaluate(
                self.services.actor,
                self.services.messenger,
                ctx.guild_id,
                target.id,
                ctx.author.id,
                user_tag(ctx.author),
                self.services.settings,
            )
        except Exception as exc:
            logger.warning("Auto-escalation failed for %s in guild %s: %s", target.id, ctx.guild_id, exc)
            return f"\n⚠️ Auto-escalation could not be applied: {exc}"

        if escalated is None:
            return ""
        return f"\n⏫ Auto-escalation: {escalated.action.value} applied (case #{escalated.case_number})."

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @commands.slash_command(name="warn", description="Warns a user for a specified reason.")
    async def warn(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to warn.", required=True),  # type: ignore
        reason: Option(str, "Reason for the warning.", required=False, default=None),  # type: ignore
    ) -> None:
        """Warn a user and run auto-escalation."""
        await ctx.defer(ephemeral=True)

        async def perform(_: str) -> None:
            return None

        case = await self.moderate(ctx, action=CaseAction.WARN, target=user, member=user, reason=reason, perform=perform)
        if case is None:
            return

        escalation_note = await self.run_escalation(ctx, user)
        await ctx.send_followup(f"⚠️ Warned {user.mention} (case #{case.case_number}).{escalation_note}")

    @commands.slash_command(name="timeout", description="Timeout a user for a specified duration.")
    async def timeout(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to timeout.", required=True),  # type: ignore
        duration: Option(str, "Duration, e.g. 10m, 1h or 1d 12h.", required=True),  # type: ignore
        reason: Option(str, "Reason for the timeout.", required=False, default=None),  # type: ignore
    ) -> None:
        """Temporarily stop a user from chatting, reacting and joining voice."""
        await ctx.defer(ephemeral=True)

        milliseconds = parse_duration(duration)
        if not milliseconds or milliseconds > MAX_TIMEOUT_SECONDS * 1000:
            await ctx.send_followup("Invalid duration. Use e.g. `10m`, `1h`, `1d`; timeouts are limited to 28 days.")
            return

        label = format_duration(milliseconds)
        length = timedelta(milliseconds=milliseconds)

        async def perform(audit_reason: str) -> None:
            await self.services.actor.timeout(ctx.guild_id, user.id, length, audit_reason)

        case = await self.moderate(
            ctx, action=CaseAction.TIMEOUT, target=user, member=user, reason=reason, perform=perform, duration=label
        )
        if case is not None:
            await ctx.send_followup(f"⏱️ Timed out {user.mention} for {label} (case #{case.case_number}).")

    @commands.slash_command(name="untimeout", description="Remove a user's timeout.")
    async def untimeout(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to release.", required=True),  # type: ignore
        reason: Option(str, "Reason for removing the timeout.", required=False, default=None),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)

        if user.communication_disabled_until is None:
            await ctx.send_followup(f"{user.mention} is not timed out.")
            return

        async def perform(audit_reason: str) -> None:
            await self.services.actor.remove_timeout(ctx.guild_id, user.id, audit_reason)

        case = await self.moderate(ctx, action=CaseAction.UNTIMEOUT, target=user, member=user, reason=reason, perform=perform)
        if case is not None:
            await ctx.send_followup(f"✅ Removed timeout from {user.mention} (case #{case.case_number}).")

    @commands.slash_command(name="kick", description="Kick a user from the server.")
    async def kick(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to kick.", required=True),  # type: ignore
        reason: Option(str, "Reason for the kick.", required=False, default=None),  # type: ignore
    ) -> None:
        """Kick a member. Kicked users can rejoin with an invite."""
        await ctx.defer(ephemeral=True)

        async def perform(audit_reason: str) -> None:
            await self.services.actor.kick(ctx.guild_id, user.id, audit_reason)

        case = await self.moderate(ctx, action=CaseAction.KICK, target=user, member=user, reason=reason, perform=perform)
        if case is not None:
            await ctx.send_followup(f"👢 Kicked {user.mention} (case #{case.case_number}).")

    @commands.slash_command(name="ban", description="Ban a user from the server.")
    async def ban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "The user to ban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", required=False, default=None),  # type: ignore
        delete_messages: Option(
            int,
            "Delete messages from (choose time range)",
            choices=DELETE_MESSAGE_CHOICES,
            default=0,
        ),  # type: ignore
    ) -> None:
        """Ban a user permanently. Works for users who are not in the server."""
        await ctx.defer(ephemeral=True)
        member = ctx.guild.get_member(user.id)

        async def perform(audit_reason: str) -> None:
            await self.services.actor.ban(ctx.guild_id, user.id, audit_reason, delete_message_seconds=delete_messages)

        case = await self.moderate(ctx, action=CaseAction.BAN, target=user, member=member, reason=reason, perform=perform)
        if case is not None:
            await ctx.send_followup(f"🔨 Banned {user.mention} (case #{case.case_number}).")

    @commands.slash_command(name="tempban", description="Ban a user for a limited time.")
    async def tempban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "The user to ban.", required=True),  # type: ignore
        duration: Option(str, "Ban length, e.g. 12h, 7d or 2w.", required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", required=False, default=None),  # type: ignore
        delete_messages: Option(
            int,
            "Delete messages from (choose time range)",
            choices=DELETE_MESSAGE_CHOICES,
            default=0,
        ),  # type: ignore
    ) -> None:
        """Ban a user and schedule the unban."""
        await ctx.defer(ephemeral=True)

        milliseconds = parse_duration(duration)
        if not milliseconds:
            await ctx.send_followup("Invalid duration. Use e.g. `12h`, `7d` or `2w`.")
            return

        label = format_duration(milliseconds)
        execute_at = datetime.now(timezone.utc) + timedelta(milliseconds=milliseconds)
        member = ctx.guild.get_member(user.id)

        async def perform(audit_reason: str) -> None:
            await self.services.actor.ban(ctx.guild_id, user.id, audit_reason, delete_message_seconds=delete_messages)

        case = await self.moderate(
            ctx,
            action=CaseAction.TEMPBAN,
            target=user,
            member=member,
            reason=reason,
            perform=perform,
            duration=label,
            execute_at=execute_at,
        )
        if case is not None:
            await ctx.send_followup(
                f"🔨 Banned {user.mention} for {label}, until <t:{int(execute_at.timestamp())}:f> (case #{case.case_number})."
            )

    @commands.slash_command(name="softban", description="Ban and immediately unban a user to clear their messages.")
    async def softban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The user to softban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the softban.", required=False, default=None),  # type: ignore
    ) -> None:
        """Remove a member and their last day of messages without a lasting ban."""
        await ctx.defer(ephemeral=True)

        async def perform(audit_reason: str) -> None:
            await self.services.actor.ban(ctx.guild_id, user.id, audit_reason, delete_message_seconds=SOFTBAN_DELETE_SECONDS)
            await self.services.actor.unban(ctx.guild_id, user.id, f"Softban: {audit_reason}")

        case = await self.moderate(ctx, action=CaseAction.SOFTBAN, target=user, member=user, reason=reason, perform=perform)
        if case is not None:
            await ctx.send_followup(f"🧹 Softbanned {user.mention} (case #{case.case_number}).")

    @commands.slash_command(name="unban", description="Unban a user by ID.")
    async def unban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "ID of the user to unban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the unban.", required=False, default=None),  # type: ignore
    ) -> None:
        """Lift a ban and cancel any pending automatic unban for the user."""
        await ctx.defer(ephemeral=True)

        try:
            target = await self.discord_bot_instance.fetch_user(int(user_id))
        except (ValueError, discord.NotFound):
            await ctx.send_followup("That is not a valid user ID.")
            return

        async def perform(audit_reason: str) -> None:
            await self.services.actor.unban(ctx.guild_id, target.id, audit_reason)

        case = await self.moderate(ctx, action=CaseAction.UNBAN, target=target, member=None, reason=reason, perform=perform)
        if case is None:
            return

        try:
            await self.services.case_store.cancel_pending_unbans(ctx.guild_id, target.id)
        except Exception as exc:
            logger.exception("Failed to cancel pending unbans for %s in guild %s: %s", target.id, ctx.guild_id, exc)
            await ctx.send_followup(
                f"🔓 Unbanned {target.mention} (case #{case.case_number}), but a pending automatic unban "
                "could not be cancelled. Please check the bot logs."
            )
            return

        await ctx.send_followup(f"🔓 Unbanned {target.mention} (case #{case.case_number}).")

    def channel_case(
        self,
        ctx: discord.ApplicationContext,
        action: CaseAction,
        channel: discord.TextChannel,
        reason: str | None,
    ) -> NewCase:
        return NewCase(
            action=action,
            target_id=channel.id,
            target_tag=f"#{channel.name}",
            moderator_id=ctx.author.id,
            moderator_tag=user_tag(ctx.author),
            reason=reason,
        )

    async def set_channel_lock(
        self,
        ctx: discord.ApplicationContext,
        channel: discord.TextChannel | None,
        reason: str | None,
        locked: bool,
    ) -> None:
        action = CaseAction.LOCK if locked else CaseAction.UNLOCK
        if not has_permissions(ctx, **{REQUIRED_PERMISSIONS[action]: True}):
            await ctx.send_followup("You do not have permission to use this command.")
            return

        channel = channel or ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.send_followup("Only text channels can be locked.")
            return

        default_role = ctx.guild.default_role
        overwrite = channel.overwrites_for(default_role)
        overwrite.send_messages = False if locked else None
        try:
            await channel.set_permissions(
                default_role,
                overwrite=overwrite,
                reason=f"{user_tag(ctx.author)}: {reason or DEFAULT_REASON}",
            )
        except discord.Forbidden:
            await ctx.send_followup(f"I don't have permission to manage {channel.mention}.")
            return

        case = await self.record_case(ctx, self.channel_case(ctx, action, channel, reason))
        if case is not None:
            verb = "Locked" if locked else "Unlocked"
            await ctx.send_followup(f"{'🔒' if locked else '🔓'} {verb} {channel.mention} (case #{case.case_number}).")

    @commands.slash_command(name="lock", description="Stop @everyone from sending messages in a channel.")
    async def lock(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Channel to lock (defaults to this one).", required=False, default=None),  # type: ignore
        reason: Option(str, "Reason for the lock.", required=False, default=None),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        await self.set_channel_lock(ctx, channel, reason, locked=True)

    @commands.slash_command(name="unlock", description="Allow @everyone to send messages in a channel again.")
    async def unlock(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Channel to unlock (defaults to this one).", required=False, default=None),  # type: ignore
        reason: Option(str, "Reason for the unlock.", required=False, default=None),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        await self.set_channel_lock(ctx, channel, reason, locked=False)

    @commands.slash_command(name="slowmode", description="Set a channel's slowmode delay.")
    async def slowmode(
        self,
        ctx: discord.ApplicationContext,
        duration: Option(str, "Delay between messages, e.g. 5s, 1m or 1h. Use 0 to disable.", required=True),  # type: ignore
        channel: Option(discord.TextChannel, "Channel to change (defaults to this one).", required=False, default=None),  # type: ignore
    ) -> None:
        """Set the per-user rate limit of a text channel. Delays above 6 hours are capped."""
        await ctx.defer(ephemeral=True)

        if not has_permissions(ctx, manage_channels=True):
            await ctx.send_followup("You do not have permission to use this command.")
            return

        channel = channel or ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.send_followup("Slowmode can only be set on text channels.")
            return

        if duration.strip() == "0":
            seconds = 0
        else:
            milliseconds = parse_duration(duration)
            if not milliseconds:
                await ctx.send_followup("Invalid duration. Use e.g. `5s`, `1m` or `1h`, or `0` to disable.")
                return
            seconds = min(milliseconds // 1000, MAX_SLOWMODE_SECONDS)

        try:
            await channel.edit(
                slowmode_delay=seconds,
                reason=f"{user_tag(ctx.author)}: slowmode {seconds}s",
            )
        except discord.Forbidden:
            await ctx.send_followup(f"I don't have permission to manage {channel.mention}.")
            return

        logger.info("Slowmode in #%s (guild %s) set to %ds by %s", channel.name, ctx.guild_id, seconds, ctx.author.id)
        if seconds == 0:
            await ctx.send_followup(f"Slowmode disabled in {channel.mention}.")
        else:
            await ctx.send_followup(f"🐢 Slowmode set to **{format_duration(seconds * 1000)}** in {channel.mention}.")

    @commands.slash_command(name="purge", description="Bulk delete recent messages in this channel.")
    async def purge(
        self,
        ctx: discord.ApplicationContext,
        count: Option(int, "Number of messages to delete.", min_value=1, max_value=MAX_PURGE_COUNT),  # type: ignore
        reason: Option(str, "Reason for the purge.", required=False, default=None),  # type: ignore
    ) -> None:
        """Delete the last ``count`` messages in the current channel and record a purge case."""
        await ctx.defer(ephemeral=True)

        if not has_permissions(ctx, **{REQUIRED_PERMISSIONS[CaseAction.PURGE]: True}):
            await ctx.send_followup("You do not have permission to use this command.")
            return

        channel = ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.send_followup("Messages can only be purged in text channels.")
            return

        try:
            deleted = await channel.purge(limit=count, reason=f"{user_tag(ctx.author)}: {reason or DEFAULT_REASON}")
        except discord.Forbidden:
            await ctx.send_followup(f"I don't have permission to delete messages in {channel.mention}.")
            return
        except discord.HTTPException as exc:
            logger.warning("Purge failed in #%s (guild %s): %s", channel.name, ctx.guild_id, exc)
            await ctx.send_followup(
                "Failed to delete messages. Messages older than 14 days cannot be bulk deleted."
            )
            return

        summary = f"{len(deleted)} message(s) deleted"
        case_reason = f"{reason} ({summary})" if reason else summary
        case = await self.record_case(ctx, self.channel_case(ctx, CaseAction.PURGE, channel, case_reason))
        if case is not None:
            await ctx.send_followup(f"🗑️ Deleted **{len(deleted)}** message(s) (case #{case.case_number}).")


def setup(discord_bot_instance: discord.Bot, services: ModerationServices) -> None:
    """Register the moderation cog with the running bot instance."""
    discord_bot_instance.add_cog(ModerationActionCog(discord_bot_instance, services))
