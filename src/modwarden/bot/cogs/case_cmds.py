"""
Case commands cog: ``/case view|list|history|reason|delete``.
"""

from typing import Iterable

import discord
from discord import Option
from discord.ext import commands

from modwarden.bot.services import ModerationServices
from modwarden.datatypes.case_datatypes import CaseAction, ModCase
from modwarden.moderation import mod_log
from modwarden.util.discord_utils import has_permissions
from modwarden.util.logger import get_logger

logger = get_logger("case_commands")

ACTION_CHOICES = [action.value for action in CaseAction]
MAX_LIST_LIMIT = 25


def format_case_line(case: ModCase) -> str:
    """One-line summary used by the list and history embeds."""
    reason = case.display_reason
    if len(reason) > 60:
        reason = reason[:57] + "..."
    return (
        f"**#{case.case_number}** `{case.action.value}` {case.target_tag} "
        f"by {case.moderator_tag} <t:{int(case.created_at.timestamp())}:d> | {reason}"
    )


def build_case_list_embed(title: str, cases: Iterable[ModCase]) -> discord.Embed:
    lines = [format_case_line(case) for case in cases]
    return discord.Embed(
        title=title,
        description="\n".join(lines) if lines else "No cases found.",
        color=discord.Color.blurple(),
    )


class CaseCog(commands.Cog):
    """Browse and maintain the guild's case history."""

    case = discord.SlashCommandGroup("case", "View and manage moderation cases")

    def __init__(self, bot: discord.Bot, services: ModerationServices) -> None:
        self.bot = bot
        self.services = services

    async def _check(self, ctx: discord.ApplicationContext) -> bool:
        await ctx.defer(ephemeral=True)
        if not has_permissions(ctx, moderate_members=True):
            await ctx.send_followup("You do not have permission to use this command.")
            return False
        return True

    @case.command(name="view", description="Show a single case")
    async def view(
        self,
        ctx: discord.ApplicationContext,
        number: Option(int, "Case number", min_value=1),  # type: ignore
    ) -> None:
        if not await self._check(ctx):
            return

        case = await self.services.case_store.view(ctx.guild_id, number)
        if case is None:
            await ctx.send_followup(f"❌ Case #{number} not found.")
            return
        await ctx.send_followup(embed=mod_log.build_case_embed(case))

    @case.command(name="list", description="List recent cases")
    async def list_cases(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "Only cases against this user", required=False, default=None),  # type: ignore
        action: Option(str, "Only cases of this type", choices=ACTION_CHOICES, required=False, default=None),  # type: ignore
        limit: Option(int, "How many cases to show", min_value=1, max_value=MAX_LIST_LIMIT, default=10),  # type: ignore
    ) -> None:
        if not await self._check(ctx):
            return

        cases = await self.services.case_store.list_cases(
            ctx.guild_id,
            target_id=user.id if user else None,
            action=CaseAction(action) if action else None,
            limit=limit,
        )
        await ctx.send_followup(embed=build_case_list_embed("📋 Recent cases", cases))

    @case.command(name="history", description="Show the most recent cases against a user")
    async def history(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "User to look up"),  # type: ignore
    ) -> None:
        if not await self._check(ctx):
            return

        cases = await self.services.case_store.history(ctx.guild_id, user.id)
        await ctx.send_followup(embed=build_case_list_embed(f"📜 History for {user}", cases))

    @case.command(name="reason", description="Change the reason of a case")
    async def reason(
        self,
        ctx: discord.ApplicationContext,
        number: Option(int, "Case number", min_value=1),  # type: ignore
        reason: Option(str, "New reason"),  # type: ignore
    ) -> None:
        if not await self._check(ctx):
            return

        case = await self.services.case_store.update_reason(ctx.guild_id, number, reason)
        if case is None:
            await ctx.send_followup(f"❌ Case #{number} not found.")
            return

        edited = await mod_log.refresh(self.services.messenger, self.services.settings, case)
        suffix = " The mod log entry was updated." if edited else ""
        await ctx.send_followup(f"✅ Reason for case #{number} updated.{suffix}")

    @case.command(name="delete", description="Permanently delete a case")
    async def delete(
        self,
        ctx: discord.ApplicationContext,
        number: Option(int, "Case number", min_value=1),  # type: ignore
    ) -> None:
        if not await self._check(ctx):
            return
        if not has_permissions(ctx, administrator=True):
            await ctx.send_followup("Only administrators can delete cases.")
            return

        if await self.services.case_store.delete(ctx.guild_id, number):
            logger.info("Case #%d deleted in guild %s by %s", number, ctx.guild_id, ctx.author.id)
            await ctx.send_followup(f"🗑️ Case #{number} deleted.")
        else:
            await ctx.send_followup(f"❌ Case #{number} not found.")


def setup(bot: discord.Bot, services: ModerationServices) -> None:
    bot.add_cog(CaseCog(bot, services))
