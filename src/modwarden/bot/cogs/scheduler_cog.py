"""Cog that ties the tempban scheduler to the bot's lifecycle."""

import discord
from discord.ext import commands

from modwarden.bot.services import ModerationServices
from modwarden.util.logger import get_logger

logger = get_logger("scheduler_cog")


class TempbanSchedulerCog(commands.Cog):
    """
    Starts the tempban scheduler once the gateway is ready.

    ``on_ready`` fires again after reconnects; starting a running scheduler
    is a no-op, so the poll loop is never duplicated. Stopping happens in
    ``main.shutdown_runtime`` (before the database closes) and, as a
    fallback, when the cog is unloaded.
    """

    def __init__(self, bot: discord.Bot, services: ModerationServices) -> None:
        self.bot = bot
        self.services = services

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        self.services.start_scheduler()
        logger.info("[TEMPBAN SCHEDULER] Ready (poll interval=%.0fs)", self.services.scheduler.interval)

    def cog_unload(self) -> None:
        if self.services.scheduler.is_running:
            self.bot.loop.create_task(self.services.scheduler.stop())


def setup(bot: discord.Bot, services: ModerationServices) -> None:
    bot.add_cog(TempbanSchedulerCog(bot, services))
