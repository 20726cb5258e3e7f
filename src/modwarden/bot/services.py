"""
Wiring between the bot and the moderation core.

One :class:`ModerationServices` is built per process in ``main`` and handed
to every cog, so the cogs share the same case store, escalation engine and
scheduler handle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import discord

from modwarden.bot.discord_adapters import DiscordMessenger, DiscordModerationActor
from modwarden.configuration.app_configuration import AppConfig
from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.database.db_connection import ConnectionManager
from modwarden.moderation.case_store import CaseStore
from modwarden.moderation.collaborators import Messenger, ModerationActor
from modwarden.moderation.escalation_engine import EscalationEngine
from modwarden.scheduler.tempban_scheduler import TempbanScheduler


@dataclass(slots=True)
class ModerationServices:
    case_store: CaseStore
    escalation: EscalationEngine
    scheduler: TempbanScheduler
    actor: ModerationActor
    messenger: Messenger
    settings_provider: Callable[[], ModerationSettings]

    @property
    def settings(self) -> ModerationSettings:
        return self.settings_provider()

    def start_scheduler(self) -> None:
        self.scheduler.start(self.actor, self.messenger, self.settings_provider)

    @classmethod
    def build(cls, bot: discord.Bot, connections: ConnectionManager, config: AppConfig) -> "ModerationServices":
        case_store = CaseStore(connections)
        return cls(
            case_store=case_store,
            escalation=EscalationEngine(case_store),
            scheduler=TempbanScheduler(case_store, interval=config.tempban_poll_interval),
            actor=DiscordModerationActor(bot),
            messenger=DiscordMessenger(bot),
            settings_provider=lambda: config.moderation,
        )
