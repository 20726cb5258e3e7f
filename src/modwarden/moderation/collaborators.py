"""
Interfaces the moderation core needs from the outside world.

The core never talks to py-cord directly. It is handed a
:class:`ModerationActor` (act on members) and a :class:`Messenger` (send DMs
and channel posts); :mod:`modwarden.bot.discord_adapters` provides the real
implementations and tests substitute ``AsyncMock`` objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import discord


class MemberNotFoundError(Exception):
    """Raised by a :class:`ModerationActor` when the member is no longer in the guild."""

    def __init__(self, guild_id: int, user_id: int) -> None:
        super().__init__(f"Member {user_id} is not in guild {guild_id}")
        self.guild_id = guild_id
        self.user_id = user_id


@dataclass(frozen=True, slots=True)
class MemberInfo:
    """Plain snapshot of a guild member; ``rank`` is the position of their highest role."""
    id: int
    tag: str
    rank: int


@dataclass(frozen=True, slots=True)
class Identity:
    id: int
    tag: str


@dataclass(frozen=True, slots=True)
class MessageHandle:
    """Reference to a posted channel message, kept so it can be edited later."""
    channel_id: int
    message_id: int


class ModerationActor(Protocol):
    """Performs moderation actions against guild members."""

    @property
    def identity(self) -> Identity:
        """The bot's own id and tag, used as moderator on automatic cases."""
        ...

    async def fetch_member(self, guild_id: int, user_id: int) -> MemberInfo | None: ...

    async def timeout(self, guild_id: int, user_id: int, duration: timedelta, reason: str) -> None: ...

    async def remove_timeout(self, guild_id: int, user_id: int, reason: str) -> None: ...

    async def kick(self, guild_id: int, user_id: int, reason: str) -> None: ...

    async def ban(self, guild_id: int, user_id: int, reason: str, delete_message_seconds: int = 0) -> None: ...

    async def unban(self, guild_id: int, user_id: int, reason: str) -> None: ...


class Messenger(Protocol):
    """Delivers embeds to users and channels."""

    async def send_direct_message(self, user_id: int, embed: discord.Embed) -> None: ...

    async def send_to_channel(self, channel_id: int, embed: discord.Embed) -> MessageHandle: ...

    async def edit_channel_message(self, handle: MessageHandle, embed: discord.Embed) -> None: ...
