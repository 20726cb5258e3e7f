"""
py-cord implementations of the moderation collaborators.

:class:`DiscordModerationActor` and :class:`DiscordMessenger` translate the
id-based calls made by the moderation core into py-cord API calls. Discord
errors are left to propagate except where the core expects a specific
signal (a missing member becomes :class:`MemberNotFoundError`).
"""

from __future__ import annotations

from datetime import timedelta

import discord

from modwarden.moderation.collaborators import Identity, MemberInfo, MemberNotFoundError, MessageHandle
from modwarden.util.discord_utils import role_rank, user_tag
from modwarden.util.logger import get_logger

logger = get_logger("discord_adapters")


def member_info(member: discord.Member) -> MemberInfo:
    """Snapshot a guild member for hierarchy checks and case records."""
    return MemberInfo(id=member.id, tag=user_tag(member), rank=role_rank(member))


async def _resolve_guild(bot: discord.Bot, guild_id: int) -> discord.Guild:
    guild = bot.get_guild(guild_id)
    if guild is None:
        guild = await bot.fetch_guild(guild_id)
    return guild


class DiscordModerationActor:
    """Applies moderation actions through the bot's Discord connection."""

    def __init__(self, bot: discord.Bot) -> None:
        self._bot = bot

    @property
    def identity(self) -> Identity:
        user = self._bot.user
        if user is None:
            raise RuntimeError("Bot identity is not available before login")
        return Identity(id=user.id, tag=user_tag(user))

    async def _member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    async def _require_member(self, guild_id: int, user_id: int) -> discord.Member:
        guild = await _resolve_guild(self._bot, guild_id)
        member = await self._member(guild, user_id)
        if member is None:
            raise MemberNotFoundError(guild_id, user_id)
        return member

    async def fetch_member(self, guild_id: int, user_id: int) -> MemberInfo | None:
        guild = await _resolve_guild(self._bot, guild_id)
        member = await self._member(guild, user_id)
        return member_info(member) if member is not None else None

    async def timeout(self, guild_id: int, user_id: int, duration: timedelta, reason: str) -> None:
        member = await self._require_member(guild_id, user_id)
        await member.timeout_for(duration, reason=reason)

    async def remove_timeout(self, guild_id: int, user_id: int, reason: str) -> None:
        member = await self._require_member(guild_id, user_id)
        await member.remove_timeout(reason=reason)

    async def kick(self, guild_id: int, user_id: int, reason: str) -> None:
        guild = await _resolve_guild(self._bot, guild_id)
        try:
            await guild.kick(discord.Object(id=user_id), reason=reason)
        except discord.NotFound as exc:
            raise MemberNotFoundError(guild_id, user_id) from exc

    async def ban(self, guild_id: int, user_id: int, reason: str, delete_message_seconds: int = 0) -> None:
        guild = await _resolve_guild(self._bot, guild_id)
        await guild.ban(discord.Object(id=user_id), reason=reason, delete_message_seconds=delete_message_seconds)

    async def unban(self, guild_id: int, user_id: int, reason: str) -> None:
        guild = await _resolve_guild(self._bot, guild_id)
        await guild.unban(discord.Object(id=user_id), reason=reason)


class DiscordMessenger:
    """Sends embeds to users and channels."""

    def __init__(self, bot: discord.Bot) -> None:
        self._bot = bot

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            channel = await self._bot.fetch_channel(channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            raise TypeError(f"Channel {channel_id} is not a text channel")
        return channel

    async def send_direct_message(self, user_id: int, embed: discord.Embed) -> None:
        user = self._bot.get_user(user_id)
        if user is None:
            user = await self._bot.fetch_user(user_id)
        await user.send(embed=embed)

    async def send_to_channel(self, channel_id: int, embed: discord.Embed) -> MessageHandle:
        channel = await self._channel(channel_id)
        message = await channel.send(embed=embed)
        return MessageHandle(channel_id=channel_id, message_id=message.id)

    async def edit_channel_message(self, handle: MessageHandle, embed: discord.Embed) -> None:
        channel = await self._channel(handle.channel_id)
        message = await channel.fetch_message(handle.message_id)
        await message.edit(embed=embed)
