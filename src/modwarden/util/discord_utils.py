"""
discord_utils.py
================

Stateless py-cord helpers shared by the command cogs: permission checks,
option choices and member/user display helpers.
"""

from typing import Union

import discord

from modwarden.util.logger import get_logger

logger = get_logger("discord_utils")

# Discord refuses timeouts longer than 28 days
MAX_TIMEOUT_SECONDS = 28 * 24 * 60 * 60

DELETE_MESSAGE_CHOICES = [
    discord.OptionChoice(name="Don't Delete Any", value=0),
    discord.OptionChoice(name="Previous Hour", value=60 * 60),
    discord.OptionChoice(name="Previous 6 Hours", value=6 * 60 * 60),
    discord.OptionChoice(name="Previous 12 Hours", value=12 * 60 * 60),
    discord.OptionChoice(name="Previous 24 Hours", value=24 * 60 * 60),
    discord.OptionChoice(name="Previous 3 Days", value=3 * 24 * 60 * 60),
    discord.OptionChoice(name="Previous 7 Days", value=7 * 24 * 60 * 60),
]

# Messages removed by a softban
SOFTBAN_DELETE_SECONDS = 24 * 60 * 60

# Discord caps a channel's per-user rate limit at 6 hours
MAX_SLOWMODE_SECONDS = 6 * 60 * 60

MAX_PURGE_COUNT = 100


def has_permissions(application_context: discord.ApplicationContext, **required_permissions) -> bool:
    """
    Check if the command issuer has all specified permissions in the guild.

    Args:
        application_context (discord.ApplicationContext): The command context.
        **required_permissions: Permission flags to check.

    Returns:
        bool: True if all permissions are present, False otherwise.
    """
    if not isinstance(application_context.author, discord.Member):
        return False
    return all(getattr(application_context.author.guild_permissions, permission_name, False) for permission_name in required_permissions)


def user_tag(user: Union[discord.abc.User, discord.ClientUser]) -> str:
    """Stable display label for audit records (``name`` for migrated accounts, ``name#1234`` otherwise)."""
    discriminator = getattr(user, "discriminator", "0")
    if discriminator and discriminator != "0":
        return f"{user.name}#{discriminator}"
    return user.name


def role_rank(member: discord.Member) -> int:
    """Position of the member's highest role; the guild owner outranks everyone."""
    if member.guild.owner_id == member.id:
        return len(member.guild.roles) + 1
    return member.top_role.position
