"""
Slash-command and lifecycle cogs.

- **moderation_cmds.py**: warn, timeout, untimeout, kick, ban, tempban,
  softban, unban, lock and unlock.
- **case_cmds.py**: ``/case`` view, list, history, reason and delete.
- **scheduler_cog.py**: Starts the tempban scheduler when the bot is ready.

Each module exposes ``setup(bot, services)``.
"""
