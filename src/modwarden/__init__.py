"""
Modwarden - Discord Moderation Bot

Modwarden gives moderators slash commands for warns, kicks, timeouts, bans and
channel locks, and keeps a numbered case history for every guild.

Core Components:

- **Case Store**: Per-guild sequential case numbering backed by SQLite, plus
  the scheduled actions that belong to temporary bans
- **Hierarchy & DM Policy**: Role-rank checks and best-effort notification of
  the affected user before the action is taken
- **Mod Log**: Routes case embeds to per-action or default log channels
- **Escalation Engine**: Applies a timeout or ban once a user collects enough
  warns inside a configured window
- **Tempban Scheduler**: Polls for expired temporary bans and lifts them,
  surviving restarts

Usage:
    from modwarden.main import main
    main()
"""
