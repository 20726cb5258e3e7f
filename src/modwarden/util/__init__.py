"""
Utility functions and helpers for Modwarden.

- **logger.py**: Centralized logging configuration with coloured console
  output through prompt_toolkit and rotating per-session log files.
  Suppresses noise from Discord internals and aiosqlite.

- **duration.py**: Parsing and formatting of compact durations (``10m``,
  ``1h 30m``, ``2w``).

- **discord_utils.py**: Stateless py-cord helpers: permission checks, option
  choices, user tags and role ranks.
"""
