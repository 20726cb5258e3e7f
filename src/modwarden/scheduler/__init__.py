"""
Background tasks.

- **tempban_scheduler.py**: Polls ``mod_scheduled_actions`` and lifts expired
  temporary bans, recording an unban case for each.
"""
