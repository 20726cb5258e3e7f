"""
SQL repositories. Each method takes an open connection so the caller owns the
transaction boundary.

- **case_repo.py**: ``mod_cases`` and the per-guild case counters.
- **scheduled_action_repo.py**: ``mod_scheduled_actions``.
"""
