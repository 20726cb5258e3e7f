"""
Moderation core for Modwarden.

- **case_store.py**: Case CRUD and scheduled actions on top of the database.
- **collaborators.py**: Protocols for the Discord-facing actor and messenger.
- **moderation_policy.py**: Hierarchy checks and DM notifications.
- **mod_log.py**: Log channel routing and case embeds.
- **escalation_engine.py**: Warn-threshold auto-escalation.

Nothing in this package imports py-cord clients directly; embeds are the only
Discord type that crosses the boundary.
"""
