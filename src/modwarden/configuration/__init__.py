"""
Configuration management for Modwarden.

- **app_configuration.py**: YAML-backed global configuration
  (``config/app_config.yml``) read under a shared file lock.

- **moderation_settings.py**: Immutable snapshot of the ``moderation``
  section: DM toggles, escalation thresholds and log channel routing.
"""
