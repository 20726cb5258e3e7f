"""
Discord integration: py-cord adapters for the moderation core, the service
bundle shared by the cogs, and the cogs themselves.
"""
