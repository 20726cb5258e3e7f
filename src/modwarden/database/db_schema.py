"""
Database schema initialization.

Creates the case, scheduled-action and case-counter tables plus their indexes.
Timestamps are INTEGER unix seconds (UTC).
"""

import aiosqlite
from modwarden.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1

_NOW = "(CAST(strftime('%s', 'now') AS INTEGER))"


class SchemaManager:
    """Creates tables and indexes; every statement is idempotent."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes, then record the schema version.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS mod_cases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                case_number INTEGER NOT NULL,
                action TEXT NOT NULL,
                target_id INTEGER NOT NULL,
                target_tag TEXT NOT NULL,
                moderator_id INTEGER NOT NULL,
                moderator_tag TEXT NOT NULL,
                reason TEXT,
                duration TEXT,
                expires_at INTEGER,
                log_message_id INTEGER,
                created_at INTEGER NOT NULL DEFAULT {_NOW},
                UNIQUE (guild_id, case_number)
            )
        """)

        # High-water mark per guild; survives deletion of the newest case
        await db.execute("""
            CREATE TABLE IF NOT EXISTS mod_case_counters (
                guild_id INTEGER PRIMARY KEY,
                last_case_number INTEGER NOT NULL
            )
        """)

        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS mod_scheduled_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                target_id INTEGER NOT NULL,
                case_id INTEGER,
                execute_at INTEGER NOT NULL,
                executed INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL DEFAULT {_NOW}
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_cases_target ON mod_cases(guild_id, target_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_cases_action ON mod_cases(guild_id, action, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_scheduled_due ON mod_scheduled_actions(executed, execute_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_scheduled_target ON mod_scheduled_actions(guild_id, target_id, executed)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
