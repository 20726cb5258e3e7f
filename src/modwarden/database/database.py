"""
Database lifecycle coordinator.

Opens the shared :class:`ConnectionManager`, creates the schema, and closes the
connection at shutdown. Repositories and services receive the connection
manager directly; this class only owns startup and teardown.

Lifecycle:
    1. ``await database.initialize()`` at program startup
    2. pass ``database.connections`` to the case store and scheduler
    3. stop the scheduler, then ``await database.shutdown()``
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from modwarden.database.db_connection import ConnectionManager, db_connection
from modwarden.database.db_schema import SchemaManager
from modwarden.util.logger import get_logger

logger = get_logger("database")


class Database:
    """Owns opening, schema creation and closing of the SQLite database."""

    def __init__(self, db_path: Path, connections: ConnectionManager | None = None) -> None:
        self.db_path = db_path
        self.connections = connections if connections is not None else db_connection
        self._initialized = False

    async def initialize(self) -> None:
        """
        Open the connection and create the schema.

        Raises:
            aiosqlite.Error: If the file cannot be opened or the schema cannot
                be created. Startup should abort in that case.
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return

        await self.connections.open(self.db_path)
        try:
            await SchemaManager.initialize_schema(self.connections.connection)
        except aiosqlite.Error:
            logger.exception("[DATABASE] Schema initialization failed")
            await self.connections.close()
            raise

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)

    async def shutdown(self) -> None:
        """Close the connection. The tempban scheduler must already be stopped."""
        if not self._initialized:
            return

        await self.connections.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")
