"""
Persistent storage for scheduled reversals (``mod_scheduled_actions``).

``execute_at`` is stored as INTEGER unix seconds so the due check is a plain
integer comparison served by the ``(executed, execute_at)`` index.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from modwarden.datatypes.case_datatypes import CaseAction, ScheduledAction
from modwarden.util.logger import get_logger

logger = get_logger("scheduled_action_repo")

# The originating case number is joined in for audit text
_SELECT = """
    SELECT sa.id, sa.guild_id, sa.action, sa.target_id, sa.case_id,
           sa.execute_at, sa.executed, sa.created_at, c.case_number AS case_number
    FROM mod_scheduled_actions AS sa
    LEFT JOIN mod_cases AS c ON c.id = sa.case_id
"""


class ScheduledActionRepo:
    """Low-level CRUD for the ``mod_scheduled_actions`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        guild_id: int,
        action: CaseAction,
        target_id: int,
        case_id: int | None,
        execute_at: int,
    ) -> int:
        """Insert a pending action and return its id."""
        cursor = await conn.execute(
            """
            INSERT INTO mod_scheduled_actions (guild_id, action, target_id, case_id, execute_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (guild_id, action.value, target_id, case_id, execute_at),
        )
        row_id = cursor.lastrowid
        await cursor.close()
        return int(row_id)  # type: ignore[arg-type]

    @staticmethod
    async def mark_executed(conn: aiosqlite.Connection, action_id: int) -> bool:
        """
        Flip ``executed`` from 0 to 1.

        Returns:
            True if this call performed the flip, False if the row was already
            executed (or does not exist).
        """
        cursor = await conn.execute(
            "UPDATE mod_scheduled_actions SET executed = 1 WHERE id = ? AND executed = 0",
            (action_id,),
        )
        flipped = cursor.rowcount == 1
        await cursor.close()
        return flipped

    @staticmethod
    async def mark_executed_for_target(
        conn: aiosqlite.Connection,
        guild_id: int,
        target_id: int,
        action: CaseAction,
    ) -> int:
        """Mark every pending ``action`` for a user as executed. Returns the number of rows touched."""
        cursor = await conn.execute(
            """
            UPDATE mod_scheduled_actions SET executed = 1
            WHERE guild_id = ? AND target_id = ? AND action = ? AND executed = 0
            """,
            (guild_id, target_id, action.value),
        )
        touched = cursor.rowcount
        await cursor.close()
        return touched

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, action_id: int) -> ScheduledAction | None:
        cursor = await conn.execute(f"{_SELECT} WHERE sa.id = ?", (action_id,))
        row = await cursor.fetchone()
        await cursor.close()
        return ScheduledAction.from_row(row) if row else None

    @staticmethod
    async def get_due(conn: aiosqlite.Connection, now: int) -> List[ScheduledAction]:
        """Return every row with ``executed = 0`` and ``execute_at <= now``, oldest first."""
        cursor = await conn.execute(
            f"{_SELECT} WHERE sa.executed = 0 AND sa.execute_at <= ? ORDER BY sa.execute_at, sa.id",
            (now,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [ScheduledAction.from_row(row) for row in rows]

    @staticmethod
    async def get_pending_for_target(
        conn: aiosqlite.Connection,
        guild_id: int,
        target_id: int,
    ) -> List[ScheduledAction]:
        cursor = await conn.execute(
            f"{_SELECT} WHERE sa.guild_id = ? AND sa.target_id = ? AND sa.executed = 0 ORDER BY sa.execute_at",
            (guild_id, target_id),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [ScheduledAction.from_row(row) for row in rows]


# Module-level instance
scheduled_action_repo = ScheduledActionRepo()
