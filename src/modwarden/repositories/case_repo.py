"""
Low-level SQL for the ``mod_cases`` and ``mod_case_counters`` tables.

Every method takes an open connection so callers decide the transaction
boundary. Case number allocation and the case insert must share one
``db_connection.transaction()`` block.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from modwarden.datatypes.case_datatypes import CaseAction, ModCase, NewCase, to_unix
from modwarden.util.logger import get_logger

logger = get_logger("case_repo")

_CASE_COLUMNS = (
    "id, guild_id, case_number, action, target_id, target_tag, moderator_id, "
    "moderator_tag, reason, duration, expires_at, log_message_id, created_at"
)


class CaseRepo:
    """CRUD for moderation cases."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def allocate_case_number(conn: aiosqlite.Connection, guild_id: int) -> int:
        """
        Reserve the next case number for ``guild_id`` in a single statement.

        The first allocation for a guild seeds the counter with
        ``MAX(case_number) + 1`` over existing rows (1 for an empty guild);
        later allocations increment the stored counter, so numbers of deleted
        cases are never handed out again.
        """
        cursor = await conn.execute(
            """
            INSERT INTO mod_case_counters (guild_id, last_case_number)
            VALUES (?, COALESCE((SELECT MAX(case_number) FROM mod_cases WHERE guild_id = ?), 0) + 1)
            ON CONFLICT(guild_id) DO UPDATE SET
                last_case_number = last_case_number + 1
            RETURNING last_case_number
            """,
            (guild_id, guild_id),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return int(rows[0][0])

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        guild_id: int,
        case_number: int,
        fields: NewCase,
    ) -> ModCase:
        """Insert a case row and return it with its store-assigned id and timestamp."""
        cursor = await conn.execute(
            f"""
            INSERT INTO mod_cases (
                guild_id, case_number, action, target_id, target_tag,
                moderator_id, moderator_tag, reason, duration, expires_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING {_CASE_COLUMNS}
            """,
            (
                guild_id,
                case_number,
                fields.action.value,
                fields.target_id,
                fields.target_tag,
                fields.moderator_id,
                fields.moderator_tag,
                fields.reason,
                fields.duration,
                to_unix(fields.expires_at),
            ),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return ModCase.from_row(row)  # type: ignore[arg-type]

    @staticmethod
    async def update_reason(
        conn: aiosqlite.Connection,
        guild_id: int,
        case_number: int,
        reason: str | None,
    ) -> ModCase | None:
        cursor = await conn.execute(
            f"""
            UPDATE mod_cases SET reason = ?
            WHERE guild_id = ? AND case_number = ?
            RETURNING {_CASE_COLUMNS}
            """,
            (reason, guild_id, case_number),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return ModCase.from_row(row) if row else None

    @staticmethod
    async def set_log_message_id(conn: aiosqlite.Connection, case_id: int, message_id: int) -> None:
        await conn.execute(
            "UPDATE mod_cases SET log_message_id = ? WHERE id = ?",
            (message_id, case_id),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, guild_id: int, case_number: int) -> bool:
        """Hard-delete a case. The guild's counter is left untouched."""
        cursor = await conn.execute(
            "DELETE FROM mod_cases WHERE guild_id = ? AND case_number = ?",
            (guild_id, case_number),
        )
        deleted = cursor.rowcount > 0
        await cursor.close()
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, guild_id: int, case_number: int) -> ModCase | None:
        cursor = await conn.execute(
            f"SELECT {_CASE_COLUMNS} FROM mod_cases WHERE guild_id = ? AND case_number = ?",
            (guild_id, case_number),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return ModCase.from_row(row) if row else None

    @staticmethod
    async def get_by_id(conn: aiosqlite.Connection, case_id: int) -> ModCase | None:
        cursor = await conn.execute(
            f"SELECT {_CASE_COLUMNS} FROM mod_cases WHERE id = ?",
            (case_id,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return ModCase.from_row(row) if row else None

    @staticmethod
    async def list_cases(
        conn: aiosqlite.Connection,
        guild_id: int,
        *,
        target_id: int | None = None,
        action: CaseAction | None = None,
        limit: int = 25,
    ) -> List[ModCase]:
        """Return cases newest first, optionally filtered by target and action."""
        clauses = ["guild_id = ?"]
        params: list = [guild_id]
        if target_id is not None:
            clauses.append("target_id = ?")
            params.append(target_id)
        if action is not None:
            clauses.append("action = ?")
            params.append(action.value)
        params.append(limit)

        cursor = await conn.execute(
            f"""
            SELECT {_CASE_COLUMNS} FROM mod_cases
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, case_number DESC
            LIMIT ?
            """,
            params,
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [ModCase.from_row(row) for row in rows]

    @staticmethod
    async def count_since(
        conn: aiosqlite.Connection,
        guild_id: int,
        target_id: int,
        action: CaseAction,
        since: int,
    ) -> int:
        """Count ``action`` cases against ``target_id`` created at or after unix second ``since``."""
        cursor = await conn.execute(
            """
            SELECT COUNT(*) FROM mod_cases
            WHERE guild_id = ? AND target_id = ? AND action = ? AND created_at >= ?
            """,
            (guild_id, target_id, action.value, since),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return int(row[0]) if row else 0


# Module-level instance
case_repo = CaseRepo()
