"""
Case store: the audit trail of moderation actions.

Owns per-guild case numbering. A number is allocated and the case row is
inserted inside one write transaction, so two commands racing in the same
guild always receive distinct numbers, and a failed insert rolls the
allocation back with it.

Store failures are never swallowed here: a command that already banned a user
must learn that the case could not be recorded.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Tuple

from modwarden.database.db_connection import ConnectionManager
from modwarden.datatypes.case_datatypes import CaseAction, ModCase, NewCase, ScheduledAction, to_unix
from modwarden.repositories.case_repo import case_repo
from modwarden.repositories.scheduled_action_repo import scheduled_action_repo
from modwarden.util.logger import get_logger

logger = get_logger("case_store")

HISTORY_LIMIT = 25
DEFAULT_LIST_LIMIT = 10


class CaseStore:
    """Case CRUD plus the scheduled-action rows that belong to tempban cases."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    # ------------------------------------------------------------------
    # Case numbering and creation
    # ------------------------------------------------------------------

    async def next_case_number(self, guild_id: int) -> int:
        """
        Allocate and return the next case number for ``guild_id``.

        The number is reserved: a second call returns a different number even
        if no case was created in between. :meth:`create` allocates its own
        number, so callers only need this when reserving a number up front.
        """
        async with self._connections.transaction() as conn:
            return await case_repo.allocate_case_number(conn, guild_id)

    async def create(self, guild_id: int, fields: NewCase) -> ModCase:
        """
        Record a new case under the next case number.

        Raises:
            aiosqlite.Error: On any store failure; nothing is written.
        """
        async with self._connections.transaction() as conn:
            case_number = await case_repo.allocate_case_number(conn, guild_id)
            case = await case_repo.insert(conn, guild_id, case_number, fields)

        logger.info(
            "[CASE STORE] Case #%d (%s) created in guild %s: target=%s moderator=%s",
            case.case_number, case.action.value, guild_id, case.target_id, case.moderator_id,
        )
        return case

    async def create_tempban(
        self,
        guild_id: int,
        fields: NewCase,
        execute_at: datetime,
    ) -> Tuple[ModCase, ScheduledAction]:
        """
        Record a tempban case and its pending unban in one transaction.

        ``fields.action`` is forced to ``tempban`` and ``fields.expires_at`` to
        ``execute_at``.
        """
        fields.action = CaseAction.TEMPBAN
        fields.expires_at = execute_at

        async with self._connections.transaction() as conn:
            case_number = await case_repo.allocate_case_number(conn, guild_id)
            case = await case_repo.insert(conn, guild_id, case_number, fields)
            action_id = await scheduled_action_repo.insert(
                conn,
                guild_id=guild_id,
                action=CaseAction.UNBAN,
                target_id=fields.target_id,
                case_id=case.id,
                execute_at=to_unix(execute_at),  # type: ignore[arg-type]
            )
            scheduled = await scheduled_action_repo.get(conn, action_id)

        logger.info(
            "[CASE STORE] Case #%d (tempban) created in guild %s; unban scheduled for %s",
            case.case_number, guild_id, execute_at.isoformat(),
        )
        return case, scheduled  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Case reads
    # ------------------------------------------------------------------

    async def view(self, guild_id: int, case_number: int) -> ModCase | None:
        async with self._connections.read() as conn:
            return await case_repo.get(conn, guild_id, case_number)

    async def get_by_id(self, case_id: int) -> ModCase | None:
        async with self._connections.read() as conn:
            return await case_repo.get_by_id(conn, case_id)

    async def list_cases(
        self,
        guild_id: int,
        *,
        target_id: int | None = None,
        action: CaseAction | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[ModCase]:
        """Cases for a guild, newest first, optionally filtered by target and/or action."""
        async with self._connections.read() as conn:
            return await case_repo.list_cases(conn, guild_id, target_id=target_id, action=action, limit=limit)

    async def history(self, guild_id: int, target_id: int) -> List[ModCase]:
        """The most recent 25 cases against one target, newest first. Older cases are silently cut."""
        return await self.list_cases(guild_id, target_id=target_id, limit=HISTORY_LIMIT)

    async def count_recent(
        self,
        guild_id: int,
        target_id: int,
        action: CaseAction,
        since: datetime,
    ) -> int:
        async with self._connections.read() as conn:
            return await case_repo.count_since(conn, guild_id, target_id, action, to_unix(since))  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Case updates
    # ------------------------------------------------------------------

    async def update_reason(self, guild_id: int, case_number: int, reason: str | None) -> ModCase | None:
        async with self._connections.transaction() as conn:
            case = await case_repo.update_reason(conn, guild_id, case_number, reason)

        if case is not None:
            logger.info("[CASE STORE] Reason updated for case #%d in guild %s", case_number, guild_id)
        return case

    async def set_log_message_id(self, case_id: int, message_id: int) -> None:
        async with self._connections.transaction() as conn:
            await case_repo.set_log_message_id(conn, case_id, message_id)

    async def delete(self, guild_id: int, case_number: int) -> bool:
        """Hard-delete a case. Its number is not reused."""
        async with self._connections.transaction() as conn:
            deleted = await case_repo.delete(conn, guild_id, case_number)

        if deleted:
            logger.info("[CASE STORE] Case #%d deleted in guild %s", case_number, guild_id)
        return deleted

    # ------------------------------------------------------------------
    # Scheduled actions
    # ------------------------------------------------------------------

    async def due_scheduled_actions(self, now: datetime | None = None) -> List[ScheduledAction]:
        """Rows with ``executed = false`` and ``execute_at <= now``."""
        now = now or datetime.now(timezone.utc)
        async with self._connections.read() as conn:
            return await scheduled_action_repo.get_due(conn, to_unix(now))  # type: ignore[arg-type]

    async def mark_scheduled_executed(self, action_id: int) -> bool:
        """Flip a scheduled action to executed; False if it already was."""
        async with self._connections.transaction() as conn:
            return await scheduled_action_repo.mark_executed(conn, action_id)

    async def complete_scheduled_unban(self, scheduled: ScheduledAction, fields: NewCase) -> ModCase | None:
        """
        Mark a scheduled unban executed and record its unban case in one transaction.

        Returns:
            The new case, or ``None`` if the row had already been executed.

        Raises:
            aiosqlite.Error: On any store failure; the row stays pending.
        """
        async with self._connections.transaction() as conn:
            if not await scheduled_action_repo.mark_executed(conn, scheduled.id):
                return None
            case_number = await case_repo.allocate_case_number(conn, scheduled.guild_id)
            case = await case_repo.insert(conn, scheduled.guild_id, case_number, fields)

        logger.info(
            "[CASE STORE] Scheduled action %d completed as case #%d in guild %s",
            scheduled.id, case.case_number, scheduled.guild_id,
        )
        return case

    async def pending_scheduled_actions(self, guild_id: int, target_id: int) -> List[ScheduledAction]:
        async with self._connections.read() as conn:
            return await scheduled_action_repo.get_pending_for_target(conn, guild_id, target_id)

    async def cancel_pending_unbans(self, guild_id: int, target_id: int) -> int:
        """
        Retire outstanding scheduled unbans for a user, e.g. after a manual unban.

        Returns:
            Number of scheduled rows retired.
        """
        async with self._connections.transaction() as conn:
            cancelled = await scheduled_action_repo.mark_executed_for_target(
                conn, guild_id, target_id, CaseAction.UNBAN
            )

        if cancelled:
            logger.info("[CASE STORE] Retired %d pending unban(s) for %s in guild %s", cancelled, target_id, guild_id)
        return cancelled
