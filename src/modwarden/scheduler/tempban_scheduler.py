"""
Background poller that lifts expired tempbans.

Pending unbans live in ``mod_scheduled_actions``, so they survive restarts:
the first poll runs as soon as the scheduler starts and catches up on
anything that fell due while the bot was offline.

Each due row is handled on its own. A row whose unban fails is logged and
left pending, and so is a row whose unban case cannot be written. Either is
picked up again on the next poll, with no attempt limit.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, List

from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.datatypes.case_datatypes import CaseAction, NewCase, ScheduledAction
from modwarden.moderation import mod_log
from modwarden.moderation.case_store import CaseStore
from modwarden.moderation.collaborators import Messenger, ModerationActor
from modwarden.util.logger import get_logger

logger = get_logger("tempban_scheduler")

DEFAULT_POLL_INTERVAL = 60.0
UNBAN_REASON = "Tempban expired"


def unban_case_reason(scheduled: ScheduledAction) -> str:
    if scheduled.case_number is None:
        return UNBAN_REASON
    return f"{UNBAN_REASON} (case #{scheduled.case_number})"


class TempbanScheduler:
    """
    Owned handle for the tempban poll loop.

    States are *stopped* and *running*. :meth:`start` on a running scheduler
    and :meth:`stop` on a stopped one are no-ops.

    Args:
        case_store: Store holding cases and scheduled actions.
        interval: Seconds to wait after one poll finishes before the next starts.
    """

    def __init__(self, case_store: CaseStore, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._case_store = case_store
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None
        self._actor: ModerationActor | None = None
        self._messenger: Messenger | None = None
        self._settings_provider: Callable[[], ModerationSettings] = ModerationSettings

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float:
        return self._interval

    def start(
        self,
        actor: ModerationActor,
        messenger: Messenger,
        settings_provider: Callable[[], ModerationSettings],
    ) -> None:
        """Start polling. The first poll runs immediately."""
        if self.is_running:
            logger.debug("[TEMPBAN SCHEDULER] Already running")
            return

        self._actor = actor
        self._messenger = messenger
        self._settings_provider = settings_provider
        self._stopping = asyncio.Event()
        logger.info("[TEMPBAN SCHEDULER] Starting (interval=%.1fs)", self._interval)
        self._task = asyncio.create_task(self._run_loop(self._stopping), name="modwarden-tempban-scheduler")

    async def stop(self) -> None:
        """
        Stop polling and wait for the loop to exit.

        A poll already in progress is allowed to finish; no further poll is
        started afterwards.
        """
        task = self._task
        if task is None:
            return

        if self._stopping is not None:
            self._stopping.set()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
            self._stopping = None
        logger.info("[TEMPBAN SCHEDULER] Stopped")

    async def _run_loop(self, stopping: asyncio.Event) -> None:
        try:
            while not stopping.is_set():
                try:
                    await self.poll()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[TEMPBAN SCHEDULER] Poll failed: %s", exc, exc_info=True)

                try:
                    await asyncio.wait_for(stopping.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("[TEMPBAN SCHEDULER] Poll loop cancelled")
            raise

    async def poll(self, now: datetime | None = None) -> int:
        """
        Execute every due scheduled unban once.

        Returns:
            Number of rows processed successfully.
        """
        actor = self._actor
        messenger = self._messenger
        if actor is None or messenger is None:
            raise RuntimeError("TempbanScheduler.poll() called before start()")

        due: List[ScheduledAction] = await self._case_store.due_scheduled_actions(now)
        if not due:
            return 0

        logger.debug("[TEMPBAN SCHEDULER] %d scheduled action(s) due", len(due))
        settings = self._settings_provider()
        processed = 0
        for scheduled in due:
            try:
                if await self._execute(scheduled, actor, messenger, settings):
                    processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[TEMPBAN SCHEDULER] Failed to process scheduled action %d (user %s, guild %s): %s",
                    scheduled.id, scheduled.target_id, scheduled.guild_id, exc,
                )
        return processed

    async def _execute(
        self,
        scheduled: ScheduledAction,
        actor: ModerationActor,
        messenger: Messenger,
        settings: ModerationSettings,
    ) -> bool:
        """
        Lift one ban. The executed flag and the unban case are written together,
        so a failed case write leaves the row pending for the next poll.
        """
        if scheduled.action is not CaseAction.UNBAN:
            logger.warning(
                "[TEMPBAN SCHEDULER] Scheduled action %d has unsupported action %s; skipping",
                scheduled.id, scheduled.action.value,
            )
            return False

        await actor.unban(scheduled.guild_id, scheduled.target_id, UNBAN_REASON)

        origin = await self._case_store.get_by_id(scheduled.case_id) if scheduled.case_id is not None else None
        bot = actor.identity
        case = await self._case_store.complete_scheduled_unban(
            scheduled,
            NewCase(
                action=CaseAction.UNBAN,
                target_id=scheduled.target_id,
                target_tag=origin.target_tag if origin else str(scheduled.target_id),
                moderator_id=bot.id,
                moderator_tag=bot.tag,
                reason=unban_case_reason(scheduled),
            ),
        )
        if case is None:
            logger.debug("[TEMPBAN SCHEDULER] Scheduled action %d was already executed", scheduled.id)
            return False

        logger.info(
            "[TEMPBAN SCHEDULER] Unbanned %s in guild %s (case #%d)",
            scheduled.target_id, scheduled.guild_id, case.case_number,
        )

        await mod_log.post_case(messenger, settings, case, self._case_store)
        return True
