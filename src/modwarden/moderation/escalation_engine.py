"""
Automatic escalation of repeated warnings.

After every warn the engine recounts the target's recent warn cases and,
when a configured threshold is met, applies that threshold's action and
records it as a case of its own. Nothing is persisted between evaluations;
the case history is the only state.

Thresholds are evaluated in configuration order and the first one that
matches wins, so operators control precedence by ordering them.

Each evaluation runs the same short pipeline:

1. select threshold   pure
2. fetch member       member gone -> no escalation
3. apply action       member gone -> no escalation, anything else propagates
4. record case        store errors propagate
5. post to mod log    best-effort, never raises
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from modwarden.configuration.moderation_settings import EscalationThreshold, ModerationSettings
from modwarden.datatypes.case_datatypes import CaseAction, ModCase, NewCase
from modwarden.moderation import mod_log
from modwarden.moderation.case_store import CaseStore
from modwarden.moderation.collaborators import MemberInfo, MemberNotFoundError, Messenger, ModerationActor
from modwarden.util.duration import parse_duration_timedelta
from modwarden.util.logger import get_logger

logger = get_logger("escalation_engine")


def escalation_reason(threshold: EscalationThreshold) -> str:
    return f"Auto-escalation: {threshold.warn_count} warns in {threshold.within_days} days"


class EscalationEngine:
    """Evaluates warn thresholds for one target and applies the first that fires."""

    def __init__(self, case_store: CaseStore) -> None:
        self._case_store = case_store

    async def evaluate(
        self,
        actor: ModerationActor,
        messenger: Messenger,
        guild_id: int,
        target_id: int,
        moderator_id: int,
        moderator_tag: str,
        settings: ModerationSettings,
        now: datetime | None = None,
    ) -> ModCase | None:
        """
        Escalate ``target_id`` if a configured threshold is met.

        The new case is attributed to the moderator whose warn triggered the
        escalation, not to the bot.

        Returns:
            The escalation case, or ``None`` when escalation is disabled, no
            threshold fired, or the member has left the guild.

        Raises:
            Any error from the moderation actor other than
            :class:`MemberNotFoundError`, and any store error.
        """
        escalation = settings.escalation
        if not escalation.enabled or not escalation.thresholds:
            return None

        threshold = await self._select_threshold(guild_id, target_id, settings, now or datetime.now(timezone.utc))
        if threshold is None:
            return None

        member = await self._apply_action(actor, guild_id, target_id, threshold)
        if member is None:
            return None

        case = await self._case_store.create(
            guild_id,
            NewCase(
                action=threshold.action,
                target_id=target_id,
                target_tag=member.tag,
                moderator_id=moderator_id,
                moderator_tag=moderator_tag,
                reason=escalation_reason(threshold),
                duration=threshold.duration if threshold.action is CaseAction.TIMEOUT else None,
            ),
        )
        logger.info(
            "[ESCALATION] %s applied to %s in guild %s (case #%d)",
            threshold.action.value, target_id, guild_id, case.case_number,
        )

        await mod_log.post_case(messenger, settings, case, self._case_store)
        return case

    async def _select_threshold(
        self,
        guild_id: int,
        target_id: int,
        settings: ModerationSettings,
        now: datetime,
    ) -> EscalationThreshold | None:
        for threshold in settings.escalation.thresholds:
            since = now - timedelta(days=threshold.within_days)
            warns = await self._case_store.count_recent(guild_id, target_id, CaseAction.WARN, since)
            if warns >= threshold.warn_count:
                logger.debug(
                    "[ESCALATION] %s has %d warns in %d days (threshold %d) in guild %s",
                    target_id, warns, threshold.within_days, threshold.warn_count, guild_id,
                )
                return threshold
        return None

    async def _apply_action(
        self,
        actor: ModerationActor,
        guild_id: int,
        target_id: int,
        threshold: EscalationThreshold,
    ) -> MemberInfo | None:
        """Apply the threshold's action. Returns the member acted on, or ``None`` if they are gone."""
        reason = escalation_reason(threshold)
        try:
            member = await actor.fetch_member(guild_id, target_id)
            if member is None:
                raise MemberNotFoundError(guild_id, target_id)

            if threshold.action is CaseAction.TIMEOUT:
                duration = parse_duration_timedelta(threshold.duration or "")
                if duration is None:
                    raise ValueError(f"Invalid escalation timeout duration: {threshold.duration!r}")
                await actor.timeout(guild_id, target_id, duration, reason)
            else:
                await actor.ban(guild_id, target_id, reason)
        except MemberNotFoundError:
            logger.info("[ESCALATION] %s is no longer in guild %s; skipping %s", target_id, guild_id, threshold.action.value)
            return None

        return member
