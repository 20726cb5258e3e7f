"""
Typed, read-only view of the ``moderation`` configuration section.

The snapshot is built once from the raw YAML mapping and handed to the
moderation core. Nothing in the core mutates or persists it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from modwarden.datatypes.case_datatypes import CaseAction
from modwarden.util.duration import parse_duration
from modwarden.util.logger import get_logger

logger = get_logger("moderation_settings")

ESCALATION_ACTIONS = frozenset({CaseAction.TIMEOUT, CaseAction.BAN})


@dataclass(frozen=True, slots=True)
class EscalationThreshold:
    """Fire ``action`` once a user collects ``warn_count`` warns inside ``within_days``."""
    warn_count: int
    within_days: int
    action: CaseAction
    duration: str | None = None


@dataclass(frozen=True, slots=True)
class EscalationSettings:
    enabled: bool = False
    thresholds: Tuple[EscalationThreshold, ...] = ()


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    """Mod log routing: a default channel plus per-key overrides (``warns``, ``bans`` ...)."""
    default_channel_id: int | None = None
    channel_ids: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class ModerationSettings:
    dm_notifications: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))
    escalation: EscalationSettings = field(default_factory=EscalationSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ModerationSettings":
        """Parse the raw ``moderation`` mapping, falling back to defaults for anything malformed."""
        data = _as_dict(data)
        return cls(
            dm_notifications=_parse_dm_notifications(data.get("dm_notifications")),
            escalation=_parse_escalation(data.get("escalation")),
            logging=_parse_logging(data.get("logging")),
        )


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_snowflake(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("[MODERATION SETTINGS] Ignoring invalid channel id %r", value)
        return None


def _parse_dm_notifications(value: Any) -> Mapping[str, bool]:
    toggles = {str(key): bool(enabled) for key, enabled in _as_dict(value).items()}
    return MappingProxyType(toggles)


def _parse_threshold(raw: Any, index: int) -> EscalationThreshold | None:
    if not isinstance(raw, dict):
        logger.warning("[MODERATION SETTINGS] Escalation threshold #%d is not a mapping; skipping", index)
        return None

    try:
        warn_count = int(raw.get("warns", raw.get("warn_count", 0)))
        within_days = int(raw.get("within_days", raw.get("withinDays", 0)))
        action = CaseAction(str(raw.get("action", "")).lower())
    except (TypeError, ValueError) as exc:
        logger.warning("[MODERATION SETTINGS] Escalation threshold #%d is invalid (%s); skipping", index, exc)
        return None

    if action not in ESCALATION_ACTIONS:
        logger.warning("[MODERATION SETTINGS] Escalation threshold #%d uses unsupported action %s; skipping", index, action)
        return None
    if warn_count <= 0 or within_days <= 0:
        logger.warning("[MODERATION SETTINGS] Escalation threshold #%d needs positive warns and within_days; skipping", index)
        return None

    duration = raw.get("duration")
    duration = str(duration) if duration else None
    if action is CaseAction.TIMEOUT and not parse_duration(duration):
        logger.warning("[MODERATION SETTINGS] Escalation threshold #%d is a timeout without a valid duration; skipping", index)
        return None

    return EscalationThreshold(
        warn_count=warn_count,
        within_days=within_days,
        action=action,
        duration=duration,
    )


def _parse_escalation(value: Any) -> EscalationSettings:
    data = _as_dict(value)
    raw_thresholds = data.get("thresholds") or []
    if not isinstance(raw_thresholds, list):
        logger.warning("[MODERATION SETTINGS] escalation.thresholds must be a list; ignoring")
        raw_thresholds = []

    thresholds = tuple(
        threshold
        for index, raw in enumerate(raw_thresholds, start=1)
        if (threshold := _parse_threshold(raw, index)) is not None
    )
    return EscalationSettings(enabled=bool(data.get("enabled", False)), thresholds=thresholds)


def _parse_logging(value: Any) -> LoggingSettings:
    channels = _as_dict(_as_dict(value).get("channels"))
    default_channel_id = _parse_snowflake(channels.get("default"))
    channel_ids = {
        str(key): channel_id
        for key, raw in channels.items()
        if key != "default" and (channel_id := _parse_snowflake(raw)) is not None
    }
    return LoggingSettings(default_channel_id=default_channel_id, channel_ids=MappingProxyType(channel_ids))
