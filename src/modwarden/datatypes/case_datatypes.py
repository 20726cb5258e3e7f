"""
Case and scheduled-action data structures.

These are the plain values returned by the case store and consumed by the
escalation engine, the mod log router and the slash-command layer. Nothing in
here touches Discord objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

DEFAULT_REASON = "No reason provided"


class CaseAction(Enum):
    """Enumeration of actions a moderation case can record."""

    WARN = "warn"
    KICK = "kick"
    TIMEOUT = "timeout"
    UNTIMEOUT = "untimeout"
    BAN = "ban"
    TEMPBAN = "tempban"
    UNBAN = "unban"
    SOFTBAN = "softban"
    PURGE = "purge"
    LOCK = "lock"
    UNLOCK = "unlock"

    def __str__(self) -> str:
        return self.value


def from_unix(value: int | None) -> datetime | None:
    """Convert stored unix seconds into an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def to_unix(value: datetime | None) -> int | None:
    """Convert a datetime into unix seconds for storage (naive values are treated as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


@dataclass(slots=True)
class NewCase:
    """Fields supplied by a caller when recording a case.

    Attributes:
        action: What was done.
        target_id: User or channel the action applied to.
        target_tag: Display name of the target at the time of the action.
        moderator_id: Who did it (the bot's own id for automatic cases).
        moderator_tag: Display name of the moderator.
        reason: Free text, ``None`` when the moderator gave none.
        duration: Human-readable duration for timeouts and tempbans.
        expires_at: When a tempban should be reversed.
    """
    action: CaseAction
    target_id: int
    target_tag: str
    moderator_id: int
    moderator_tag: str
    reason: str | None = None
    duration: str | None = None
    expires_at: datetime | None = None


@dataclass(slots=True)
class ModCase:
    """One recorded moderation action (a row of ``mod_cases``)."""
    id: int
    guild_id: int
    case_number: int
    action: CaseAction
    target_id: int
    target_tag: str
    moderator_id: int
    moderator_tag: str
    reason: str | None
    duration: str | None
    expires_at: datetime | None
    log_message_id: int | None
    created_at: datetime

    @property
    def display_reason(self) -> str:
        return self.reason or DEFAULT_REASON

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ModCase":
        """Build a case from a ``mod_cases`` row."""
        return cls(
            id=int(row["id"]),
            guild_id=int(row["guild_id"]),
            case_number=int(row["case_number"]),
            action=CaseAction(row["action"]),
            target_id=int(row["target_id"]),
            target_tag=str(row["target_tag"]),
            moderator_id=int(row["moderator_id"]),
            moderator_tag=str(row["moderator_tag"]),
            reason=row["reason"],
            duration=row["duration"],
            expires_at=from_unix(row["expires_at"]),
            log_message_id=int(row["log_message_id"]) if row["log_message_id"] is not None else None,
            created_at=from_unix(row["created_at"]),  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class ScheduledAction:
    """A pending automatic reversal (a row of ``mod_scheduled_actions``).

    ``case_id`` refers to the originating case's ``id``. ``case_number`` is that
    case's per-guild number, joined in at read time for audit text; it is
    ``None`` when the originating case has since been deleted.
    """
    id: int
    guild_id: int
    action: CaseAction
    target_id: int
    case_id: int | None
    execute_at: datetime
    executed: bool
    created_at: datetime
    case_number: int | None = None

    def is_due(self, now: datetime) -> bool:
        return not self.executed and self.execute_at <= now

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScheduledAction":
        return cls(
            id=int(row["id"]),
            guild_id=int(row["guild_id"]),
            action=CaseAction(row["action"]),
            target_id=int(row["target_id"]),
            case_id=int(row["case_id"]) if row["case_id"] is not None else None,
            execute_at=from_unix(row["execute_at"]),  # type: ignore[arg-type]
            executed=bool(row["executed"]),
            created_at=from_unix(row["created_at"]),  # type: ignore[arg-type]
            case_number=int(row["case_number"]) if row["case_number"] is not None else None,
        )
