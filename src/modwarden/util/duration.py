"""
Duration parsing and formatting.

Durations are written as one or more ``<integer><unit>`` tokens, with units
``s``, ``m``, ``h``, ``d`` and ``w``. Tokens may be separated by whitespace,
so every string produced by :func:`format_duration` parses back::

    parse_duration("90m")                     # 5400000
    format_duration(5400000)                  # "1h 30m"
    parse_duration("1h 30m")                  # 5400000

All values are milliseconds.
"""

from __future__ import annotations

import re
from datetime import timedelta

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR
MS_PER_WEEK = 7 * MS_PER_DAY

# Longest accepted duration (about 100 years); now() + this still fits in a datetime
MAX_DURATION_MS = 100 * 365 * MS_PER_DAY

UNIT_MS = {
    "w": MS_PER_WEEK,
    "d": MS_PER_DAY,
    "h": MS_PER_HOUR,
    "m": MS_PER_MINUTE,
    "s": MS_PER_SECOND,
}

_TOKEN = r"(\d+)([smhdw])"
_DURATION_RE = re.compile(rf"{_TOKEN}(?:\s*{_TOKEN})*")
_TOKEN_RE = re.compile(_TOKEN)


def parse_duration(text: str | None) -> int | None:
    """
    Parse a duration string into milliseconds.

    Matching is case-insensitive and ignores surrounding whitespace.

    Returns:
        The duration in milliseconds, or ``None`` when ``text`` is empty,
        signed, uses an unknown unit, or exceeds :data:`MAX_DURATION_MS`.
    """
    if not text:
        return None

    normalized = text.strip().lower()
    if not _DURATION_RE.fullmatch(normalized):
        return None

    milliseconds = sum(int(amount) * UNIT_MS[unit] for amount, unit in _TOKEN_RE.findall(normalized))
    if milliseconds > MAX_DURATION_MS:
        return None
    return milliseconds


def format_duration(milliseconds: int) -> str:
    """
    Render milliseconds using the largest units that fit, e.g. ``"5m 30s"``.

    Sub-second remainders are dropped; zero (or anything under a second)
    renders as ``"0s"``.
    """
    remaining = max(int(milliseconds), 0)
    parts: list[str] = []
    for unit, size in UNIT_MS.items():
        amount, remaining = divmod(remaining, size)
        if amount:
            parts.append(f"{amount}{unit}")
    return " ".join(parts) if parts else "0s"


def parse_duration_timedelta(text: str | None) -> timedelta | None:
    """Parse ``text`` into a :class:`datetime.timedelta`, or ``None`` if unparseable."""
    milliseconds = parse_duration(text)
    if milliseconds is None:
        return None
    return timedelta(milliseconds=milliseconds)
