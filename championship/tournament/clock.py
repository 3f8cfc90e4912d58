"""
Blind-level clock.

The current level is never stored as truth. It is derived from the
persisted timer fields and the blind structure every time it is read:

    total = timer_elapsed_seconds + (running ? floor(now - started) : 0)

then walked through the levels in ascending order. The walk clamps to the
last level, so a clock that has run past the structure stays on it.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from championship.tournament.models import LevelPosition
from championship.utils.errors import ErrorCode, ValidationError


class LevelLike(Protocol):
    level: int
    duration: int
    is_break: bool


# ─────────────────────────────────────────────────────────────────────────────────
# Time helpers
# ─────────────────────────────────────────────────────────────────────────────────


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, floored, never negative."""
    delta = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, int(delta // 1))


def total_elapsed(
    timer_started_at: Optional[datetime],
    timer_paused_at: Optional[datetime],
    timer_elapsed_seconds: int,
    now: Optional[datetime] = None,
) -> int:
    """Frozen elapsed seconds plus the running portion, if any."""
    total = timer_elapsed_seconds or 0
    if timer_started_at is not None and timer_paused_at is None:
        now = now or datetime.now(timezone.utc)
        total += seconds_between(timer_started_at, now)
    return total


# ─────────────────────────────────────────────────────────────────────────────────
# Level derivation
# ─────────────────────────────────────────────────────────────────────────────────


def sorted_levels(levels: Sequence[LevelLike]) -> list[LevelLike]:
    """Sort levels ascending and reject non-positive durations."""
    ordered = sorted(levels, key=lambda lv: lv.level)
    for lv in ordered:
        if lv.duration is None or lv.duration <= 0:
            raise ValidationError(
                f"Blind level {lv.level} has a non-positive duration",
                details={"level": lv.level, "duration": lv.duration},
                code=ErrorCode.INVALID_BLIND_STRUCTURE,
            )
    return ordered


def derive_level(
    timer_started_at: Optional[datetime],
    timer_paused_at: Optional[datetime],
    timer_elapsed_seconds: int,
    levels: Sequence[LevelLike],
    now: Optional[datetime] = None,
) -> LevelPosition:
    """Derive the current blind level from persisted timer state.

    Args:
        timer_started_at: Start of the current running segment
        timer_paused_at: Set while paused
        timer_elapsed_seconds: Seconds frozen at the last pause
        levels: Blind structure, any order
        now: Reference time (defaults to current UTC time)

    Returns:
        LevelPosition with the level number and offset into it

    Raises:
        ValidationError: A level has a non-positive duration
    """
    total = total_elapsed(timer_started_at, timer_paused_at, timer_elapsed_seconds, now)
    ordered = sorted_levels(levels)

    if not ordered:
        return LevelPosition(level=1, seconds_into_level=total, total_elapsed_seconds=total)

    remaining = total
    for lv in ordered:
        length = lv.duration * 60
        if remaining < length:
            return LevelPosition(
                level=lv.level,
                seconds_into_level=remaining,
                total_elapsed_seconds=total,
            )
        remaining -= length

    last = ordered[-1]
    return LevelPosition(
        level=last.level,
        seconds_into_level=last.duration * 60,
        total_elapsed_seconds=total,
    )


def current_blind(levels: Sequence[LevelLike], level: int) -> Optional[Any]:
    """Return the configured level with this number, or None."""
    for lv in levels:
        if lv.level == level:
            return lv
    return None


def seconds_remaining(levels: Sequence[LevelLike], position: LevelPosition) -> int:
    blind = current_blind(levels, position.level)
    if blind is None:
        return 0
    return max(0, blind.duration * 60 - position.seconds_into_level)
