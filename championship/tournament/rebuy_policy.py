"""Rebuy window policy."""

from datetime import datetime
from typing import Optional, Sequence

from championship.models.tournament import TournamentStatus
from championship.tournament.clock import LevelLike, current_blind, derive_level


def are_rebuys_open(
    status: str,
    effective_level: int,
    rebuy_end_level: Optional[int],
    current_level_is_break: bool,
) -> bool:
    """Whether busts and rebuys are accepted right now.

    The window stays open through rebuy_end_level, and through the level
    right after it when that level is a break.
    """
    if status != TournamentStatus.IN_PROGRESS.value:
        return False
    if rebuy_end_level is None:
        return True
    if effective_level <= rebuy_end_level:
        return True
    return effective_level == rebuy_end_level + 1 and current_level_is_break


def rebuys_open_for(
    tournament,
    levels: Sequence[LevelLike],
    now: Optional[datetime] = None,
) -> bool:
    """Combine the clock and the policy for a tournament row."""
    position = derive_level(
        tournament.timer_started_at,
        tournament.timer_paused_at,
        tournament.timer_elapsed_seconds,
        levels,
        now,
    )
    blind = current_blind(levels, position.level)
    return are_rebuys_open(
        tournament.status,
        position.level,
        tournament.rebuy_end_level,
        bool(blind is not None and blind.is_break),
    )
