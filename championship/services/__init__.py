"""Business logic services."""

from championship.services.leaderboard import (
    LeaderboardEntry,
    LeaderboardService,
    RecalculationSummary,
    SeasonLeaderboard,
)

__all__ = [
    "LeaderboardEntry",
    "LeaderboardService",
    "RecalculationSummary",
    "SeasonLeaderboard",
]
