"""Season leaderboard service.

Stored point fields on enrollments are a cache. Every pass here derives the
points again from counters and the season configuration, so a stale or
hand-edited cache never reaches the standings.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from fractions import Fraction
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from championship.logging_config import get_logger
from championship.models.player import TournamentPlayer
from championship.models.season import Season
from championship.models.tournament import Tournament, TournamentStatus, TournamentType
from championship.tournament.scoring import apply_points, total_points_for
from championship.utils.errors import season_not_found, tournament_not_found

logger = get_logger(__name__)


def round_half_up(value: Fraction) -> int:
    """Round halves toward positive infinity (-2.5 -> -2, 2.5 -> 3)."""
    return math.floor(value + Fraction(1, 2))


@dataclass(frozen=True)
class RecalculationSummary:
    tournaments_processed: int
    players_updated: int

    def to_dict(self) -> dict[str, int]:
        return {
            "tournaments_processed": self.tournaments_processed,
            "players_updated": self.players_updated,
        }


@dataclass(frozen=True)
class Performance:
    """One player's result in one finished tournament."""

    tournament_id: str
    tournament_name: Optional[str]
    tournament_date: datetime
    final_rank: Optional[int]
    rank_points: int
    elimination_points: int
    bonus_points: int
    penalty_points: int
    total_points: int
    eliminations_count: int
    leader_kills: int
    rebuys_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "tournament_name": self.tournament_name,
            "tournament_date": self.tournament_date.isoformat(),
            "final_rank": self.final_rank,
            "rank_points": self.rank_points,
            "elimination_points": self.elimination_points,
            "bonus_points": self.bonus_points,
            "penalty_points": self.penalty_points,
            "total_points": self.total_points,
            "eliminations_count": self.eliminations_count,
            "leader_kills": self.leader_kills,
            "rebuys_count": self.rebuys_count,
        }


@dataclass
class LeaderboardEntry:
    player_id: str
    nickname: Optional[str]
    rank: int = 0
    total_points: int = 0
    tournaments_count: int = 0
    tournaments_played: int = 0
    average_points: int = 0
    best_result: Optional[int] = None
    victories: int = 0
    podiums: int = 0
    total_eliminations: int = 0
    total_leader_kills: int = 0
    total_rebuys: int = 0
    performances: list[Performance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "player_id": self.player_id,
            "nickname": self.nickname,
            "total_points": self.total_points,
            "tournaments_count": self.tournaments_count,
            "tournaments_played": self.tournaments_played,
            "average_points": self.average_points,
            "best_result": self.best_result,
            "victories": self.victories,
            "podiums": self.podiums,
            "total_eliminations": self.total_eliminations,
            "total_leader_kills": self.total_leader_kills,
            "total_rebuys": self.total_rebuys,
            "performances": [p.to_dict() for p in self.performances],
        }


@dataclass
class SeasonLeaderboard:
    season_id: str
    name: str
    year: int
    total_tournaments_count: Optional[int]
    best_tournaments_count: Optional[int]
    completed_tournaments_count: int
    entries: list[LeaderboardEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "season": {
                "id": self.season_id,
                "name": self.name,
                "year": self.year,
                "total_tournaments_count": self.total_tournaments_count,
                "best_tournaments_count": self.best_tournaments_count,
                "completed_tournaments_count": self.completed_tournaments_count,
            },
            "leaderboard": [entry.to_dict() for entry in self.entries],
        }


class LeaderboardService:
    """Season standings with the best-N-of-M rule."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def recalculate_season(self, season_id: str) -> RecalculationSummary:
        """Rewrite cached points of every enrollment in the season's
        finished championship tournaments. Only differing rows are written.

        Raises:
            NotFoundError: Unknown season
        """
        async with self._session_factory() as session:
            async with session.begin():
                season = await self._season(session, season_id)
                tournaments = await self._finished_tournaments(session, season_id)

                updated = 0
                for tournament in tournaments:
                    for tp in tournament.tournament_players:
                        if apply_points(tp, season):
                            updated += 1

        logger.info(
            "season_recalculated",
            season_id=season_id,
            tournaments_processed=len(tournaments),
            players_updated=updated,
        )
        return RecalculationSummary(
            tournaments_processed=len(tournaments),
            players_updated=updated,
        )

    async def compute_leaderboard(self, season_id: str) -> SeasonLeaderboard:
        """Aggregate standings. Read-only.

        Raises:
            NotFoundError: Unknown season
        """
        async with self._session_factory() as session:
            season = await self._season(session, season_id)
            tournaments = await self._finished_tournaments(session, season_id)

        entries: dict[str, LeaderboardEntry] = {}

        for tournament in tournaments:
            for tp in tournament.tournament_players:
                entry = entries.get(tp.player_id)
                if entry is None:
                    entry = LeaderboardEntry(
                        player_id=tp.player_id,
                        nickname=tp.player.nickname if tp.player else None,
                    )
                    entries[tp.player_id] = entry

                points = total_points_for(tp, season)
                entry.performances.append(
                    Performance(
                        tournament_id=tournament.id,
                        tournament_name=tournament.name,
                        tournament_date=tournament.date,
                        final_rank=tp.final_rank,
                        rank_points=points.rank_points,
                        elimination_points=points.elimination_points,
                        bonus_points=points.bonus_points,
                        penalty_points=tp.penalty_points,
                        total_points=points.total_points,
                        eliminations_count=tp.eliminations_count,
                        leader_kills=tp.leader_kills,
                        rebuys_count=tp.rebuys_count,
                    )
                )

                entry.tournaments_played += 1
                entry.total_eliminations += tp.eliminations_count
                entry.total_leader_kills += tp.leader_kills
                entry.total_rebuys += tp.rebuys_count

                if tp.final_rank is not None:
                    if entry.best_result is None or tp.final_rank < entry.best_result:
                        entry.best_result = tp.final_rank
                    if tp.final_rank == 1:
                        entry.victories += 1
                    if tp.final_rank <= 3:
                        entry.podiums += 1

        best_n = season.best_tournaments_count
        for entry in entries.values():
            entry.performances.sort(key=lambda p: p.total_points, reverse=True)
            counted = entry.performances
            if best_n and best_n > 0:
                counted = counted[:best_n]

            entry.total_points = sum(p.total_points for p in counted)
            entry.tournaments_count = len(counted)
            entry.average_points = (
                round_half_up(Fraction(entry.total_points, entry.tournaments_count))
                if entry.tournaments_count
                else 0
            )

        ranked = sorted(entries.values(), key=lambda e: e.total_points, reverse=True)
        for index, entry in enumerate(ranked):
            entry.rank = index + 1

        return SeasonLeaderboard(
            season_id=season.id,
            name=season.name,
            year=season.year,
            total_tournaments_count=season.total_tournaments_count,
            best_tournaments_count=season.best_tournaments_count,
            completed_tournaments_count=len(tournaments),
            entries=ranked,
        )

    async def season_leader(self, season_id: str) -> Optional[str]:
        """Player id currently ranked first, or None for an empty season."""
        leaderboard = await self.compute_leaderboard(season_id)
        if not leaderboard.entries:
            return None
        return leaderboard.entries[0].player_id

    async def capture_season_leader(self, tournament_id: str) -> Optional[str]:
        """Remember who led the season when the tournament started.

        Only fills an empty season_leader_at_start_id, so restarting the
        clock keeps the original leader.
        """
        async with self._session_factory() as session:
            tournament = await session.get(Tournament, tournament_id)
            if tournament is None:
                raise tournament_not_found(tournament_id)
            if tournament.season_id is None or tournament.season_leader_at_start_id:
                return tournament.season_leader_at_start_id
            season_id = tournament.season_id

        leader_id = await self.season_leader(season_id)
        if leader_id is None:
            return None

        async with self._session_factory() as session:
            async with session.begin():
                tournament = await session.get(Tournament, tournament_id)
                if tournament.season_leader_at_start_id is None:
                    tournament.season_leader_at_start_id = leader_id

        logger.info(
            "season_leader_captured",
            tournament_id=tournament_id,
            season_id=season_id,
            player_id=leader_id,
        )
        return leader_id

    # =========================================================================
    # Queries
    # =========================================================================

    async def _season(self, session: AsyncSession, season_id: str) -> Season:
        season = await session.get(Season, season_id)
        if season is None:
            raise season_not_found(season_id)
        return season

    async def _finished_tournaments(
        self,
        session: AsyncSession,
        season_id: str,
    ) -> list[Tournament]:
        result = await session.execute(
            select(Tournament)
            .options(
                selectinload(Tournament.tournament_players).selectinload(
                    TournamentPlayer.player
                )
            )
            .where(
                Tournament.season_id == season_id,
                Tournament.status == TournamentStatus.FINISHED.value,
                Tournament.type == TournamentType.CHAMPIONSHIP.value,
            )
            .order_by(Tournament.date.asc())
        )
        return list(result.scalars().all())
