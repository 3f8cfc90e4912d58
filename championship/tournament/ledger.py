"""
Removal ledger.

Records and reverses the events that take chips or seats away from players:

─────────────────────────────────────────────────────────────────────────────────

    Bust         stack lost while rebuys are open; optionally with a recave.
                 Reversible while nothing happened after it.
    Elimination  permanent exit with a finishing rank. Eliminating the
                 second-to-last player ranks the winner and finishes the
                 tournament.
    Rebuy        standard (counted, penalised) or light (once, free).

Undo is strictly last-in-first-out per kind. Every mutation runs in one
transaction and publishes its events only after commit.

─────────────────────────────────────────────────────────────────────────────────
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from championship.logging_config import get_logger
from championship.models.base import utcnow
from championship.models.player import TournamentPlayer
from championship.models.removal import BustEvent, Elimination
from championship.models.season import Season
from championship.models.tournament import Tournament, TournamentStatus
from championship.tournament.clock import current_blind, derive_level, seconds_between
from championship.tournament.event_bus import TournamentEventBus
from championship.tournament.models import LevelPosition, TournamentEventType
from championship.tournament.penalty import compute_penalty, penalty_rules_for
from championship.tournament.rebuy_policy import are_rebuys_open
from championship.tournament.scoring import apply_points
from championship.tournament.timer import TimerController, load_tournament
from championship.utils.errors import (
    ChampionshipError,
    ConcurrentModificationError,
    ErrorCode,
    InvalidStateError,
    NotFoundError,
    NothingToUndoError,
    ValidationError,
    player_not_enrolled,
)

logger = get_logger(__name__)


@dataclass
class EliminationOutcome:
    """Result of record_elimination."""

    elimination: Elimination
    tournament_completed: bool = False
    winner_player_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "elimination": self.elimination.to_dict(),
            "tournament_completed": self.tournament_completed,
            "winner_player_id": self.winner_player_id,
        }


def _nickname(tp: Optional[TournamentPlayer]) -> Optional[str]:
    if tp is None or tp.player is None:
        return None
    return tp.player.nickname


class RemovalLedger:
    """
    Bust, recave, elimination and rebuy bookkeeping for live tournaments.

    When built with a TimerController and a positive auto-resume delay,
    every recorded bust or elimination pauses a running clock and
    schedules it to resume after the delay.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: TournamentEventBus,
        timer: Optional[TimerController] = None,
        auto_resume_delay_seconds: float = 0,
        now: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._timer = timer
        self._auto_resume_delay = auto_resume_delay_seconds
        self._now = now

    # =========================================================================
    # Busts
    # =========================================================================

    async def record_bust(
        self,
        tournament_id: str,
        eliminated_player_id: str,
        killer_player_id: Optional[str] = None,
        level: Optional[int] = None,
        with_recave: bool = False,
    ) -> BustEvent:
        """Record a lost stack during the rebuy window.

        Args:
            tournament_id: Tournament ID
            eliminated_player_id: Player who lost the stack
            killer_player_id: Player who took it, if known
            level: Level to record (defaults to the clock-derived level)
            with_recave: Attach a rebuy to the bust in the same transaction

        Returns:
            The created BustEvent

        Raises:
            NotFoundError: Unknown tournament or player not enrolled
            InvalidStateError: Not in progress, rebuys closed, already ranked
            ValidationError: Killer and eliminated are the same player
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)
                self._require_in_progress(tournament)
                position = self._require_rebuys_open(tournament)

                eliminated = await self._enrollment(
                    session, tournament_id, eliminated_player_id
                )
                self._require_unranked(eliminated)

                killer = None
                if killer_player_id:
                    if killer_player_id == eliminated_player_id:
                        raise ValidationError(
                            "A player cannot bust themselves",
                            details={"playerId": killer_player_id},
                        )
                    killer = await self._enrollment(
                        session, tournament_id, killer_player_id
                    )
                    killer.bust_eliminations += 1

                bust = BustEvent(
                    tournament_id=tournament_id,
                    eliminated_id=eliminated.id,
                    killer_id=killer.id if killer else None,
                    level=level if level is not None else position.level,
                    recave_applied=with_recave,
                )
                session.add(bust)

                if with_recave:
                    await self._add_rebuy(session, tournament, eliminated)

                await session.flush()

        logger.info(
            "bust_recorded",
            tournament_id=tournament_id,
            bust_id=bust.id,
            level=bust.level,
            with_recave=with_recave,
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.BUST_RECORDED,
            {
                "tournamentId": tournament_id,
                "bustId": bust.id,
                "eliminatedId": eliminated_player_id,
                "eliminatedName": _nickname(eliminated),
                "killerId": killer_player_id,
                "killerName": _nickname(killer),
                "level": bust.level,
                "recaveApplied": with_recave,
            },
        )
        if with_recave:
            await self._emit_rebuy(
                tournament_id,
                TournamentEventType.REBUY_APPLIED,
                eliminated,
                from_bust_id=bust.id,
            )
        await self._auto_pause(tournament_id)
        return bust

    async def apply_recave(self, tournament_id: str, bust_id: str) -> BustEvent:
        """Attach a rebuy to an existing bust that has none."""
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)
                self._require_in_progress(tournament)
                self._require_rebuys_open(tournament)

                bust = await self._bust(session, tournament_id, bust_id)
                if bust.recave_applied:
                    raise InvalidStateError(
                        "A recave is already attached to this bust",
                        details={"bustId": bust_id},
                    )

                eliminated = await self._enrollment_by_id(session, bust.eliminated_id)
                self._require_unranked(eliminated)

                await self._add_rebuy(session, tournament, eliminated)
                bust.recave_applied = True

        logger.info("recave_applied", tournament_id=tournament_id, bust_id=bust_id)
        await self._emit_rebuy(
            tournament_id,
            TournamentEventType.REBUY_APPLIED,
            eliminated,
            from_bust_id=bust_id,
        )
        return bust

    async def cancel_recave(self, tournament_id: str, bust_id: str) -> BustEvent:
        """Detach the rebuy from a bust, restoring the player's rebuy count."""
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)

                bust = await self._bust(session, tournament_id, bust_id)
                if not bust.recave_applied:
                    raise InvalidStateError(
                        "No recave is attached to this bust",
                        details={"bustId": bust_id},
                    )

                eliminated = await self._enrollment_by_id(session, bust.eliminated_id)
                await self._remove_rebuy(session, tournament, eliminated)
                bust.recave_applied = False

        logger.info("recave_cancelled", tournament_id=tournament_id, bust_id=bust_id)
        await self._emit_rebuy(
            tournament_id,
            TournamentEventType.REBUY_CANCELLED,
            eliminated,
            from_bust_id=bust_id,
        )
        return bust

    async def undo_last_bust(self, tournament_id: str) -> BustEvent:
        """Delete the most recent bust and reverse its counter effects.

        Raises:
            NothingToUndoError: The tournament has no bust
            InvalidStateError: An elimination came after it, or the busted
                player has since been ranked
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)

                result = await session.execute(
                    select(BustEvent)
                    .where(BustEvent.tournament_id == tournament_id)
                    .order_by(BustEvent.created_at.desc())
                    .limit(1)
                )
                bust = result.scalar_one_or_none()
                if bust is None:
                    raise NothingToUndoError("bust", tournament_id)

                later = await session.scalar(
                    select(func.count())
                    .select_from(Elimination)
                    .where(
                        Elimination.tournament_id == tournament_id,
                        Elimination.created_at > bust.created_at,
                    )
                )
                if later:
                    raise InvalidStateError(
                        "An elimination was recorded after this bust",
                        details={"bustId": bust.id},
                        code=ErrorCode.NOT_MOST_RECENT,
                    )

                eliminated = await self._enrollment_by_id(session, bust.eliminated_id)
                if eliminated.final_rank is not None:
                    raise InvalidStateError(
                        "The busted player has since been eliminated",
                        details={"bustId": bust.id},
                        code=ErrorCode.PLAYER_ALREADY_ELIMINATED,
                    )

                if bust.recave_applied:
                    await self._remove_rebuy(session, tournament, eliminated)

                killer = None
                if bust.killer_id:
                    killer = await self._enrollment_by_id(session, bust.killer_id)
                    killer.bust_eliminations = max(0, killer.bust_eliminations - 1)

                await session.delete(bust)

        logger.info(
            "bust_undone",
            tournament_id=tournament_id,
            bust_id=bust.id,
            recave_reverted=bust.recave_applied,
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.BUST_CANCELLED,
            {
                "tournamentId": tournament_id,
                "bustId": bust.id,
                "eliminatedName": _nickname(eliminated),
                "killerName": _nickname(killer),
                "recaveReverted": bust.recave_applied,
            },
        )
        return bust

    # =========================================================================
    # Eliminations
    # =========================================================================

    async def record_elimination(
        self,
        tournament_id: str,
        eliminated_player_id: str,
        eliminator_player_id: str,
        rank: Optional[int] = None,
        level: Optional[int] = None,
        is_leader_kill: Optional[bool] = None,
    ) -> EliminationOutcome:
        """Permanently eliminate a player and assign their finishing rank.

        Args:
            tournament_id: Tournament ID
            eliminated_player_id: Player leaving the tournament
            eliminator_player_id: Player credited with the elimination
            rank: Finishing rank (defaults to the number of unranked players)
            level: Level to record (defaults to the clock-derived level)
            is_leader_kill: Override the season-leader check

        Returns:
            EliminationOutcome; tournament_completed is True when this left a
            single player, who is ranked first

        Raises:
            NotFoundError: Unknown tournament or player not enrolled
            InvalidStateError: Not in progress, player already ranked, rank
                taken
            ValidationError: Rank out of bounds, or self-elimination
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)
                self._require_in_progress(tournament)
                now = self._now()
                position = self._position(tournament, now)

                players = await self._enrollments(session, tournament_id)
                by_player = {tp.player_id: tp for tp in players}

                eliminated = by_player.get(eliminated_player_id)
                if eliminated is None:
                    raise player_not_enrolled(tournament_id, eliminated_player_id)
                eliminator = by_player.get(eliminator_player_id)
                if eliminator is None:
                    raise player_not_enrolled(tournament_id, eliminator_player_id)
                if eliminated is eliminator:
                    raise ValidationError(
                        "A player cannot eliminate themselves",
                        details={"playerId": eliminated_player_id},
                    )
                self._require_unranked(eliminated)

                unranked = [tp for tp in players if tp.final_rank is None]
                if rank is None:
                    rank = len(unranked)
                if rank < 1 or rank > len(players):
                    raise ValidationError(
                        f"Rank {rank} is out of bounds (1..{len(players)})",
                        details={"rank": rank, "players": len(players)},
                    )
                if any(tp.final_rank == rank for tp in players):
                    raise InvalidStateError(
                        f"Rank {rank} is already assigned",
                        details={"rank": rank},
                        code=ErrorCode.RANK_UNAVAILABLE,
                    )
                if rank == 1 and len(unranked) > 1:
                    raise InvalidStateError(
                        "Rank 1 is reserved for the last player standing",
                        details={"rank": rank, "unranked": len(unranked)},
                        code=ErrorCode.RANK_UNAVAILABLE,
                    )

                if is_leader_kill is None:
                    is_leader_kill = (
                        tournament.season_leader_at_start_id is not None
                        and tournament.season_leader_at_start_id == eliminated.player_id
                    )

                await self._assign_rank(session, eliminated, rank)

                eliminator.eliminations_count += 1
                if is_leader_kill:
                    eliminator.leader_kills += 1

                elimination = Elimination(
                    tournament_id=tournament_id,
                    eliminator_id=eliminator.id,
                    eliminated_id=eliminated.id,
                    rank=rank,
                    level=level if level is not None else position.level,
                    is_leader_kill=is_leader_kill,
                )
                session.add(elimination)

                outcome = EliminationOutcome(elimination=elimination)
                remaining = [tp for tp in unranked if tp is not eliminated]
                winner = None
                if len(remaining) <= 1:
                    if remaining:
                        winner = remaining[0]
                        await self._assign_rank(session, winner, 1)
                        outcome.winner_player_id = winner.player_id
                    await self._finish(session, tournament, players, now)
                    outcome.tournament_completed = True

                await session.flush()

        logger.info(
            "elimination_recorded",
            tournament_id=tournament_id,
            elimination_id=elimination.id,
            rank=rank,
            level=elimination.level,
            is_leader_kill=is_leader_kill,
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.ELIMINATION_RECORDED,
            {
                "tournamentId": tournament_id,
                "eliminationId": elimination.id,
                "eliminatedId": eliminated_player_id,
                "eliminatedName": _nickname(eliminated),
                "eliminatorId": eliminator_player_id,
                "eliminatorName": _nickname(eliminator),
                "rank": rank,
                "level": elimination.level,
                "isLeaderKill": is_leader_kill,
            },
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.LEADERBOARD_UPDATED,
            {"tournamentId": tournament_id, "timestamp": now.isoformat()},
        )

        if outcome.tournament_completed:
            logger.info(
                "tournament_completed",
                tournament_id=tournament_id,
                winner_player_id=outcome.winner_player_id,
            )
            await self._event_bus.emit(
                tournament_id,
                TournamentEventType.TOURNAMENT_COMPLETED,
                {
                    "tournamentId": tournament_id,
                    "winnerId": outcome.winner_player_id,
                    "winnerName": _nickname(winner),
                },
            )
        else:
            await self._auto_pause(tournament_id)

        return outcome

    async def undo_last_elimination(
        self,
        tournament_id: str,
        elimination_id: Optional[str] = None,
    ) -> Elimination:
        """Delete the most recent elimination and restore the counters.

        Args:
            tournament_id: Tournament ID
            elimination_id: When given, must name the most recent elimination
        """
        async with self._session_factory() as session:
            async with session.begin():
                await self._load_mutable(session, tournament_id)

                result = await session.execute(
                    select(Elimination)
                    .where(Elimination.tournament_id == tournament_id)
                    .order_by(Elimination.created_at.desc())
                    .limit(1)
                )
                elimination = result.scalar_one_or_none()
                if elimination is None:
                    raise NothingToUndoError("elimination", tournament_id)
                if elimination_id is not None and elimination.id != elimination_id:
                    raise InvalidStateError(
                        "Can only cancel the most recent elimination",
                        details={
                            "eliminationId": elimination_id,
                            "mostRecentId": elimination.id,
                        },
                        code=ErrorCode.NOT_MOST_RECENT,
                    )

                eliminated = await self._enrollment_by_id(
                    session, elimination.eliminated_id
                )
                eliminated.final_rank = None

                eliminator = await self._enrollment_by_id(
                    session, elimination.eliminator_id
                )
                eliminator.eliminations_count = max(0, eliminator.eliminations_count - 1)
                if elimination.is_leader_kill:
                    eliminator.leader_kills = max(0, eliminator.leader_kills - 1)

                await session.delete(elimination)

        logger.info(
            "elimination_undone",
            tournament_id=tournament_id,
            elimination_id=elimination.id,
            rank=elimination.rank,
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.ELIMINATION_CANCELLED,
            {
                "tournamentId": tournament_id,
                "eliminationId": elimination.id,
                "eliminatedId": eliminated.player_id,
                "eliminatedName": _nickname(eliminated),
                "rank": elimination.rank,
            },
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.LEADERBOARD_UPDATED,
            {"tournamentId": tournament_id, "timestamp": self._now().isoformat()},
        )
        return elimination

    # =========================================================================
    # Rebuys
    # =========================================================================

    async def record_rebuy(
        self,
        tournament_id: str,
        player_id: str,
        light: bool = False,
    ) -> TournamentPlayer:
        """Record a rebuy outside of a bust.

        A light rebuy can be taken once per player when the tournament
        allows it. It is tracked by flag and does not count toward the
        penalty.
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)
                self._require_in_progress(tournament)
                self._require_rebuys_open(tournament)

                tp = await self._enrollment(session, tournament_id, player_id)
                self._require_unranked(tp)

                if light:
                    if not tournament.light_rebuy_enabled:
                        raise InvalidStateError(
                            "Light rebuys are not enabled for this tournament",
                            details={"tournamentId": tournament_id},
                        )
                    if tp.light_rebuy_used:
                        raise InvalidStateError(
                            "Player has already used their light rebuy",
                            details={"playerId": player_id},
                        )
                    tp.light_rebuy_used = True
                else:
                    await self._add_rebuy(session, tournament, tp)

        logger.info(
            "rebuy_recorded",
            tournament_id=tournament_id,
            player_id=player_id,
            light=light,
            rebuys_count=tp.rebuys_count,
        )
        await self._emit_rebuy(
            tournament_id,
            TournamentEventType.REBUY_APPLIED,
            tp,
            rebuy_type="LIGHT" if light else "STANDARD",
        )
        return tp

    async def undo_last_rebuy(self, tournament_id: str) -> TournamentPlayer:
        """Take back one rebuy from the most recently updated player.

        Raises:
            NothingToUndoError: No player has a rebuy
            ConcurrentModificationError: The count changed between read and
                write; safe to retry
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await self._load_mutable(session, tournament_id)
                self._require_in_progress(tournament)

                tp = await self._pick_last_rebuy(session, tournament_id)
                if tp is None:
                    raise NothingToUndoError("rebuy", tournament_id)

                read_count = tp.rebuys_count
                new_count = read_count - 1
                penalty = compute_penalty(
                    new_count, penalty_rules_for(await self._season(session, tournament))
                )

                result = await session.execute(
                    update(TournamentPlayer)
                    .where(
                        TournamentPlayer.id == tp.id,
                        TournamentPlayer.rebuys_count == read_count,
                    )
                    .values(rebuys_count=new_count, penalty_points=penalty)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConcurrentModificationError(
                        "Rebuy count changed concurrently, retry",
                        details={"playerId": tp.player_id, "expected": read_count},
                    )
                set_committed_value(tp, "rebuys_count", new_count)
                set_committed_value(tp, "penalty_points", penalty)

        logger.info(
            "rebuy_undone",
            tournament_id=tournament_id,
            player_id=tp.player_id,
            rebuys_count=new_count,
        )
        await self._emit_rebuy(tournament_id, TournamentEventType.REBUY_CANCELLED, tp)
        return tp

    async def _pick_last_rebuy(
        self,
        session: AsyncSession,
        tournament_id: str,
    ) -> Optional[TournamentPlayer]:
        result = await session.execute(
            select(TournamentPlayer)
            .options(selectinload(TournamentPlayer.player))
            .where(
                TournamentPlayer.tournament_id == tournament_id,
                TournamentPlayer.rebuys_count > 0,
            )
            .order_by(TournamentPlayer.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Internals
    # =========================================================================

    async def _load_mutable(self, session: AsyncSession, tournament_id: str) -> Tournament:
        tournament = await load_tournament(session, tournament_id)
        if tournament.status == TournamentStatus.FINISHED.value:
            raise InvalidStateError(
                "Tournament is finished",
                details={"tournamentId": tournament_id},
                code=ErrorCode.TOURNAMENT_FINISHED,
            )
        return tournament

    @staticmethod
    def _require_in_progress(tournament: Tournament) -> None:
        if tournament.status != TournamentStatus.IN_PROGRESS.value:
            raise InvalidStateError(
                "Tournament is not in progress",
                details={"tournamentId": tournament.id, "status": tournament.status},
                code=ErrorCode.TOURNAMENT_NOT_IN_PROGRESS,
            )

    @staticmethod
    def _require_unranked(tp: TournamentPlayer) -> None:
        if tp.final_rank is not None:
            raise InvalidStateError(
                "Player has already been eliminated",
                details={"playerId": tp.player_id, "finalRank": tp.final_rank},
                code=ErrorCode.PLAYER_ALREADY_ELIMINATED,
            )

    def _position(self, tournament: Tournament, now: Optional[datetime] = None) -> LevelPosition:
        return derive_level(
            tournament.timer_started_at,
            tournament.timer_paused_at,
            tournament.timer_elapsed_seconds,
            tournament.blind_levels,
            now or self._now(),
        )

    def _require_rebuys_open(self, tournament: Tournament) -> LevelPosition:
        position = self._position(tournament)
        blind = current_blind(tournament.blind_levels, position.level)
        if not are_rebuys_open(
            tournament.status,
            position.level,
            tournament.rebuy_end_level,
            bool(blind is not None and blind.is_break),
        ):
            raise InvalidStateError(
                "Rebuy period is over, record a permanent elimination instead",
                details={
                    "tournamentId": tournament.id,
                    "effectiveLevel": position.level,
                    "rebuyEndLevel": tournament.rebuy_end_level,
                },
                code=ErrorCode.REBUYS_CLOSED,
            )
        return position

    async def _enrollments(
        self,
        session: AsyncSession,
        tournament_id: str,
    ) -> list[TournamentPlayer]:
        result = await session.execute(
            select(TournamentPlayer)
            .options(selectinload(TournamentPlayer.player))
            .where(TournamentPlayer.tournament_id == tournament_id)
        )
        return list(result.scalars().all())

    async def _enrollment(
        self,
        session: AsyncSession,
        tournament_id: str,
        player_id: str,
    ) -> TournamentPlayer:
        result = await session.execute(
            select(TournamentPlayer)
            .options(selectinload(TournamentPlayer.player))
            .where(
                TournamentPlayer.tournament_id == tournament_id,
                TournamentPlayer.player_id == player_id,
            )
        )
        tp = result.scalar_one_or_none()
        if tp is None:
            raise player_not_enrolled(tournament_id, player_id)
        return tp

    async def _enrollment_by_id(
        self,
        session: AsyncSession,
        enrollment_id: str,
    ) -> TournamentPlayer:
        result = await session.execute(
            select(TournamentPlayer)
            .options(selectinload(TournamentPlayer.player))
            .where(TournamentPlayer.id == enrollment_id)
        )
        return result.scalar_one()

    async def _bust(self, session: AsyncSession, tournament_id: str, bust_id: str) -> BustEvent:
        bust = await session.get(BustEvent, bust_id)
        if bust is None or bust.tournament_id != tournament_id:
            raise NotFoundError(
                ErrorCode.BUST_NOT_FOUND,
                "Bust not found",
                {"tournamentId": tournament_id, "bustId": bust_id},
            )
        return bust

    async def _season(self, session: AsyncSession, tournament: Tournament) -> Optional[Season]:
        if tournament.season_id is None:
            return None
        return await session.get(Season, tournament.season_id)

    async def _add_rebuy(
        self,
        session: AsyncSession,
        tournament: Tournament,
        tp: TournamentPlayer,
    ) -> None:
        rules = penalty_rules_for(await self._season(session, tournament))
        tp.rebuys_count += 1
        tp.penalty_points = compute_penalty(tp.rebuys_count, rules)

    async def _remove_rebuy(
        self,
        session: AsyncSession,
        tournament: Tournament,
        tp: TournamentPlayer,
    ) -> None:
        rules = penalty_rules_for(await self._season(session, tournament))
        tp.rebuys_count = max(0, tp.rebuys_count - 1)
        tp.penalty_points = compute_penalty(tp.rebuys_count, rules)

    async def _assign_rank(
        self,
        session: AsyncSession,
        tp: TournamentPlayer,
        rank: int,
    ) -> None:
        """Set final_rank only if still unranked in the database.

        The (tournament_id, final_rank) unique constraint catches a concurrent
        elimination that claimed the same rank first.
        """
        try:
            result = await session.execute(
                update(TournamentPlayer)
                .where(
                    TournamentPlayer.id == tp.id,
                    TournamentPlayer.final_rank.is_(None),
                )
                .values(final_rank=rank)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError as e:
            raise ConcurrentModificationError(
                f"Rank {rank} was assigned concurrently",
                details={"playerId": tp.player_id, "rank": rank},
            ) from e
        if result.rowcount != 1:
            raise InvalidStateError(
                "Player has already been eliminated",
                details={"playerId": tp.player_id},
                code=ErrorCode.PLAYER_ALREADY_ELIMINATED,
            )
        set_committed_value(tp, "final_rank", rank)

    async def _finish(
        self,
        session: AsyncSession,
        tournament: Tournament,
        players: list[TournamentPlayer],
        now: datetime,
    ) -> None:
        """Close the tournament: freeze the clock and compute every score."""
        if tournament.is_running:
            tournament.timer_elapsed_seconds += seconds_between(
                tournament.timer_started_at, now
            )
            tournament.timer_paused_at = now
        tournament.status = TournamentStatus.FINISHED.value
        tournament.finished_at = now

        season = await self._season(session, tournament)
        for tp in players:
            apply_points(tp, season)

    async def _emit_rebuy(
        self,
        tournament_id: str,
        event_type: TournamentEventType,
        tp: TournamentPlayer,
        from_bust_id: Optional[str] = None,
        rebuy_type: str = "STANDARD",
    ) -> None:
        await self._event_bus.emit(
            tournament_id,
            event_type,
            {
                "tournamentId": tournament_id,
                "playerId": tp.player_id,
                "playerName": _nickname(tp),
                "rebuysCount": tp.rebuys_count,
                "lightRebuyUsed": tp.light_rebuy_used,
                "penaltyPoints": tp.penalty_points,
                "type": rebuy_type,
                "fromBustId": from_bust_id,
            },
        )

    async def _auto_pause(self, tournament_id: str) -> None:
        """Pause a running clock and schedule its resume, when enabled."""
        if self._timer is None or self._auto_resume_delay <= 0:
            return
        try:
            result = await self._timer.pause(tournament_id)
            if result.changed:
                await self._timer.schedule_auto_resume(
                    tournament_id, self._auto_resume_delay
                )
        except ChampionshipError as e:
            logger.warning(
                "auto_pause_failed",
                tournament_id=tournament_id,
                error_code=e.code,
                error=e.message,
            )
