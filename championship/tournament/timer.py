"""
Tournament timer controller.

States:
─────────────────────────────────────────────────────────────────────────────────

    Idle ──start──> Running ──pause──> Paused ──resume──> Running
                        └──────── elimination of the last player ──> Finished

    Idle    : timer_started_at and timer_paused_at both null
    Running : timer_started_at set, timer_paused_at null
    Paused  : timer_paused_at set

timer_elapsed_seconds only ever holds the time frozen at pauses. The
running portion is added on read by the clock, so nothing ticks server side
and a process restart loses no time.

─────────────────────────────────────────────────────────────────────────────────
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from championship.logging_config import get_logger
from championship.models.base import utcnow
from championship.models.tournament import Tournament, TournamentStatus
from championship.tournament.clock import (
    as_utc,
    current_blind,
    derive_level,
    seconds_between,
    seconds_remaining,
    sorted_levels,
)
from championship.tournament.event_bus import TournamentEventBus
from championship.tournament.models import (
    TimerResult,
    TimerSnapshot,
    TournamentEventType,
)
from championship.tournament.rebuy_policy import are_rebuys_open
from championship.utils.errors import (
    ErrorCode,
    InvalidStateError,
    ValidationError,
    tournament_not_found,
)

logger = get_logger(__name__)


async def load_tournament(session: AsyncSession, tournament_id: str) -> Tournament:
    """Load a tournament with its blind structure, or raise not-found."""
    result = await session.execute(
        select(Tournament)
        .options(selectinload(Tournament.blind_levels))
        .where(Tournament.id == tournament_id)
    )
    tournament = result.scalar_one_or_none()
    if tournament is None:
        raise tournament_not_found(tournament_id)
    return tournament


def build_snapshot(tournament: Tournament, now: datetime) -> TimerSnapshot:
    """Derive the display state of a tournament's clock at ``now``."""
    levels = list(tournament.blind_levels)
    position = derive_level(
        tournament.timer_started_at,
        tournament.timer_paused_at,
        tournament.timer_elapsed_seconds,
        levels,
        now,
    )
    blind = current_blind(levels, position.level)
    return TimerSnapshot(
        tournament_id=tournament.id,
        status=tournament.status,
        is_running=tournament.is_running,
        is_paused=tournament.is_paused,
        current_level=position.level,
        seconds_into_level=position.seconds_into_level,
        seconds_remaining=seconds_remaining(levels, position),
        total_elapsed_seconds=position.total_elapsed_seconds,
        rebuys_open=are_rebuys_open(
            tournament.status,
            position.level,
            tournament.rebuy_end_level,
            bool(blind is not None and blind.is_break),
        ),
        rebuy_end_level=tournament.rebuy_end_level,
        current_level_data=blind.to_dict() if blind is not None else None,
        timer_started_at=as_utc(tournament.timer_started_at),
        timer_paused_at=as_utc(tournament.timer_paused_at),
    )


class TimerController:
    """
    Start, pause, resume and reset a tournament clock.

    Each operation runs in its own transaction and emits its event only
    after the commit succeeded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: TournamentEventBus,
        now: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._now = now

        # Pending auto-resume tasks by tournament
        self._auto_resume_tasks: Dict[str, asyncio.Task] = {}

    # =========================================================================
    # Commands
    # =========================================================================

    async def start(self, tournament_id: str) -> TimerResult:
        """Start (or restart after a pause) the clock.

        Raises:
            NotFoundError: Unknown tournament
            InvalidStateError: Already running, or tournament finished
            ValidationError: No blind levels, or a non-positive duration
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await load_tournament(session, tournament_id)

                if tournament.status == TournamentStatus.FINISHED.value:
                    raise InvalidStateError(
                        "Tournament is finished",
                        details={"tournamentId": tournament_id},
                        code=ErrorCode.TOURNAMENT_FINISHED,
                    )
                if tournament.is_running:
                    raise InvalidStateError(
                        "Timer is already running",
                        details={"tournamentId": tournament_id},
                        code=ErrorCode.TIMER_ALREADY_RUNNING,
                    )
                if not tournament.blind_levels:
                    raise ValidationError(
                        "Cannot start timer without blind structure",
                        details={"tournamentId": tournament_id},
                        code=ErrorCode.INVALID_BLIND_STRUCTURE,
                    )
                sorted_levels(tournament.blind_levels)

                now = self._now()
                tournament.timer_started_at = now
                tournament.timer_paused_at = None
                tournament.status = TournamentStatus.IN_PROGRESS.value
                tournament.current_level = 1

                snapshot = build_snapshot(tournament, now)

        logger.info("timer_started", tournament_id=tournament_id)
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.TIMER_STARTED,
            {
                "tournamentId": tournament_id,
                "startedAt": now.isoformat(),
                "elapsedSeconds": snapshot.total_elapsed_seconds,
                "currentLevel": snapshot.current_level,
            },
        )
        return TimerResult(changed=True, snapshot=snapshot)

    async def pause(self, tournament_id: str, strict: bool = False) -> TimerResult:
        """Freeze the running portion into timer_elapsed_seconds.

        Args:
            tournament_id: Tournament ID
            strict: Raise instead of returning a no-op result when not running

        Returns:
            TimerResult; changed=False when the clock was not running
        """
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await load_tournament(session, tournament_id)
                now = self._now()

                if not tournament.is_running:
                    if strict:
                        raise InvalidStateError(
                            "Timer is not running",
                            details={"tournamentId": tournament_id},
                            code=ErrorCode.TIMER_NOT_RUNNING,
                        )
                    return TimerResult(
                        changed=False,
                        snapshot=build_snapshot(tournament, now),
                        reason="not running",
                    )

                tournament.timer_elapsed_seconds += seconds_between(
                    tournament.timer_started_at, now
                )
                tournament.timer_paused_at = now

                snapshot = build_snapshot(tournament, now)
                tournament.current_level = snapshot.current_level

        logger.info(
            "timer_paused",
            tournament_id=tournament_id,
            elapsed_seconds=snapshot.total_elapsed_seconds,
        )
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.TIMER_PAUSED,
            {
                "tournamentId": tournament_id,
                "pausedAt": now.isoformat(),
                "elapsedSeconds": snapshot.total_elapsed_seconds,
            },
        )
        return TimerResult(changed=True, snapshot=snapshot)

    async def resume(self, tournament_id: str, strict: bool = False) -> TimerResult:
        """Start a new running segment from a paused clock."""
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await load_tournament(session, tournament_id)
                now = self._now()

                if not tournament.is_paused:
                    if strict:
                        raise InvalidStateError(
                            "Timer is not paused",
                            details={"tournamentId": tournament_id},
                            code=ErrorCode.TIMER_NOT_PAUSED,
                        )
                    return TimerResult(
                        changed=False,
                        snapshot=build_snapshot(tournament, now),
                        reason="not paused",
                    )

                tournament.timer_started_at = now
                tournament.timer_paused_at = None

                snapshot = build_snapshot(tournament, now)

        self._cancel_auto_resume(tournament_id)

        logger.info("timer_resumed", tournament_id=tournament_id)
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.TIMER_RESUMED,
            {"tournamentId": tournament_id, "resumedAt": now.isoformat()},
        )
        return TimerResult(changed=True, snapshot=snapshot)

    async def reset(self, tournament_id: str) -> TimerResult:
        """Return the clock to idle and the tournament to PLANNED."""
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await load_tournament(session, tournament_id)

                if tournament.status == TournamentStatus.FINISHED.value:
                    raise InvalidStateError(
                        "Cannot reset the timer of a finished tournament",
                        details={"tournamentId": tournament_id},
                        code=ErrorCode.TOURNAMENT_FINISHED,
                    )

                tournament.timer_started_at = None
                tournament.timer_paused_at = None
                tournament.timer_elapsed_seconds = 0
                tournament.current_level = 1
                tournament.status = TournamentStatus.PLANNED.value

                snapshot = build_snapshot(tournament, self._now())

        self._cancel_auto_resume(tournament_id)

        logger.info("timer_reset", tournament_id=tournament_id)
        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.TIMER_RESET,
            {"tournamentId": tournament_id},
        )
        return TimerResult(changed=True, snapshot=snapshot)

    # =========================================================================
    # Auto-resume
    # =========================================================================

    async def schedule_auto_resume(
        self,
        tournament_id: str,
        delay_seconds: float,
    ) -> asyncio.Task:
        """Announce a countdown now and resume the clock after it.

        A manual resume (or reset) before the delay cancels the pending
        task; if it already fired, resume() on a running clock is a no-op.
        """
        self._cancel_auto_resume(tournament_id)

        await self._event_bus.emit(
            tournament_id,
            TournamentEventType.TIMER_AUTO_RESUME,
            {"tournamentId": tournament_id, "delaySeconds": delay_seconds},
        )

        task = asyncio.create_task(self._auto_resume(tournament_id, delay_seconds))
        self._auto_resume_tasks[tournament_id] = task
        return task

    async def _auto_resume(self, tournament_id: str, delay_seconds: float) -> None:
        try:
            await asyncio.sleep(delay_seconds)
            # Detach first so resume() does not cancel the task running it
            if self._auto_resume_tasks.get(tournament_id) is asyncio.current_task():
                del self._auto_resume_tasks[tournament_id]
            await self.resume(tournament_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "auto_resume_failed",
                tournament_id=tournament_id,
                error=str(e),
                exc_info=True,
            )

    def _cancel_auto_resume(self, tournament_id: str) -> None:
        task = self._auto_resume_tasks.pop(tournament_id, None)
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def has_pending_auto_resume(self, tournament_id: str) -> bool:
        task = self._auto_resume_tasks.get(tournament_id)
        return task is not None and not task.done()

    async def shutdown(self) -> None:
        """Cancel every pending auto-resume."""
        tasks = list(self._auto_resume_tasks.values())
        self._auto_resume_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_state(
        self,
        tournament_id: str,
        now: Optional[datetime] = None,
    ) -> TimerSnapshot:
        """Read-only snapshot. Writes nothing, takes no locks."""
        async with self._session_factory() as session:
            tournament = await load_tournament(session, tournament_id)
            return build_snapshot(tournament, now or self._now())
