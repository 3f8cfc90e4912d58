"""
Tournament API Router.

Thin HTTP layer over the timer, the removal ledger and the leaderboard.
Domain errors propagate to the ChampionshipError handler in main.py.
"""

from typing import Annotated, Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from championship.config import Settings
from championship.models.season import Season
from championship.services.leaderboard import LeaderboardService
from championship.tournament.ledger import RemovalLedger
from championship.tournament.penalty import (
    describe_rules,
    penalty_preview,
    penalty_rules_for,
    validate_tiers,
)
from championship.tournament.timer import TimerController
from championship.utils.errors import season_not_found


# =============================================================================
# Request Models
# =============================================================================


class BustRequest(BaseModel):
    """Lost stack during the rebuy period."""

    eliminated_id: str = Field(..., min_length=1)
    killer_id: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=1)
    with_recave: bool = False


class EliminationRequest(BaseModel):
    """Permanent elimination."""

    eliminated_id: str = Field(..., min_length=1)
    eliminator_id: str = Field(..., min_length=1)
    rank: Optional[int] = Field(default=None, ge=1)
    level: Optional[int] = Field(default=None, ge=1)
    is_leader_kill: Optional[bool] = None


class RebuyRequest(BaseModel):
    """Standalone rebuy."""

    player_id: str = Field(..., min_length=1)
    type: Literal["STANDARD", "LIGHT"] = "STANDARD"


# =============================================================================
# Dependencies
# =============================================================================


def get_timer(request: Request) -> TimerController:
    return request.app.state.timer


def get_ledger(request: Request) -> RemovalLedger:
    return request.app.state.ledger


def get_leaderboard(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


Timer = Annotated[TimerController, Depends(get_timer)]
Ledger = Annotated[RemovalLedger, Depends(get_ledger)]
Leaderboard = Annotated[LeaderboardService, Depends(get_leaderboard)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


# =============================================================================
# API Router
# =============================================================================

router = APIRouter(tags=["Tournament"])


# =============================================================================
# Timer Endpoints
# =============================================================================


@router.get("/tournaments/{tournament_id}/timer")
async def get_timer_state(tournament_id: str, timer: Timer) -> Dict[str, Any]:
    """Derived clock state: level, seconds remaining, rebuy window."""
    snapshot = await timer.get_state(tournament_id)
    return snapshot.to_dict()


@router.post("/tournaments/{tournament_id}/timer/start")
async def start_timer(
    tournament_id: str,
    timer: Timer,
    leaderboard: Leaderboard,
) -> Dict[str, Any]:
    """Start the clock and remember the current season leader."""
    result = await timer.start(tournament_id)
    await leaderboard.capture_season_leader(tournament_id)
    return result.to_dict()


@router.post("/tournaments/{tournament_id}/timer/pause")
async def pause_timer(
    tournament_id: str,
    timer: Timer,
    strict: bool = Query(default=False),
) -> Dict[str, Any]:
    result = await timer.pause(tournament_id, strict=strict)
    return result.to_dict()


@router.post("/tournaments/{tournament_id}/timer/resume")
async def resume_timer(
    tournament_id: str,
    timer: Timer,
    strict: bool = Query(default=False),
) -> Dict[str, Any]:
    result = await timer.resume(tournament_id, strict=strict)
    return result.to_dict()


@router.post("/tournaments/{tournament_id}/timer/reset")
async def reset_timer(tournament_id: str, timer: Timer) -> Dict[str, Any]:
    result = await timer.reset(tournament_id)
    return result.to_dict()


# =============================================================================
# Bust Endpoints
# =============================================================================


@router.post("/tournaments/{tournament_id}/busts", status_code=status.HTTP_201_CREATED)
async def record_bust(
    tournament_id: str,
    request: BustRequest,
    ledger: Ledger,
) -> Dict[str, Any]:
    bust = await ledger.record_bust(
        tournament_id,
        request.eliminated_id,
        killer_player_id=request.killer_id,
        level=request.level,
        with_recave=request.with_recave,
    )
    return {"success": True, "bust": bust.to_dict()}


@router.delete("/tournaments/{tournament_id}/busts/last")
async def undo_last_bust(tournament_id: str, ledger: Ledger) -> Dict[str, Any]:
    bust = await ledger.undo_last_bust(tournament_id)
    return {"success": True, "bust": bust.to_dict()}


@router.post(
    "/tournaments/{tournament_id}/busts/{bust_id}/recave",
    status_code=status.HTTP_201_CREATED,
)
async def apply_recave(
    tournament_id: str,
    bust_id: str,
    ledger: Ledger,
) -> Dict[str, Any]:
    bust = await ledger.apply_recave(tournament_id, bust_id)
    return {"success": True, "bust": bust.to_dict()}


@router.delete("/tournaments/{tournament_id}/busts/{bust_id}/recave")
async def cancel_recave(
    tournament_id: str,
    bust_id: str,
    ledger: Ledger,
) -> Dict[str, Any]:
    bust = await ledger.cancel_recave(tournament_id, bust_id)
    return {"success": True, "bust": bust.to_dict()}


# =============================================================================
# Elimination Endpoints
# =============================================================================


@router.post(
    "/tournaments/{tournament_id}/eliminations",
    status_code=status.HTTP_201_CREATED,
)
async def record_elimination(
    tournament_id: str,
    request: EliminationRequest,
    ledger: Ledger,
) -> Dict[str, Any]:
    outcome = await ledger.record_elimination(
        tournament_id,
        request.eliminated_id,
        request.eliminator_id,
        rank=request.rank,
        level=request.level,
        is_leader_kill=request.is_leader_kill,
    )
    return {"success": True, **outcome.to_dict()}


@router.delete("/tournaments/{tournament_id}/eliminations/last")
async def undo_last_elimination(
    tournament_id: str,
    ledger: Ledger,
    elimination_id: Optional[str] = Query(default=None),
) -> Dict[str, Any]:
    elimination = await ledger.undo_last_elimination(
        tournament_id, elimination_id=elimination_id
    )
    return {"success": True, "elimination": elimination.to_dict()}


# =============================================================================
# Rebuy Endpoints
# =============================================================================


@router.post("/tournaments/{tournament_id}/rebuys", status_code=status.HTTP_201_CREATED)
async def record_rebuy(
    tournament_id: str,
    request: RebuyRequest,
    ledger: Ledger,
) -> Dict[str, Any]:
    tp = await ledger.record_rebuy(
        tournament_id,
        request.player_id,
        light=request.type == "LIGHT",
    )
    return {"success": True, "player": tp.to_dict()}


@router.delete("/tournaments/{tournament_id}/rebuys/last")
async def undo_last_rebuy(tournament_id: str, ledger: Ledger) -> Dict[str, Any]:
    tp = await ledger.undo_last_rebuy(tournament_id)
    return {"success": True, "player": tp.to_dict()}


# =============================================================================
# Season Endpoints
# =============================================================================


@router.get("/seasons/{season_id}/leaderboard")
async def get_leaderboard(season_id: str, leaderboard: Leaderboard) -> Dict[str, Any]:
    result = await leaderboard.compute_leaderboard(season_id)
    return result.to_dict()


@router.post("/seasons/{season_id}/recalculate-leaderboard")
async def recalculate_leaderboard(
    season_id: str,
    leaderboard: Leaderboard,
) -> Dict[str, Any]:
    summary = await leaderboard.recalculate_season(season_id)
    return {"success": True, **summary.to_dict()}


@router.get("/seasons/{season_id}/penalty-preview")
async def get_penalty_preview(
    season_id: str,
    session_factory: SessionFactory,
    settings: AppSettings,
) -> Dict[str, Any]:
    """Penalty applied at each rebuy count under the season's active rules."""
    async with session_factory() as session:
        season = await session.get(Season, season_id)
    if season is None:
        raise season_not_found(season_id)

    rules = penalty_rules_for(season)
    tier_errors = []
    if season.recave_penalty_tiers:
        tier_errors = validate_tiers(season.free_rebuys_count, season.recave_penalty_tiers)
    return {
        "rules": describe_rules(rules),
        "preview": penalty_preview(rules, settings.penalty_preview_max_rebuys),
        "tier_errors": tier_errors,
    }
