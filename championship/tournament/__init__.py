"""
Live tournament core.

This module provides:
- Blind-level clock derived from persisted timer state
- Rebuy window policy and recave penalties
- Scoring rules for finished tournaments
- Timer controller with auto-resume
- Removal ledger for busts, eliminations and rebuys, with LIFO undo
- Event bus with optional Redis Stream mirroring
"""

from .models import (
    LevelPosition,
    TimerResult,
    TimerSnapshot,
    TournamentEvent,
    TournamentEventType,
)
from .clock import derive_level
from .rebuy_policy import are_rebuys_open
from .penalty import compute_penalty, penalty_rules_for
from .scoring import PointBreakdown, apply_points, rank_points, total_points_for
from .event_bus import TournamentEventBus
from .timer import TimerController
from .ledger import EliminationOutcome, RemovalLedger

__all__ = [
    "LevelPosition",
    "TimerResult",
    "TimerSnapshot",
    "TournamentEvent",
    "TournamentEventType",
    "derive_level",
    "are_rebuys_open",
    "compute_penalty",
    "penalty_rules_for",
    "PointBreakdown",
    "apply_points",
    "rank_points",
    "total_points_for",
    "TournamentEventBus",
    "TimerController",
    "EliminationOutcome",
    "RemovalLedger",
]
