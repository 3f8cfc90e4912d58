"""
Tournament read models and event definitions.

Immutable value objects returned by the clock, timer and ledger.
Persistent state lives in championship.models; nothing here touches the DB.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4
import json


class TournamentEventType(str, Enum):
    """Event names broadcast to observers of a tournament."""

    # Clock
    TIMER_STARTED = "timer:started"
    TIMER_PAUSED = "timer:paused"
    TIMER_RESUMED = "timer:resumed"
    TIMER_RESET = "timer:reset"
    TIMER_AUTO_RESUME = "tournament:timer-auto-resume"

    # Busts (rebuy window)
    BUST_RECORDED = "bust:player_busted"
    BUST_CANCELLED = "bust:cancelled"

    # Rebuys
    REBUY_APPLIED = "rebuy:applied"
    REBUY_CANCELLED = "rebuy:cancelled"

    # Eliminations
    ELIMINATION_RECORDED = "elimination:player_out"
    ELIMINATION_CANCELLED = "elimination:cancelled"
    TOURNAMENT_COMPLETED = "elimination:tournament_complete"

    # Standings
    LEADERBOARD_UPDATED = "leaderboard:updated"


@dataclass(frozen=True)
class TournamentEvent:
    """
    Tournament event for the event bus.

    All ledger and timer mutations emit one of these after commit.
    """

    event_type: TournamentEventType
    tournament_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass(frozen=True)
class LevelPosition:
    """Where the clock is: level number and offset into it."""

    level: int
    seconds_into_level: int
    total_elapsed_seconds: int


@dataclass(frozen=True)
class TimerSnapshot:
    """Lock-free view of a tournament clock."""

    tournament_id: str
    status: str
    is_running: bool
    is_paused: bool
    current_level: int
    seconds_into_level: int
    seconds_remaining: int
    total_elapsed_seconds: int
    rebuys_open: bool
    rebuy_end_level: Optional[int] = None
    current_level_data: Optional[Dict[str, Any]] = None
    timer_started_at: Optional[datetime] = None
    timer_paused_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "status": self.status,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "current_level": self.current_level,
            "current_level_data": self.current_level_data,
            "seconds_into_level": self.seconds_into_level,
            "seconds_remaining": self.seconds_remaining,
            "total_elapsed_seconds": self.total_elapsed_seconds,
            "rebuys_open": self.rebuys_open,
            "rebuy_end_level": self.rebuy_end_level,
            "timer_started_at": self.timer_started_at.isoformat()
            if self.timer_started_at
            else None,
            "timer_paused_at": self.timer_paused_at.isoformat()
            if self.timer_paused_at
            else None,
        }


@dataclass(frozen=True)
class TimerResult:
    """Outcome of a timer operation. changed=False means it was a no-op."""

    changed: bool
    snapshot: TimerSnapshot
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changed": self.changed,
            "reason": self.reason,
            "timer": self.snapshot.to_dict(),
        }
