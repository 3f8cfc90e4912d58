"""Domain exception classes.

Every tournament/season operation either succeeds or raises one of these.
Callers map them to their own transport representation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for championship errors."""

    # Lookup
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    SEASON_NOT_FOUND = "SEASON_NOT_FOUND"
    PLAYER_NOT_ENROLLED = "PLAYER_NOT_ENROLLED"
    BUST_NOT_FOUND = "BUST_NOT_FOUND"

    # Validation
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_BLIND_STRUCTURE = "INVALID_BLIND_STRUCTURE"

    # State conflicts
    INVALID_STATE = "INVALID_STATE"
    TIMER_ALREADY_RUNNING = "TIMER_ALREADY_RUNNING"
    TIMER_NOT_RUNNING = "TIMER_NOT_RUNNING"
    TIMER_NOT_PAUSED = "TIMER_NOT_PAUSED"
    TOURNAMENT_FINISHED = "TOURNAMENT_FINISHED"
    TOURNAMENT_NOT_IN_PROGRESS = "TOURNAMENT_NOT_IN_PROGRESS"
    REBUYS_CLOSED = "REBUYS_CLOSED"
    PLAYER_ALREADY_ELIMINATED = "PLAYER_ALREADY_ELIMINATED"
    RANK_UNAVAILABLE = "RANK_UNAVAILABLE"
    NOT_MOST_RECENT = "NOT_MOST_RECENT"

    # Undo
    NOTHING_TO_UNDO = "NOTHING_TO_UNDO"

    # Concurrency
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


class ChampionshipError(Exception):
    """Base exception for championship domain errors.

    Attributes:
        code: Error code for programmatic handling
        message: Human readable error message
        details: Additional error details
        recoverable: Whether the caller can retry or correct the request
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "errorCode": self.code,
            "errorMessage": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class NotFoundError(ChampionshipError):
    """Raised when a tournament, season, enrollment or event does not exist."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class ValidationError(ChampionshipError):
    """Raised for malformed input, before any write happens."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.INVALID_REQUEST,
    ):
        super().__init__(code=code, message=message, details=details)


class InvalidStateError(ChampionshipError):
    """Raised when the operation is not allowed in the current state."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.INVALID_STATE,
    ):
        super().__init__(code=code, message=message, details=details)


class NothingToUndoError(ChampionshipError):
    """Raised when an undo finds no event of its kind."""

    def __init__(self, what: str, tournament_id: str):
        super().__init__(
            code=ErrorCode.NOTHING_TO_UNDO,
            message=f"No {what} to undo",
            details={"tournamentId": tournament_id},
        )


class ConcurrentModificationError(ChampionshipError):
    """Raised when an optimistic re-check fails. Safe to retry."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.CONCURRENT_MODIFICATION,
            message=message,
            details=details,
            recoverable=True,
        )


def tournament_not_found(tournament_id: str) -> NotFoundError:
    return NotFoundError(
        ErrorCode.TOURNAMENT_NOT_FOUND,
        f"Tournament not found: {tournament_id}",
        {"tournamentId": tournament_id},
    )


def season_not_found(season_id: str) -> NotFoundError:
    return NotFoundError(
        ErrorCode.SEASON_NOT_FOUND,
        f"Season not found: {season_id}",
        {"seasonId": season_id},
    )


def player_not_enrolled(tournament_id: str, player_id: str) -> NotFoundError:
    return NotFoundError(
        ErrorCode.PLAYER_NOT_ENROLLED,
        "Player is not enrolled in this tournament",
        {"tournamentId": tournament_id, "playerId": player_id},
    )
