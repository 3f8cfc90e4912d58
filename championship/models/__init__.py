"""Database models."""

from championship.models.base import Base, TimestampMixin, UUIDMixin
from championship.models.player import Player, TournamentPlayer
from championship.models.removal import BustEvent, Elimination
from championship.models.season import Season
from championship.models.tournament import (
    BlindLevel,
    Tournament,
    TournamentStatus,
    TournamentType,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Season
    "Season",
    # Tournament
    "Tournament",
    "TournamentStatus",
    "TournamentType",
    "BlindLevel",
    # Players
    "Player",
    "TournamentPlayer",
    # Removals
    "Elimination",
    "BustEvent",
]
