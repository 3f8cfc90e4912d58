"""Removal events: permanent eliminations and reversible busts.

Both tables are append-mostly logs. Only the newest row of each kind in a
tournament may be deleted, and deleting it reverses its counter effects.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from championship.models.base import Base, TimestampMixin, UUIDMixin


class Elimination(Base, UUIDMixin, TimestampMixin):
    """Permanent removal of a player, with the finishing rank assigned."""

    __tablename__ = "eliminations"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    eliminator_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournament_players.id", ondelete="CASCADE"),
        nullable=False,
    )
    eliminated_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournament_players.id", ondelete="CASCADE"),
        nullable=False,
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    is_leader_kill: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    eliminator: Mapped["TournamentPlayer"] = relationship(
        "TournamentPlayer",
        foreign_keys=[eliminator_id],
    )
    eliminated: Mapped["TournamentPlayer"] = relationship(
        "TournamentPlayer",
        foreign_keys=[eliminated_id],
    )

    def __repr__(self) -> str:
        return f"<Elimination rank={self.rank} level={self.level}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "eliminator_id": self.eliminator_id,
            "eliminated_id": self.eliminated_id,
            "rank": self.rank,
            "level": self.level,
            "is_leader_kill": self.is_leader_kill,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class BustEvent(Base, UUIDMixin, TimestampMixin):
    """Lost stack during the rebuy window. Does not assign a rank."""

    __tablename__ = "bust_events"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    eliminated_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournament_players.id", ondelete="CASCADE"),
        nullable=False,
    )
    killer_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("tournament_players.id", ondelete="SET NULL"),
        nullable=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    recave_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    eliminated: Mapped["TournamentPlayer"] = relationship(
        "TournamentPlayer",
        foreign_keys=[eliminated_id],
    )
    killer: Mapped[Optional["TournamentPlayer"]] = relationship(
        "TournamentPlayer",
        foreign_keys=[killer_id],
    )

    def __repr__(self) -> str:
        return f"<BustEvent level={self.level} recave={self.recave_applied}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "eliminated_id": self.eliminated_id,
            "killer_id": self.killer_id,
            "level": self.level,
            "recave_applied": self.recave_applied,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


from championship.models.player import TournamentPlayer  # noqa: E402
