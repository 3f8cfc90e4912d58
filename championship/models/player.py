"""Player and tournament enrollment models."""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from championship.models.base import Base, TimestampMixin, UUIDMixin


class Player(Base, UUIDMixin, TimestampMixin):
    """Championship participant."""

    __tablename__ = "players"

    nickname: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Player {self.nickname}>"


class TournamentPlayer(Base, UUIDMixin, TimestampMixin):
    """One player's enrollment in one tournament.

    The four point fields are a cache written by the scoring resolver;
    total_points = rank_points + elimination_points + bonus_points + penalty_points.
    """

    __tablename__ = "tournament_players"
    __table_args__ = (
        UniqueConstraint("tournament_id", "player_id", name="uq_tournament_player"),
        UniqueConstraint("tournament_id", "final_rank", name="uq_tournament_final_rank"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Rebuys
    rebuys_count: Mapped[int] = mapped_column(default=0, nullable=False)
    light_rebuy_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    penalty_points: Mapped[int] = mapped_column(default=0, nullable=False)

    # Kills
    eliminations_count: Mapped[int] = mapped_column(default=0, nullable=False)
    bust_eliminations: Mapped[int] = mapped_column(default=0, nullable=False)
    leader_kills: Mapped[int] = mapped_column(default=0, nullable=False)

    final_rank: Mapped[Optional[int]] = mapped_column(nullable=True)

    # Derived scoring cache
    rank_points: Mapped[int] = mapped_column(default=0, nullable=False)
    elimination_points: Mapped[int] = mapped_column(default=0, nullable=False)
    bonus_points: Mapped[int] = mapped_column(default=0, nullable=False)
    total_points: Mapped[int] = mapped_column(default=0, nullable=False)

    # Relationships
    tournament: Mapped["Tournament"] = relationship(
        "Tournament",
        back_populates="tournament_players",
    )
    player: Mapped["Player"] = relationship("Player")

    def __repr__(self) -> str:
        return f"<TournamentPlayer {self.player_id[:8]}... rank={self.final_rank}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "player_id": self.player_id,
            "rebuys_count": self.rebuys_count,
            "light_rebuy_used": self.light_rebuy_used,
            "penalty_points": self.penalty_points,
            "eliminations_count": self.eliminations_count,
            "bust_eliminations": self.bust_eliminations,
            "leader_kills": self.leader_kills,
            "final_rank": self.final_rank,
            "rank_points": self.rank_points,
            "elimination_points": self.elimination_points,
            "bonus_points": self.bonus_points,
            "total_points": self.total_points,
        }


from championship.models.tournament import Tournament  # noqa: E402
