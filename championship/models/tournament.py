"""Tournament and blind structure models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from championship.models.base import Base, TimestampMixin, UUIDMixin, utcnow


class TournamentStatus(str, Enum):
    """Tournament lifecycle states."""

    PLANNED = "PLANNED"
    REGISTRATION = "REGISTRATION"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class TournamentType(str, Enum):
    """Only championship events count toward the season leaderboard."""

    CHAMPIONSHIP = "CHAMPIONSHIP"
    CASUAL = "CASUAL"


class Tournament(Base, UUIDMixin, TimestampMixin):
    """One run of a single event."""

    __tablename__ = "tournaments"

    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    season_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("seasons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        default=TournamentType.CHAMPIONSHIP.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.PLANNED.value,
        nullable=False,
        index=True,
    )

    # Clock state. Elapsed seconds are frozen at each pause; the running
    # portion is derived on read from timer_started_at.
    timer_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    timer_paused_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    timer_elapsed_seconds: Mapped[int] = mapped_column(default=0, nullable=False)

    # Cache hint only, the clock derives the real level
    current_level: Mapped[int] = mapped_column(default=1, nullable=False)

    # Rebuys
    rebuy_end_level: Mapped[Optional[int]] = mapped_column(nullable=True)
    light_rebuy_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Player id of the season leader when the event started (leader kills)
    season_leader_at_start_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    season: Mapped[Optional["Season"]] = relationship(
        "Season",
        back_populates="tournaments",
    )
    blind_levels: Mapped[list["BlindLevel"]] = relationship(
        "BlindLevel",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="BlindLevel.level",
    )
    tournament_players: Mapped[list["TournamentPlayer"]] = relationship(
        "TournamentPlayer",
        back_populates="tournament",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Tournament {self.id[:8]}... ({self.status})>"

    @property
    def is_running(self) -> bool:
        return self.timer_started_at is not None and self.timer_paused_at is None

    @property
    def is_paused(self) -> bool:
        return self.timer_paused_at is not None


class BlindLevel(Base, UUIDMixin):
    """One step of a tournament's blind structure."""

    __tablename__ = "blind_levels"
    __table_args__ = (
        UniqueConstraint("tournament_id", "level", name="uq_blind_level_tournament_level"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    small_blind: Mapped[int] = mapped_column(default=0, nullable=False)
    big_blind: Mapped[int] = mapped_column(default=0, nullable=False)
    ante: Mapped[int] = mapped_column(default=0, nullable=False)
    duration: Mapped[int] = mapped_column(nullable=False)  # minutes
    is_break: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    tournament: Mapped["Tournament"] = relationship(
        "Tournament",
        back_populates="blind_levels",
    )

    def __repr__(self) -> str:
        kind = "break" if self.is_break else f"{self.small_blind}/{self.big_blind}"
        return f"<BlindLevel {self.level} {kind} {self.duration}m>"

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "ante": self.ante,
            "duration": self.duration,
            "is_break": self.is_break,
        }


from championship.models.season import Season  # noqa: E402
from championship.models.player import TournamentPlayer  # noqa: E402
