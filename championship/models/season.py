"""Season model."""

from typing import Any, Optional

from sqlalchemy import JSON, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from championship.models.base import Base, TimestampMixin, UUIDMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Season(Base, UUIDMixin, TimestampMixin):
    """Championship season: scoring configuration and aggregation window.

    Seasons are authored externally; the tournament core only reads them.
    """

    __tablename__ = "seasons"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Legacy rank points table
    points_first: Mapped[int] = mapped_column(default=1500)
    points_second: Mapped[int] = mapped_column(default=1000)
    points_third: Mapped[int] = mapped_column(default=700)
    points_fourth: Mapped[int] = mapped_column(default=500)
    points_fifth: Mapped[int] = mapped_column(default=400)
    points_sixth: Mapped[int] = mapped_column(default=300)
    points_seventh: Mapped[int] = mapped_column(default=200)
    points_eighth: Mapped[int] = mapped_column(default=200)
    points_ninth: Mapped[int] = mapped_column(default=200)
    points_tenth: Mapped[int] = mapped_column(default=200)
    points_eleventh: Mapped[int] = mapped_column(default=100)  # ranks 11-15
    points_sixteenth: Mapped[int] = mapped_column(default=50)  # ranks 16+

    detailed_points_config: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
    )
    """
    Detailed points structure (wins over the legacy table when present):
    {
        "type": "DETAILED",
        "byRank": {"1": 1500, "2": 1000, ...},
        "rank19Plus": 0
    }
    """

    # Per-occurrence multipliers
    elimination_points: Mapped[int] = mapped_column(default=50)
    bust_elimination_bonus: Mapped[int] = mapped_column(default=25)
    leader_killer_bonus: Mapped[int] = mapped_column(default=25)

    # Legacy rebuy penalty tiers
    free_rebuys_count: Mapped[int] = mapped_column(default=2)
    rebuy_penalty_tier1: Mapped[int] = mapped_column(default=-50)
    rebuy_penalty_tier2: Mapped[int] = mapped_column(default=-100)
    rebuy_penalty_tier3: Mapped[int] = mapped_column(default=-150)

    recave_penalty_tiers: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSONType,
        nullable=True,
    )
    """
    Dynamic penalty thresholds (win over the legacy tiers when present):
    [{"fromRebuys": 3, "penaltyPoints": -50}, {"fromRebuys": 5, "penaltyPoints": -120}]
    """

    # Aggregation window
    total_tournaments_count: Mapped[Optional[int]] = mapped_column(nullable=True)
    best_tournaments_count: Mapped[Optional[int]] = mapped_column(nullable=True)

    tournaments: Mapped[list["Tournament"]] = relationship(
        "Tournament",
        back_populates="season",
    )

    def __repr__(self) -> str:
        return f"<Season {self.name} ({self.year})>"


from championship.models.tournament import Tournament  # noqa: E402
