"""
Scoring rules resolver.

Derives the four cached point fields of an enrollment from its counters
and the season's configuration. Nothing here reads the stored point fields
except ``apply_points``, which compares before writing.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from championship.logging_config import get_logger

logger = get_logger(__name__)

# Rank 11-15 use points_eleventh, 16+ use points_sixteenth
LEGACY_RANK_FIELDS = {
    1: "points_first",
    2: "points_second",
    3: "points_third",
    4: "points_fourth",
    5: "points_fifth",
    6: "points_sixth",
    7: "points_seventh",
    8: "points_eighth",
    9: "points_ninth",
    10: "points_tenth",
}


class DetailedPointsConfig(BaseModel):
    """Per-rank points table stored on a season."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = "DETAILED"
    by_rank: dict[str, int] = Field(default_factory=dict, alias="byRank")
    rank19_plus: int = Field(default=0, alias="rank19Plus")

    def points_for(self, rank: int) -> int:
        return self.by_rank.get(str(rank), self.rank19_plus)


@dataclass(frozen=True)
class PointBreakdown:
    rank_points: int = 0
    elimination_points: int = 0
    bonus_points: int = 0
    total_points: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "rank_points": self.rank_points,
            "elimination_points": self.elimination_points,
            "bonus_points": self.bonus_points,
            "total_points": self.total_points,
        }


ZERO_POINTS = PointBreakdown()


def detailed_config(season) -> Optional[DetailedPointsConfig]:
    raw = getattr(season, "detailed_points_config", None)
    if not raw:
        return None
    try:
        return DetailedPointsConfig.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(
            "invalid_detailed_points_config",
            season_id=getattr(season, "id", None),
            error=str(e),
        )
        return None


def rank_points(final_rank: int, season) -> int:
    """Points awarded for a finishing rank.

    The detailed per-rank table wins when the season has one. Otherwise
    ranks 1-10 are explicit, 11-15 share points_eleventh and everything
    beyond gets points_sixteenth.
    """
    config = detailed_config(season)
    if config is not None:
        return config.points_for(final_rank)

    field_name = LEGACY_RANK_FIELDS.get(final_rank)
    if field_name is not None:
        return getattr(season, field_name)
    if 11 <= final_rank <= 15:
        return season.points_eleventh
    return season.points_sixteenth


def total_points_for(tp: Any, season) -> PointBreakdown:
    """Compute the point breakdown for one enrollment.

    Args:
        tp: Enrollment with final_rank, counters and penalty_points
        season: Season configuration

    Returns:
        PointBreakdown; all zeros while the player has no final rank
    """
    if tp.final_rank is None or season is None:
        return ZERO_POINTS

    ranked = rank_points(tp.final_rank, season)
    elimination = (
        tp.eliminations_count * season.elimination_points
        + tp.bust_eliminations * season.bust_elimination_bonus
    )
    bonus = tp.leader_kills * season.leader_killer_bonus
    return PointBreakdown(
        rank_points=ranked,
        elimination_points=elimination,
        bonus_points=bonus,
        total_points=ranked + elimination + bonus + (tp.penalty_points or 0),
    )


def apply_points(tp: Any, season) -> bool:
    """Write the derived point fields onto an enrollment.

    Returns:
        True if any field changed
    """
    points = total_points_for(tp, season)
    changed = False
    for name, value in points.to_dict().items():
        if getattr(tp, name) != value:
            setattr(tp, name, value)
            changed = True
    return changed
