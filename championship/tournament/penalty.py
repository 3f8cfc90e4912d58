"""
Recave penalty resolver.

A season configures rebuy penalties one of two ways:

- Dynamic tiers (``recave_penalty_tiers``): a list of thresholds, the
  highest threshold reached by the rebuy count applies.
- Legacy tiers (``free_rebuys_count`` + ``rebuy_penalty_tier1..3``):
  literal buckets at 3, 4 and 5+ rebuys.

``penalty_rules_for`` is the only place that decides which one applies.
"""

from dataclasses import dataclass
from typing import Any, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from championship.logging_config import get_logger

logger = get_logger(__name__)

# Counts at which the legacy tiers kick in. These do not move with
# free_rebuys_count.
LEGACY_TIER1_AT = 3
LEGACY_TIER2_AT = 4
LEGACY_TIER3_FROM = 5


class RecavePenaltyTier(BaseModel):
    """One dynamic threshold. Accepts camelCase keys as stored in JSON."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_rebuys: int = Field(
        validation_alias=AliasChoices("from_rebuys", "fromRebuys", "fromRecaves"),
        serialization_alias="fromRebuys",
    )
    penalty_points: int = Field(
        validation_alias=AliasChoices("penalty_points", "penaltyPoints"),
        serialization_alias="penaltyPoints",
    )


@dataclass(frozen=True)
class DynamicPenaltyRules:
    tiers: tuple[RecavePenaltyTier, ...]


@dataclass(frozen=True)
class LegacyPenaltyRules:
    free_rebuys_count: int = 2
    tier1: int = -50
    tier2: int = -100
    tier3: int = -150


PenaltyRules = Union[DynamicPenaltyRules, LegacyPenaltyRules]

NO_PENALTY = DynamicPenaltyRules(tiers=())


def parse_tiers(raw: Sequence[Any]) -> tuple[RecavePenaltyTier, ...]:
    """Parse stored tier dicts. Raises pydantic's ValidationError on bad input."""
    return tuple(
        tier if isinstance(tier, RecavePenaltyTier) else RecavePenaltyTier.model_validate(tier)
        for tier in raw
    )


def compute_penalty(rebuys_count: int, rules: PenaltyRules) -> int:
    """Penalty (zero or negative) for a player's rebuy count."""
    if isinstance(rules, DynamicPenaltyRules):
        applicable = [t for t in rules.tiers if t.from_rebuys <= rebuys_count]
        if not applicable:
            return 0
        return max(applicable, key=lambda t: t.from_rebuys).penalty_points

    if rebuys_count <= rules.free_rebuys_count:
        return 0
    if rebuys_count == LEGACY_TIER1_AT:
        return rules.tier1
    if rebuys_count == LEGACY_TIER2_AT:
        return rules.tier2
    if rebuys_count >= LEGACY_TIER3_FROM:
        return rules.tier3
    return 0


def penalty_rules_for(season) -> PenaltyRules:
    """Pick the rules a season actually uses.

    A well-formed non-empty ``recave_penalty_tiers`` list wins. A malformed
    one is logged and the legacy fields apply. No season means no penalty.
    """
    if season is None:
        return NO_PENALTY

    raw = getattr(season, "recave_penalty_tiers", None)
    if isinstance(raw, (list, tuple)) and raw:
        try:
            tiers = parse_tiers(raw)
        except PydanticValidationError as e:
            logger.warning(
                "invalid_recave_penalty_tiers",
                season_id=getattr(season, "id", None),
                error=str(e),
            )
        else:
            return DynamicPenaltyRules(tiers=tiers)

    if season.free_rebuys_count != 2:
        logger.warning(
            "legacy_penalty_free_rebuys_mismatch",
            season_id=getattr(season, "id", None),
            free_rebuys_count=season.free_rebuys_count,
        )
    return LegacyPenaltyRules(
        free_rebuys_count=season.free_rebuys_count,
        tier1=season.rebuy_penalty_tier1,
        tier2=season.rebuy_penalty_tier2,
        tier3=season.rebuy_penalty_tier3,
    )


def validate_tiers(
    free_rebuys_count: int,
    tiers: Sequence[Union[RecavePenaltyTier, dict]],
) -> list[str]:
    """Check a dynamic tier list. Returns error messages, empty when valid."""
    errors: list[str] = []
    if not tiers:
        return ["At least one penalty tier is required"]

    try:
        parsed = parse_tiers(tiers)
    except PydanticValidationError as e:
        return [f"Malformed penalty tier: {err['msg']}" for err in e.errors()]

    seen: set[int] = set()
    for tier in parsed:
        if tier.from_rebuys < 1:
            errors.append(f"Tier threshold must be at least 1 (got {tier.from_rebuys})")
        if tier.from_rebuys <= free_rebuys_count:
            errors.append(
                f"Tier threshold {tier.from_rebuys} must exceed the "
                f"{free_rebuys_count} free rebuys"
            )
        if tier.penalty_points > 0:
            errors.append(
                f"Penalty for {tier.from_rebuys} rebuys must be zero or negative"
            )
        if tier.from_rebuys in seen:
            errors.append(f"Duplicate tier threshold {tier.from_rebuys}")
        seen.add(tier.from_rebuys)

    return errors


def penalty_preview(rules: PenaltyRules, max_rebuys: int = 7) -> list[dict[str, int]]:
    """Penalty for every rebuy count from 0 to max_rebuys."""
    return [
        {"rebuys": n, "penalty": compute_penalty(n, rules)}
        for n in range(max_rebuys + 1)
    ]


def describe_rules(rules: PenaltyRules) -> dict[str, Any]:
    if isinstance(rules, DynamicPenaltyRules):
        return {
            "type": "DYNAMIC",
            "tiers": [t.model_dump(by_alias=True) for t in rules.tiers],
        }
    return {
        "type": "LEGACY",
        "freeRebuys": rules.free_rebuys_count,
        "tier1": rules.tier1,
        "tier2": rules.tier2,
        "tier3": rules.tier3,
    }
