from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class Tier(StrEnum):
    """Subscription levels, cheapest first."""

    STARTER = "starter"
    COFFEE = "coffee"
    GROWTH = "growth"
    SCALE = "scale"


class TierFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    html_extraction: bool = True
    ai_analysis: bool = False
    file_history: bool = False
    priority_support: bool = False
    smart_caching: bool = True
    white_label: bool = False
    api_access: bool = False


class TierPolicy(BaseModel):
    """Static limits for one tier. Never mutated at runtime."""

    model_config = ConfigDict(frozen=True)

    tier: Tier
    daily_analyses: int
    max_pages_per_analysis: int
    ai_pages_limit: int
    cache_duration_days: int
    features: TierFeatures


TIER_POLICIES: dict[Tier, TierPolicy] = {
    Tier.STARTER: TierPolicy(
        tier=Tier.STARTER,
        daily_analyses=1,
        max_pages_per_analysis=20,
        ai_pages_limit=0,
        cache_duration_days=30,
        features=TierFeatures(),
    ),
    Tier.COFFEE: TierPolicy(
        tier=Tier.COFFEE,
        daily_analyses=999,  # Credit-based rather than a real daily cap
        max_pages_per_analysis=200,
        ai_pages_limit=200,
        cache_duration_days=7,
        features=TierFeatures(ai_analysis=True),
    ),
    Tier.GROWTH: TierPolicy(
        tier=Tier.GROWTH,
        daily_analyses=999,
        max_pages_per_analysis=1000,
        ai_pages_limit=200,
        cache_duration_days=7,
        features=TierFeatures(ai_analysis=True, file_history=True, priority_support=True),
    ),
    Tier.SCALE: TierPolicy(
        tier=Tier.SCALE,
        daily_analyses=999,
        max_pages_per_analysis=999_999,
        ai_pages_limit=999_999,
        cache_duration_days=3,
        features=TierFeatures(
            ai_analysis=True,
            file_history=True,
            priority_support=True,
            white_label=True,
            api_access=True,
        ),
    ),
}

_UPGRADE_PATH: tuple[Tier, ...] = (Tier.STARTER, Tier.COFFEE, Tier.GROWTH, Tier.SCALE)


def get_policy(tier: Tier) -> TierPolicy:
    return TIER_POLICIES[tier]


def next_tier(tier: Tier) -> Tier | None:
    """Return the tier directly above ``tier``, or ``None`` at the top."""
    idx = _UPGRADE_PATH.index(tier)
    if idx + 1 < len(_UPGRADE_PATH):
        return _UPGRADE_PATH[idx + 1]
    return None
