from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from pagesift.models.cache import CacheStats
from pagesift.models.pages import DiscoveredPage
from pagesift.models.pipeline import RunMetrics
from pagesift.models.tiers import Tier
from pagesift.models.usage import QuotaCheck, UsageStats

MAX_URLS_PER_CALL = 1000


def _strip_user_id(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("user_id must not be empty")
    return v


class AnalyzeUrlsInput(BaseModel):
    urls: list[str] = Field(min_length=1, max_length=MAX_URLS_PER_CALL)
    user_id: str = Field(max_length=200)
    tier: Tier = Tier.STARTER

    @field_validator("urls")
    @classmethod
    def validate_urls(cls, v: list[str]) -> list[str]:
        cleaned = [u.strip() for u in v]
        for url in cleaned:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"URL must use http or https: {url!r}")
        return cleaned

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return _strip_user_id(v)


class AnalyzeUrlsOutput(BaseModel):
    tier: Tier
    pages: list[DiscoveredPage]
    metrics: RunMetrics


class CheckQuotaInput(BaseModel):
    user_id: str = Field(max_length=200)
    tier: Tier = Tier.STARTER
    pages: int | None = Field(default=None, ge=1, le=MAX_URLS_PER_CALL)

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return _strip_user_id(v)


class CheckQuotaOutput(QuotaCheck):
    """Quota verdict plus the cost of the analysis being planned."""

    estimated_pages: int
    estimated_cost_cents: float


class CacheStatsInput(BaseModel):
    tier: Tier | None = None


class CacheStatsOutput(BaseModel):
    tier: Tier | None
    stats: CacheStats


class UsageStatsInput(BaseModel):
    user_id: str = Field(max_length=200)
    days: int = Field(default=30, ge=1, le=365)

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return _strip_user_id(v)


class UsageStatsOutput(BaseModel):
    user_id: str
    days: int
    stats: UsageStats
