from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from pagesift.models.tiers import Tier


class UsageCounter(BaseModel):
    """Counters for one (user, UTC calendar day). All fields non-decreasing."""

    user_id: str
    date: date
    analyses_count: int = Field(default=0, ge=0)
    pages_processed: int = Field(default=0, ge=0)
    ai_calls_count: int = Field(default=0, ge=0)
    html_extractions_count: int = Field(default=0, ge=0)
    cache_hits: int = Field(default=0, ge=0)
    total_cost_cents: float = Field(default=0.0, ge=0)


class UsageDelta(BaseModel):
    """Increments applied by one completed (or failed) analysis."""

    pages_processed: int = Field(default=0, ge=0)
    ai_calls: int = Field(default=0, ge=0)
    html_extractions: int = Field(default=0, ge=0)
    cache_hits: int = Field(default=0, ge=0)
    cost_cents: float = Field(default=0.0, ge=0)


class CurrentUsage(BaseModel):
    analyses_today: int = 0
    pages_processed_today: int = 0


class TierLimits(BaseModel):
    daily_analyses: int
    max_pages_per_analysis: int
    ai_pages_limit: int


class QuotaCheck(BaseModel):
    allowed: bool
    reason: str | None = None
    current_usage: CurrentUsage
    limits: TierLimits
    suggested_upgrade: Tier | None = None


class UsageStats(BaseModel):
    """Aggregate usage over a trailing window of days."""

    days_active: int = 0
    total_analyses: int = 0
    total_pages: int = 0
    total_ai_calls: int = 0
    total_cache_hits: int = 0
    total_cost_cents: float = 0.0
    avg_analyses_per_day: float = 0.0
    avg_pages_per_day: float = 0.0
