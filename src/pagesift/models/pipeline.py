from __future__ import annotations

from pydantic import BaseModel

from pagesift.models.pages import DiscoveredPage
from pagesift.models.tiers import Tier


class RunMetrics(BaseModel):
    """Per-run figures surfaced to reporting layers."""

    cache_hit: bool = False  # True when at least one page came from cache
    processing_time_ms: int = 0
    api_calls: int = 0
    cost_saved_estimate: float = 0.0  # Cents
    analyzed_pages: int = 0
    cached_pages: int = 0
    ai_calls_used: int = 0
    html_extractions_used: int = 0
    failed_pages: int = 0
    duplicates_removed: int = 0
    total_urls_found: int = 0


class PipelineResult(BaseModel):
    tier: Tier
    pages: list[DiscoveredPage]
    metrics: RunMetrics
