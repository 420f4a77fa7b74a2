from __future__ import annotations

from pagesift.models.cache import (
    CachedResult,
    CacheLookup,
    CacheStats,
    ChangeCheck,
    FetchResult,
    Validators,
)
from pagesift.models.pages import ContentAnalysis, DedupResult, DiscoveredPage, PagePayload
from pagesift.models.pipeline import PipelineResult, RunMetrics
from pagesift.models.tiers import TIER_POLICIES, Tier, TierFeatures, TierPolicy
from pagesift.models.tools import (
    AnalyzeUrlsInput,
    AnalyzeUrlsOutput,
    CacheStatsInput,
    CacheStatsOutput,
    CheckQuotaInput,
    CheckQuotaOutput,
    UsageStatsInput,
    UsageStatsOutput,
)
from pagesift.models.usage import (
    CurrentUsage,
    QuotaCheck,
    TierLimits,
    UsageCounter,
    UsageDelta,
    UsageStats,
)

__all__ = [
    # tiers
    "Tier",
    "TierFeatures",
    "TierPolicy",
    "TIER_POLICIES",
    # pages
    "PagePayload",
    "DiscoveredPage",
    "ContentAnalysis",
    "DedupResult",
    # cache
    "Validators",
    "CachedResult",
    "FetchResult",
    "ChangeCheck",
    "CacheLookup",
    "CacheStats",
    # usage
    "UsageCounter",
    "UsageDelta",
    "CurrentUsage",
    "TierLimits",
    "QuotaCheck",
    "UsageStats",
    # pipeline
    "RunMetrics",
    "PipelineResult",
    # tools
    "AnalyzeUrlsInput",
    "AnalyzeUrlsOutput",
    "CheckQuotaInput",
    "CheckQuotaOutput",
    "CacheStatsInput",
    "CacheStatsOutput",
    "UsageStatsInput",
    "UsageStatsOutput",
]
