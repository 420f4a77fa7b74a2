"""Protocol interfaces for swappable components.

The pipeline, cache and ledger reference these protocols, not the concrete
implementations. This allows:
- Tests to use in-memory SQLite or lightweight fakes
- Other persistence engines to be swapped in without touching the core
- Deployments to plug in their own sitemap discovery and AI scoring
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from datetime import date, datetime

    from pagesift.models.cache import CachedResult, CacheStats, ChangeCheck, FetchResult, Validators
    from pagesift.models.pages import ContentAnalysis
    from pagesift.models.tiers import Tier
    from pagesift.models.usage import UsageCounter, UsageDelta


class CacheStoreProtocol(Protocol):
    """Row-level persistence for cached analyses.

    Implementations raise ``StoreError`` (code CACHE_STORE_ERROR) on failure.
    """

    async def load(self, url_hash: str, tier: Tier) -> CachedResult | None: ...

    async def save(self, entry: CachedResult) -> None: ...

    async def increment_hit(
        self,
        url_hash: str,
        tier: Tier,
        content_hash: str,
        now: datetime,
        validators: Validators | None = None,
    ) -> int | None: ...

    async def delete_expired(self, now: datetime) -> int: ...

    async def stats(self, now: datetime, tier: Tier | None = None) -> CacheStats: ...

    async def get_metadata(self, key: str) -> str | None: ...

    async def set_metadata(self, key: str, value: str) -> None: ...


class UsageStoreProtocol(Protocol):
    """Per-(user, day) counters with atomic insert-or-increment.

    Implementations raise ``StoreError`` (code USAGE_STORE_ERROR) on failure.
    """

    async def get(self, user_id: str, day: date) -> UsageCounter | None: ...

    async def increment(self, user_id: str, day: date, delta: UsageDelta) -> UsageCounter: ...

    async def range(self, user_id: str, start: date, end: date) -> list[UsageCounter]: ...


class FetcherProtocol(Protocol):
    """Conditional HTTP fetch used by change detection and the miss path."""

    async def fetch_conditional(
        self,
        url: str,
        validators: Validators | None = None,
        *,
        method: Literal["HEAD", "GET"] = "GET",
        timeout: float | None = None,
    ) -> FetchResult: ...


class ChangeDetectorProtocol(Protocol):
    async def has_changed(
        self, url: str, validators: Validators, content_hash: str | None
    ) -> ChangeCheck: ...


class ContentAnalyzerProtocol(Protocol):
    """Scores a page's HTML. ``use_ai`` selects AI-enhanced over heuristic analysis."""

    async def analyze(self, url: str, html: str, use_ai: bool) -> ContentAnalysis: ...


class SitemapSourceProtocol(Protocol):
    """Discovers candidate page URLs for a site."""

    async def fetch_sitemap_urls(self, base_url: str) -> list[str]: ...
