"""Analysis pipeline: quota gate, cached/fresh page analysis, dedup, accounting.

Per request:

  requested -> quota-checked (allowed | denied)
  allowed   -> per URL: cache hit | miss -> misses analyzed -> cache updated
            -> completed | failed -> usage recorded

Usage is recorded from both terminal states, including timeouts and
unexpected errors, so a failing analysis still consumes the daily allowance.
A single page failing never fails the run: it becomes a placeholder page.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import structlog

from pagesift.config import PipelineSettings
from pagesift.dedup import Deduplicator, is_likely_broken_url
from pagesift.errors import ErrorCode, PageSiftError, QuotaExceededError
from pagesift.models.pages import DiscoveredPage, PagePayload
from pagesift.models.pipeline import PipelineResult, RunMetrics
from pagesift.models.tiers import get_policy
from pagesift.normalizer import content_hash
from pagesift.prioritizer import prioritize_urls
from pagesift.quota import analysis_cost_cents, estimate_cost_saved_cents

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pagesift.cache import AnalysisCache
    from pagesift.models.cache import CacheLookup, FetchResult
    from pagesift.models.tiers import Tier
    from pagesift.protocols import (
        ContentAnalyzerProtocol,
        FetcherProtocol,
        SitemapSourceProtocol,
    )
    from pagesift.quota import QuotaLedger

log = structlog.get_logger()

PLACEHOLDER_TITLE = "Analysis Failed"
PLACEHOLDER_DESCRIPTION = "Unable to analyze this page"
PLACEHOLDER_CATEGORY = "Error"


def placeholder_page(url: str) -> DiscoveredPage:
    return DiscoveredPage(
        url=url,
        title=PLACEHOLDER_TITLE,
        description=PLACEHOLDER_DESCRIPTION,
        quality_score=1,
        category=PLACEHOLDER_CATEGORY,
    )


@dataclass
class _PageOutcome:
    page: DiscoveredPage
    source: Literal["cache", "ai", "html", "failed"]


@dataclass
class _RunOutcome:
    pages: list[DiscoveredPage]
    metrics: RunMetrics
    pages_processed: int
    cost_cents: float


class AnalysisPipeline:
    def __init__(
        self,
        *,
        cache: AnalysisCache,
        ledger: QuotaLedger,
        fetcher: FetcherProtocol,
        analyzer: ContentAnalyzerProtocol,
        deduplicator: Deduplicator | None = None,
        sitemap_source: SitemapSourceProtocol | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        self._cache = cache
        self._ledger = ledger
        self._fetcher = fetcher
        self._analyzer = analyzer
        self._deduplicator = deduplicator or Deduplicator()
        self._sitemap_source = sitemap_source
        self._settings = settings or PipelineSettings()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, urls: list[str], user_id: str, tier: Tier) -> PipelineResult:
        """Analyze ``urls`` for ``user_id`` on ``tier``.

        Raises QuotaExceededError when the daily allowance is used up,
        PageSiftError(DISCOVERY_FAILED) for an empty URL list and
        PageSiftError(TIMEOUT_EXCEEDED) when the run exceeds its ceiling.
        """
        await self._reserve(user_id, tier, len(urls))

        async def discover() -> list[str]:
            return list(urls)

        return await self._execute(user_id, tier, discover)

    async def run_for_site(self, base_url: str, user_id: str, tier: Tier) -> PipelineResult:
        """Discover a site's URLs through the sitemap source, then analyze them."""
        if self._sitemap_source is None:
            raise RuntimeError("No sitemap source configured for this pipeline")
        sitemap_source = self._sitemap_source

        await self._reserve(user_id, tier, 0)

        async def discover() -> list[str]:
            try:
                return await sitemap_source.fetch_sitemap_urls(base_url)
            except Exception as exc:
                raise PageSiftError(
                    code=ErrorCode.DISCOVERY_FAILED,
                    message=f"Could not discover pages for {base_url}: {exc}",
                    suggestion="Check that the site is reachable and publishes a sitemap.",
                    recoverable=True,
                ) from exc

        return await self._execute(user_id, tier, discover)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def _reserve(self, user_id: str, tier: Tier, requested_pages: int) -> None:
        check = await self._ledger.check_and_reserve(user_id, tier, requested_pages)
        if not check.allowed:
            raise QuotaExceededError(check)

    async def _execute(
        self,
        user_id: str,
        tier: Tier,
        discover: Callable[[], Awaitable[list[str]]],
    ) -> PipelineResult:
        run_log = log.bind(user_id=user_id, tier=tier.value)
        started = time.monotonic()
        outcome: _RunOutcome | None = None

        try:
            async with asyncio.timeout(self._settings.run_timeout_seconds):
                urls = await discover()
                outcome = await self._process(urls, tier, run_log)
        except TimeoutError as exc:
            run_log.warning(
                "analysis_timeout", timeout_seconds=self._settings.run_timeout_seconds
            )
            raise PageSiftError(
                code=ErrorCode.TIMEOUT_EXCEEDED,
                message=(
                    f"Analysis exceeded {self._settings.run_timeout_seconds:g}s "
                    "and was cancelled."
                ),
                suggestion="Retry later; already analyzed pages are cached for the next run.",
                recoverable=True,
            ) from exc
        except PageSiftError as exc:
            run_log.warning("analysis_failed", code=exc.code, message=exc.message)
            raise
        except Exception:
            run_log.error("analysis_unexpected_error", exc_info=True)
            raise
        finally:
            await self._record_usage(user_id, outcome)

        outcome.metrics.processing_time_ms = int((time.monotonic() - started) * 1000)
        run_log.info("analysis_complete", **outcome.metrics.model_dump())
        return PipelineResult(tier=tier, pages=outcome.pages, metrics=outcome.metrics)

    async def _record_usage(self, user_id: str, outcome: _RunOutcome | None) -> None:
        if outcome is None:
            # Failed run: the analysis still counts, nothing else does
            await self._ledger.record_completion(user_id)
            return
        await self._ledger.record_completion(
            user_id,
            pages_processed=outcome.pages_processed,
            ai_calls=outcome.metrics.ai_calls_used,
            html_extractions=outcome.metrics.html_extractions_used,
            cache_hits=outcome.metrics.cached_pages,
            cost_cents=outcome.cost_cents,
        )

    # ------------------------------------------------------------------
    # Page processing
    # ------------------------------------------------------------------

    async def _process(
        self, urls: list[str], tier: Tier, run_log: structlog.typing.FilteringBoundLogger
    ) -> _RunOutcome:
        policy = get_policy(tier)
        candidates = prioritize_urls(urls) if self._settings.prioritize_urls else urls
        fetchable = [u for u in candidates if not is_likely_broken_url(u)]
        if len(fetchable) < len(candidates):
            run_log.info(
                "urls_skipped", reason="likely_broken", count=len(candidates) - len(fetchable)
            )
        candidates = fetchable
        if not candidates:
            raise PageSiftError(
                code=ErrorCode.DISCOVERY_FAILED,
                message="No analyzable pages were found for this site.",
                suggestion="Check that the site publishes a sitemap with public pages.",
                recoverable=False,
            )

        selected = candidates[: policy.max_pages_per_analysis]
        ai_budget = policy.ai_pages_limit if policy.features.ai_analysis else 0
        batch_size = self._settings.batch_size
        run_log.info(
            "analysis_started",
            urls_found=len(urls),
            urls_selected=len(selected),
            ai_budget=ai_budget,
        )

        outcomes: list[_PageOutcome] = []
        for start in range(0, len(selected), batch_size):
            if start:
                await asyncio.sleep(self._settings.batch_delay_seconds)
            batch = selected[start : start + batch_size]

            lookups = await asyncio.gather(*(self._cache.lookup(url, tier) for url in batch))

            # AI slots go to misses in input order so assignment is deterministic
            use_ai: list[bool] = []
            for lookup in lookups:
                if lookup.entry is None and ai_budget > 0:
                    use_ai.append(True)
                    ai_budget -= 1
                else:
                    use_ai.append(False)

            outcomes.extend(
                await asyncio.gather(
                    *(
                        self._resolve_page(url, tier, lookup, flag)
                        for url, lookup, flag in zip(batch, lookups, use_ai, strict=True)
                    )
                )
            )

        return self._finalize(urls, tier, selected, outcomes)

    async def _resolve_page(
        self, url: str, tier: Tier, lookup: CacheLookup, use_ai: bool
    ) -> _PageOutcome:
        if lookup.entry is not None:
            return _PageOutcome(DiscoveredPage.from_payload(url, lookup.entry.payload), "cache")
        return await self._analyze_page(url, tier, use_ai, lookup.fetched)

    async def _analyze_page(
        self, url: str, tier: Tier, use_ai: bool, prefetched: FetchResult | None = None
    ) -> _PageOutcome:
        """Analyze one cache miss, reusing ``prefetched`` when the change check has the body."""
        page_log = log.bind(url=url, tier=tier.value, use_ai=use_ai)
        try:
            async with asyncio.timeout(self._settings.page_timeout_seconds):
                fetched = prefetched
                if fetched is None:
                    fetched = await self._fetcher.fetch_conditional(url, method="GET")
                if not 200 <= fetched.status < 300 or fetched.body is None:
                    raise PageSiftError(
                        code=ErrorCode.PAGE_FETCH_FAILED,
                        message=f"HTTP {fetched.status} fetching {url}",
                        suggestion="The page may have moved or be temporarily unavailable.",
                        recoverable=True,
                    )
                html = fetched.body.decode("utf-8", errors="replace")
                analysis = await self._analyzer.analyze(url, html, use_ai)
        except TimeoutError:
            page_log.warning(
                "page_analysis_failed",
                code=ErrorCode.TIMEOUT_EXCEEDED,
                timeout_seconds=self._settings.page_timeout_seconds,
            )
            return _PageOutcome(placeholder_page(url), "failed")
        except PageSiftError as exc:
            page_log.warning("page_analysis_failed", code=exc.code, message=exc.message)
            return _PageOutcome(placeholder_page(url), "failed")
        except Exception:
            page_log.warning(
                "page_analysis_failed", code=ErrorCode.PAGE_ANALYSIS_FAILED, exc_info=True
            )
            return _PageOutcome(placeholder_page(url), "failed")

        payload = PagePayload(
            **analysis.model_dump(exclude={"ai_enhanced"}), last_modified=fetched.last_modified
        )
        await self._cache.put(
            url, tier, payload, content_hash(fetched.body), fetched.validators
        )
        # Count the mode that actually ran; an AI slot can fall back to heuristics
        source = "ai" if analysis.ai_enhanced else "html"
        return _PageOutcome(DiscoveredPage.from_payload(url, payload), source)

    def _finalize(
        self,
        urls: list[str],
        tier: Tier,
        selected: list[str],
        outcomes: list[_PageOutcome],
    ) -> _RunOutcome:
        cached = sum(1 for o in outcomes if o.source == "cache")
        ai_calls = sum(1 for o in outcomes if o.source == "ai")
        html_calls = sum(1 for o in outcomes if o.source == "html")
        failed = [o.page for o in outcomes if o.source == "failed"]

        # Placeholders skip dedup, which would drop them as low-value
        deduped = self._deduplicator.process([o.page for o in outcomes if o.source != "failed"])
        pages = sorted([*deduped.kept_pages, *failed], key=lambda p: -p.quality_score)

        metrics = RunMetrics(
            cache_hit=cached > 0,
            api_calls=ai_calls + html_calls,
            cost_saved_estimate=estimate_cost_saved_cents(cached, tier),
            analyzed_pages=ai_calls + html_calls + len(failed),
            cached_pages=cached,
            ai_calls_used=ai_calls,
            html_extractions_used=html_calls,
            failed_pages=len(failed),
            duplicates_removed=deduped.duplicates_removed,
            total_urls_found=len(urls),
        )
        return _RunOutcome(
            pages=pages,
            metrics=metrics,
            pages_processed=len(selected),
            cost_cents=analysis_cost_cents(ai_calls, html_calls),
        )
