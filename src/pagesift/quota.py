"""Daily per-user usage ledger and tier quota enforcement.

Counters live in one row per (user, UTC calendar day). Completions are
recorded with a single insert-or-increment so concurrent analyses for the
same user cannot lose updates; different users never contend.

When the usage store cannot be read the check allows the analysis, unless
``QuotaSettings.fail_open`` is off. Write failures are logged and never fail
the analysis itself.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from pagesift.errors import StoreError
from pagesift.models.tiers import Tier, get_policy, next_tier
from pagesift.models.usage import CurrentUsage, QuotaCheck, TierLimits, UsageDelta, UsageStats

if TYPE_CHECKING:
    from pagesift.models.usage import UsageCounter
    from pagesift.protocols import UsageStoreProtocol

log = structlog.get_logger()

AI_COST_CENTS_PER_PAGE = 3.0
HTML_COST_CENTS_PER_PAGE = 0.1
# Share of cache hits that would otherwise have gone to the AI analyzer
AI_SHARE_OF_CACHE_HITS = 0.7


def utc_today() -> date:
    return datetime.now(UTC).date()


def _limits_for(tier: Tier) -> TierLimits:
    policy = get_policy(tier)
    return TierLimits(
        daily_analyses=policy.daily_analyses,
        max_pages_per_analysis=policy.max_pages_per_analysis,
        ai_pages_limit=policy.ai_pages_limit,
    )


def _denial_reason(tier: Tier) -> str:
    policy = get_policy(tier)
    if tier is Tier.STARTER:
        upgrade = get_policy(Tier.COFFEE)
        return (
            "You've used your free analysis for today. Upgrade to the coffee tier for "
            f"AI-powered analysis of up to {upgrade.max_pages_per_analysis} pages. "
            "Your free analysis resets at midnight (UTC)."
        )
    plural = "analysis" if policy.daily_analyses == 1 else "analyses"
    return (
        f"Daily limit reached. The {tier.value} tier allows {policy.daily_analyses} "
        f"{plural} per day. Resets at midnight (UTC)."
    )


def analysis_cost_cents(ai_calls: int, html_extractions: int) -> float:
    """Cost of the analysis calls actually made."""
    return round(ai_calls * AI_COST_CENTS_PER_PAGE + html_extractions * HTML_COST_CENTS_PER_PAGE, 4)


def estimate_cost_cents(pages_count: int, tier: Tier, cache_hits: int = 0) -> float:
    """Up-front cost estimate for analyzing ``pages_count`` pages on ``tier``."""
    policy = get_policy(tier)
    uncached = max(0, pages_count - cache_hits)
    ai_pages = min(uncached, policy.ai_pages_limit) if policy.features.ai_analysis else 0
    return analysis_cost_cents(ai_pages, uncached - ai_pages)


def estimate_cost_saved_cents(cache_hits: int, tier: Tier) -> float:
    """What the cache hits of a run would have cost as fresh AI analyses."""
    if not get_policy(tier).features.ai_analysis:
        return 0.0
    return round(cache_hits * AI_SHARE_OF_CACHE_HITS * AI_COST_CENTS_PER_PAGE, 4)


class QuotaLedger:
    def __init__(self, store: UsageStoreProtocol, *, fail_open: bool = True) -> None:
        self._store = store
        self._fail_open = fail_open

    async def check_and_reserve(
        self, user_id: str, tier: Tier, requested_pages: int = 0
    ) -> QuotaCheck:
        """Decide whether ``user_id`` may start another analysis today.

        Only the daily analysis count is enforced here. The per-analysis page
        ceiling is applied by the pipeline truncating its URL list, since a
        site may expose more pages than the tier processes.
        """
        limits = _limits_for(tier)
        ledger_log = log.bind(user_id=user_id, tier=tier.value)

        try:
            counter = await self._store.get(user_id, utc_today())
        except StoreError:
            ledger_log.warning("usage_read_error", fail_open=self._fail_open, exc_info=True)
            if self._fail_open:
                return QuotaCheck(allowed=True, current_usage=CurrentUsage(), limits=limits)
            return QuotaCheck(
                allowed=False,
                reason="Usage could not be verified. Please try again shortly.",
                current_usage=CurrentUsage(),
                limits=limits,
            )

        usage = CurrentUsage(
            analyses_today=counter.analyses_count if counter else 0,
            pages_processed_today=counter.pages_processed if counter else 0,
        )

        if usage.analyses_today >= limits.daily_analyses:
            ledger_log.info(
                "quota_denied",
                analyses_today=usage.analyses_today,
                daily_analyses=limits.daily_analyses,
            )
            return QuotaCheck(
                allowed=False,
                reason=_denial_reason(tier),
                current_usage=usage,
                limits=limits,
                suggested_upgrade=next_tier(tier),
            )

        ledger_log.debug(
            "quota_allowed",
            analyses_today=usage.analyses_today,
            requested_pages=requested_pages,
        )
        return QuotaCheck(allowed=True, current_usage=usage, limits=limits)

    async def record_completion(
        self,
        user_id: str,
        pages_processed: int = 0,
        ai_calls: int = 0,
        html_extractions: int = 0,
        cache_hits: int = 0,
        cost_cents: float = 0.0,
    ) -> UsageCounter | None:
        """Count one finished analysis and add the supplied deltas.

        Called for failed runs too (with zero deltas) so repeated failures
        still consume the daily allowance. Returns the updated counter, or
        ``None`` if the store failed.
        """
        delta = UsageDelta(
            pages_processed=pages_processed,
            ai_calls=ai_calls,
            html_extractions=html_extractions,
            cache_hits=cache_hits,
            cost_cents=cost_cents,
        )
        try:
            counter = await self._store.increment(user_id, utc_today(), delta)
        except StoreError:
            log.error(
                "usage_write_error",
                user_id=user_id,
                **delta.model_dump(),
                exc_info=True,
            )
            return None

        log.info(
            "usage_recorded",
            user_id=user_id,
            analyses_count=counter.analyses_count,
            **delta.model_dump(),
        )
        return counter

    async def usage_stats(self, user_id: str, days: int = 30) -> UsageStats | None:
        """Aggregate the last ``days`` days (today included) for ``user_id``."""
        end = utc_today()
        start = end - timedelta(days=days - 1)
        try:
            rows = await self._store.range(user_id, start, end)
        except StoreError:
            log.warning("usage_stats_error", user_id=user_id, exc_info=True)
            return None

        if not rows:
            return UsageStats()

        total_analyses = sum(r.analyses_count for r in rows)
        total_pages = sum(r.pages_processed for r in rows)
        return UsageStats(
            days_active=len(rows),
            total_analyses=total_analyses,
            total_pages=total_pages,
            total_ai_calls=sum(r.ai_calls_count for r in rows),
            total_cache_hits=sum(r.cache_hits for r in rows),
            total_cost_cents=round(sum(r.total_cost_cents for r in rows), 4),
            avg_analyses_per_day=round(total_analyses / len(rows), 2),
            avg_pages_per_day=round(total_pages / len(rows), 2),
        )
