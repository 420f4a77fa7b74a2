"""Tier-keyed analysis cache with change detection.

A lookup is a hit only when the stored row is unexpired AND the change
detector confirms the live page still matches it. Rows are keyed by
(normalized URL, tier): a cheaper tier's analysis is never served to a
richer tier.

All store failures are caught here and degrade gracefully: read failures are
treated as cache misses, write and sweep failures are logged and ignored.
``StoreError`` never crosses the AnalysisCache boundary; a cache outage costs
re-analysis, never a failed run.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from pagesift.errors import StoreError
from pagesift.models.cache import CachedResult, CacheLookup, Validators
from pagesift.models.tiers import get_policy
from pagesift.normalizer import normalize_url, url_hash, url_path

if TYPE_CHECKING:
    from pagesift.models.cache import CacheStats
    from pagesift.models.pages import PagePayload
    from pagesift.models.tiers import Tier
    from pagesift.protocols import CacheStoreProtocol, ChangeDetectorProtocol

log = structlog.get_logger()

# Path segments matched against "<path>/" so a section root like /blog counts too
FREQUENTLY_UPDATED_SEGMENTS: tuple[str, ...] = ("/blog/", "/news/", "/updates/")
STABLE_REFERENCE_SEGMENTS: tuple[str, ...] = ("/docs/", "/api/", "/reference/")

_LAST_SWEEP_KEY = "last_sweep_at"


def cache_duration(url: str, tier: Tier) -> timedelta:
    """Return how long an analysis of ``url`` stays valid for ``tier``.

    Base duration comes from the tier policy; it is halved (minimum one day)
    for blog/news-like paths and doubled for docs/reference-like paths. When
    both apply the reference rule wins.
    """
    base_days = get_policy(tier).cache_duration_days
    path = url_path(url) + "/"
    days = base_days

    if any(segment in path for segment in FREQUENTLY_UPDATED_SEGMENTS):
        days = max(1, base_days // 2)
    if any(segment in path for segment in STABLE_REFERENCE_SEGMENTS):
        days = base_days * 2

    return timedelta(days=days)


class AnalysisCache:
    def __init__(self, store: CacheStoreProtocol, detector: ChangeDetectorProtocol) -> None:
        self._store = store
        self._detector = detector

    async def get(self, url: str, tier: Tier) -> CachedResult | None:
        """Return the cached analysis for (url, tier), or ``None`` on a miss.

        A confirmed hit increments ``hit_count``; the returned entry carries
        the incremented value.
        """
        return (await self.lookup(url, tier)).entry

    async def lookup(self, url: str, tier: Tier) -> CacheLookup:
        """Like ``get``, but also hands back what the change check fetched.

        Validators the live page now sends that the entry lacked are saved
        with the hit, so the next check can settle on a conditional HEAD.
        """
        normalized = normalize_url(url)
        key = url_hash(normalized)
        cache_log = log.bind(url=normalized, tier=tier.value)

        try:
            entry = await self._store.load(key, tier)
        except StoreError:
            cache_log.warning("cache_read_error", exc_info=True)
            return CacheLookup()

        if entry is None:
            cache_log.debug("cache_miss", reason="absent")
            return CacheLookup()

        if datetime.now(UTC) >= entry.expires_at:
            cache_log.debug("cache_miss", reason="expired")
            return CacheLookup()

        check = await self._detector.has_changed(
            entry.normalized_url, entry.validators, entry.content_hash
        )
        if check.changed:
            cache_log.info("cache_miss", reason="changed", signal=check.reason)
            return CacheLookup(fetched=check.fetched)

        learned = (
            check.new_validators
            if not check.new_validators.empty and check.new_validators != entry.validators
            else None
        )
        try:
            hit_count = await self._store.increment_hit(
                key, tier, entry.content_hash, datetime.now(UTC), learned
            )
        except StoreError:
            cache_log.warning("cache_hit_update_error", exc_info=True)
            return CacheLookup()

        if hit_count is None:
            # Swept, expired or overwritten while the change check was in flight
            cache_log.debug("cache_miss", reason="evicted")
            return CacheLookup()

        update: dict[str, object] = {"hit_count": hit_count}
        if learned is not None:
            cache_log.info("cache_validators_learned", etag=learned.etag)
            update["validators"] = Validators(
                last_modified=learned.last_modified or entry.validators.last_modified,
                etag=learned.etag or entry.validators.etag,
            )
        cache_log.info("cache_hit", signal=check.reason, hit_count=hit_count)
        return CacheLookup(entry=entry.model_copy(update=update))

    async def put(
        self,
        url: str,
        tier: Tier,
        payload: PagePayload,
        content_hash: str,
        validators: Validators | None = None,
    ) -> None:
        """Store or overwrite the analysis for (url, tier). Non-fatal on failure."""
        normalized = normalize_url(url)
        now = datetime.now(UTC)
        expires_at = now + cache_duration(normalized, tier)
        entry = CachedResult(
            normalized_url=normalized,
            url_hash=url_hash(normalized),
            tier=tier,
            content_hash=content_hash,
            validators=validators or Validators(),
            payload=payload,
            cached_at=now,
            expires_at=expires_at,
            hit_count=0,
        )
        try:
            await self._store.save(entry)
        except StoreError:
            log.warning("cache_write_error", url=normalized, tier=tier.value, exc_info=True)
            return
        log.debug(
            "cache_stored",
            url=normalized,
            tier=tier.value,
            expires_at=expires_at.isoformat(),
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def sweep_expired(self) -> int:
        """Delete entries whose ``expires_at`` has passed. Non-fatal on failure."""
        try:
            deleted = await self._store.delete_expired(datetime.now(UTC))
        except StoreError:
            log.warning("cache_sweep_error", exc_info=True)
            return 0
        log.info("cache_sweep_complete", deleted=deleted)
        return deleted

    async def sweep_if_due(self, interval_hours: int) -> None:
        """Run a sweep only if interval_hours have elapsed since the last one.

        Falls through to sweeping if the metadata row is missing or unreadable.
        """
        try:
            last_run = await self._store.get_metadata(_LAST_SWEEP_KEY)
            if last_run is not None:
                elapsed = datetime.now(UTC) - datetime.fromisoformat(last_run)
                if elapsed < timedelta(hours=interval_hours):
                    log.debug("cache_sweep_skipped", reason="not_due")
                    return
        except StoreError:
            log.warning("cache_metadata_read_error", exc_info=True)

        await self.sweep_expired()

        try:
            await self._store.set_metadata(_LAST_SWEEP_KEY, datetime.now(UTC).isoformat())
        except StoreError:
            log.warning("cache_metadata_write_error", exc_info=True)

    async def stats(self, tier: Tier | None = None) -> CacheStats | None:
        """Aggregate entry and hit counts. Returns ``None`` if the store fails."""
        try:
            return await self._store.stats(datetime.now(UTC), tier)
        except StoreError:
            log.warning("cache_stats_error", exc_info=True)
            return None
