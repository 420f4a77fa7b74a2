from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from pagesift.models.pages import PagePayload
from pagesift.models.tiers import Tier


class Validators(BaseModel):
    """HTTP validators seen on the last fetch of a page."""

    last_modified: str | None = None
    etag: str | None = None

    @property
    def empty(self) -> bool:
        return not self.last_modified and not self.etag


class CachedResult(BaseModel):
    """One cached page analysis, keyed by (normalized_url, tier)."""

    normalized_url: str
    url_hash: str  # SHA-256 of normalized_url
    tier: Tier
    content_hash: str  # SHA-256 of the raw body
    validators: Validators = Validators()
    payload: PagePayload
    cached_at: datetime
    expires_at: datetime
    hit_count: int = 0


class FetchResult(BaseModel):
    """Response summary returned by the conditional fetcher."""

    status: int
    body: bytes | None = None  # Only populated for GET
    last_modified: str | None = None
    etag: str | None = None

    @property
    def validators(self) -> Validators:
        return Validators(last_modified=self.last_modified, etag=self.etag)


class ChangeCheck(BaseModel):
    changed: bool
    new_validators: Validators = Validators()
    reason: str  # "not_modified" | "validator_changed" | "hash_match" | "hash_mismatch" | "inconclusive"
    fetched: FetchResult | None = None  # GET response when the hash comparison found a change


class CacheLookup(BaseModel):
    """Outcome of one cache lookup.

    On a miss caused by a hash mismatch, ``fetched`` holds the body the
    change check already downloaded so the page can be analyzed from it.
    """

    entry: CachedResult | None = None
    fetched: FetchResult | None = None


class CacheStats(BaseModel):
    total_entries: int = 0
    total_hits: int = 0
    avg_hits_per_entry: float = 0.0
    active_entries: int = 0
    expired_entries: int = 0
