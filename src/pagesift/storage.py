"""SQLite stores for cached analyses and usage counters.

Both stores share one ``aiosqlite.Connection`` opened by the server lifespan.
Every mutation is a single statement (upsert or guarded UPDATE), so rows stay
consistent under concurrent coroutines without multi-row transactions.

Driver errors are re-raised as ``StoreError`` so callers can degrade without
depending on aiosqlite. Deciding *how* to degrade belongs to AnalysisCache
and QuotaLedger, not to the stores.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import aiosqlite

from pagesift.errors import ErrorCode, StoreError
from pagesift.models.cache import CachedResult, CacheStats, Validators
from pagesift.models.pages import PagePayload
from pagesift.models.tiers import Tier
from pagesift.models.usage import UsageCounter

if TYPE_CHECKING:
    from pagesift.models.usage import UsageDelta

_CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS analysis_cache (
    url_hash       TEXT NOT NULL,
    tier           TEXT NOT NULL,
    url            TEXT NOT NULL,
    content_hash   TEXT NOT NULL,
    last_modified  TEXT,
    etag           TEXT,
    payload        TEXT NOT NULL,
    cached_at      TEXT NOT NULL,
    expires_at     TEXT NOT NULL,
    hit_count      INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (url_hash, tier)
)
"""

_CREATE_CACHE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_analysis_cache_expires ON analysis_cache(expires_at)"
)

_CREATE_USAGE_TABLE = """
CREATE TABLE IF NOT EXISTS usage_counters (
    user_id                TEXT NOT NULL,
    date                   TEXT NOT NULL,
    analyses_count         INTEGER NOT NULL DEFAULT 0,
    pages_processed        INTEGER NOT NULL DEFAULT 0,
    ai_calls_count         INTEGER NOT NULL DEFAULT 0,
    html_extractions_count INTEGER NOT NULL DEFAULT 0,
    cache_hits             INTEGER NOT NULL DEFAULT 0,
    total_cost_cents       REAL NOT NULL DEFAULT 0,
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL,
    PRIMARY KEY (user_id, date)
)
"""

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS server_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

_CACHE_COLUMNS = (
    "url_hash, tier, url, content_hash, last_modified, etag, "
    "payload, cached_at, expires_at, hit_count"
)

_USAGE_COLUMNS = (
    "user_id, date, analyses_count, pages_processed, ai_calls_count, "
    "html_extractions_count, cache_hits, total_cost_cents"
)


async def init_db(db: aiosqlite.Connection) -> None:
    """Create tables and set WAL mode. Called once at startup."""
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute(_CREATE_CACHE_TABLE)
    await db.execute(_CREATE_CACHE_INDEX)
    await db.execute(_CREATE_USAGE_TABLE)
    await db.execute(_CREATE_METADATA_TABLE)
    await db.commit()


def _row_to_cached(row: aiosqlite.Row | tuple) -> CachedResult:
    return CachedResult(
        url_hash=row[0],
        tier=Tier(row[1]),
        normalized_url=row[2],
        content_hash=row[3],
        validators=Validators(last_modified=row[4], etag=row[5]),
        payload=PagePayload.model_validate_json(row[6]),
        cached_at=datetime.fromisoformat(row[7]),
        expires_at=datetime.fromisoformat(row[8]),
        hit_count=row[9],
    )


def _row_to_usage(row: aiosqlite.Row | tuple) -> UsageCounter:
    return UsageCounter(
        user_id=row[0],
        date=date.fromisoformat(row[1]),
        analyses_count=row[2],
        pages_processed=row[3],
        ai_calls_count=row[4],
        html_extractions_count=row[5],
        cache_hits=row[6],
        total_cost_cents=row[7],
    )


class SqliteCacheStore:
    """SQLite-backed store implementing CacheStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def load(self, url_hash: str, tier: Tier) -> CachedResult | None:
        try:
            cursor = await self._db.execute(
                f"SELECT {_CACHE_COLUMNS} FROM analysis_cache WHERE url_hash = ? AND tier = ?",
                (url_hash, tier.value),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"cache read failed: {exc}") from exc
        return _row_to_cached(row) if row is not None else None

    async def save(self, entry: CachedResult) -> None:
        """Insert or overwrite the row for (url_hash, tier). Last writer wins."""
        try:
            await self._db.execute(
                f"INSERT INTO analysis_cache ({_CACHE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0) "
                "ON CONFLICT (url_hash, tier) DO UPDATE SET "
                "url = excluded.url, "
                "content_hash = excluded.content_hash, "
                "last_modified = excluded.last_modified, "
                "etag = excluded.etag, "
                "payload = excluded.payload, "
                "cached_at = excluded.cached_at, "
                "expires_at = excluded.expires_at, "
                "hit_count = 0",
                (
                    entry.url_hash,
                    entry.tier.value,
                    entry.normalized_url,
                    entry.content_hash,
                    entry.validators.last_modified,
                    entry.validators.etag,
                    entry.payload.model_dump_json(),
                    entry.cached_at.isoformat(),
                    entry.expires_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"cache write failed: {exc}") from exc

    async def increment_hit(
        self,
        url_hash: str,
        tier: Tier,
        content_hash: str,
        now: datetime,
        validators: Validators | None = None,
    ) -> int | None:
        """Bump hit_count atomically and return the new value.

        Non-empty ``validators`` fields replace the stored ones in the same
        statement. Returns ``None`` when the row expired, was swept, or was
        overwritten with different content since it was read.
        """
        learned = validators or Validators()
        try:
            cursor = await self._db.execute(
                "UPDATE analysis_cache SET hit_count = hit_count + 1, "
                "last_modified = COALESCE(?, last_modified), etag = COALESCE(?, etag) "
                "WHERE url_hash = ? AND tier = ? AND content_hash = ? AND expires_at > ? "
                "RETURNING hit_count",
                (
                    learned.last_modified,
                    learned.etag,
                    url_hash,
                    tier.value,
                    content_hash,
                    now.isoformat(),
                ),
            )
            row = await cursor.fetchone()
            await cursor.close()
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"cache update failed: {exc}") from exc
        return row[0] if row is not None else None

    async def delete_expired(self, now: datetime) -> int:
        try:
            cursor = await self._db.execute(
                "DELETE FROM analysis_cache WHERE expires_at <= ?", (now.isoformat(),)
            )
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"cache sweep failed: {exc}") from exc
        return deleted

    async def stats(self, now: datetime, tier: Tier | None = None) -> CacheStats:
        where, params = ("WHERE tier = ?", [tier.value]) if tier is not None else ("", [])
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*), COALESCE(SUM(hit_count), 0), COALESCE(AVG(hit_count), 0), "
                "COALESCE(SUM(CASE WHEN expires_at > ? THEN 1 ELSE 0 END), 0), "
                "COALESCE(SUM(CASE WHEN expires_at <= ? THEN 1 ELSE 0 END), 0) "
                f"FROM analysis_cache {where}",
                (now.isoformat(), now.isoformat(), *params),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"cache stats failed: {exc}") from exc
        if row is None:
            return CacheStats()
        return CacheStats(
            total_entries=row[0],
            total_hits=row[1],
            avg_hits_per_entry=round(float(row[2]), 2),
            active_entries=row[3],
            expired_entries=row[4],
        )

    # ------------------------------------------------------------------
    # Maintenance metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, key: str) -> str | None:
        try:
            cursor = await self._db.execute(
                "SELECT value FROM server_metadata WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"metadata read failed: {exc}") from exc
        return row[0] if row is not None else None

    async def set_metadata(self, key: str, value: str) -> None:
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO server_metadata (key, value) VALUES (?, ?)",
                (key, value),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.CACHE_STORE_ERROR, f"metadata write failed: {exc}") from exc


class SqliteUsageStore:
    """SQLite-backed store implementing UsageStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def get(self, user_id: str, day: date) -> UsageCounter | None:
        try:
            cursor = await self._db.execute(
                f"SELECT {_USAGE_COLUMNS} FROM usage_counters WHERE user_id = ? AND date = ?",
                (user_id, day.isoformat()),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.USAGE_STORE_ERROR, f"usage read failed: {exc}") from exc
        return _row_to_usage(row) if row is not None else None

    async def increment(self, user_id: str, day: date, delta: UsageDelta) -> UsageCounter:
        """Insert today's row or add to it, in one statement.

        ``analyses_count`` always moves by exactly one per call.
        """
        now = datetime.now(UTC).isoformat()
        try:
            cursor = await self._db.execute(
                "INSERT INTO usage_counters "
                f"({_USAGE_COLUMNS}, created_at, updated_at) "
                "VALUES (?, ?, 1, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (user_id, date) DO UPDATE SET "
                "analyses_count = analyses_count + 1, "
                "pages_processed = pages_processed + excluded.pages_processed, "
                "ai_calls_count = ai_calls_count + excluded.ai_calls_count, "
                "html_extractions_count = html_extractions_count + excluded.html_extractions_count, "
                "cache_hits = cache_hits + excluded.cache_hits, "
                "total_cost_cents = total_cost_cents + excluded.total_cost_cents, "
                "updated_at = excluded.updated_at "
                f"RETURNING {_USAGE_COLUMNS}",
                (
                    user_id,
                    day.isoformat(),
                    delta.pages_processed,
                    delta.ai_calls,
                    delta.html_extractions,
                    delta.cache_hits,
                    delta.cost_cents,
                    now,
                    now,
                ),
            )
            row = await cursor.fetchone()
            await cursor.close()
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.USAGE_STORE_ERROR, f"usage write failed: {exc}") from exc
        if row is None:
            raise StoreError(ErrorCode.USAGE_STORE_ERROR, "usage upsert returned no row")
        return _row_to_usage(row)

    async def range(self, user_id: str, start: date, end: date) -> list[UsageCounter]:
        """Rows for ``user_id`` with ``start <= date <= end``, oldest first."""
        try:
            cursor = await self._db.execute(
                f"SELECT {_USAGE_COLUMNS} FROM usage_counters "
                "WHERE user_id = ? AND date >= ? AND date <= ? ORDER BY date",
                (user_id, start.isoformat(), end.isoformat()),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(ErrorCode.USAGE_STORE_ERROR, f"usage read failed: {exc}") from exc
        return [_row_to_usage(row) for row in rows]
