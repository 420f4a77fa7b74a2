"""Shared test fixtures for the pagesift test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from pagesift.cache import AnalysisCache
from pagesift.config import PipelineSettings
from pagesift.models.cache import ChangeCheck, FetchResult, Validators
from pagesift.models.pages import ContentAnalysis
from pagesift.pipeline import AnalysisPipeline
from pagesift.quota import QuotaLedger
from pagesift.storage import SqliteCacheStore, SqliteUsageStore, init_db

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

DEFAULT_VALIDATORS = Validators(last_modified="Wed, 01 Jan 2026 00:00:00 GMT", etag='"v1"')


class StubChangeDetector:
    """Change detector with a fixed answer that records every call."""

    def __init__(self, changed: bool = False, reason: str = "not_modified") -> None:
        self.changed = changed
        self.reason = reason
        # Answer with these instead of echoing the stored validators
        self.new_validators: Validators | None = None
        self.fetched: FetchResult | None = None
        self.calls: list[tuple[str, Validators, str | None]] = []

    async def has_changed(
        self, url: str, validators: Validators, content_hash: str | None
    ) -> ChangeCheck:
        self.calls.append((url, validators, content_hash))
        return ChangeCheck(
            changed=self.changed,
            new_validators=self.new_validators or validators,
            reason=self.reason,
            fetched=self.fetched,
        )


class FakeFetcher:
    """Serves canned page bodies; unknown URLs answer 404.

    A HEAD whose If-None-Match equals the page's current ETag answers 304.
    """

    def __init__(self) -> None:
        self.pages: dict[str, bytes] = {}
        self.validators: dict[str, Validators] = {}
        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, str]] = []

    async def fetch_conditional(
        self,
        url: str,
        validators: Validators | None = None,
        *,
        method: str = "GET",
        timeout: float | None = None,
    ) -> FetchResult:
        self.calls.append((method, url))
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        if url in self.failures:
            raise self.failures[url]
        body = self.pages.get(url)
        if body is None:
            return FetchResult(status=404)
        current = self.validators.get(url, DEFAULT_VALIDATORS)
        if method == "HEAD" and validators is not None and validators.etag:
            if validators.etag == current.etag:
                return FetchResult(status=304, etag=current.etag)
        return FetchResult(
            status=200,
            body=body if method == "GET" else None,
            last_modified=current.last_modified,
            etag=current.etag,
        )

    def add_page(
        self, url: str, title: str, score: int = 7, category: str = "Documentation"
    ) -> None:
        # Body format understood by FakeAnalyzer
        self.pages[url] = f"{title}|{score}|{category}".encode()

    def gets(self) -> list[str]:
        return [url for method, url in self.calls if method == "GET"]


class FakeAnalyzer:
    """Parses bodies written by FakeFetcher.add_page and records which pages asked for AI."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    async def analyze(self, url: str, html: str, use_ai: bool) -> ContentAnalysis:
        self.calls.append((url, use_ai))
        title, score, category = html.split("|")
        return ContentAnalysis(
            title=title,
            description=f"Detailed description of the page at {url}",
            quality_score=int(score),
            category=category,
            ai_enhanced=use_ai,
        )


@pytest.fixture()
async def db() -> AsyncGenerator[aiosqlite.Connection, None]:
    """In-memory SQLite connection with the pagesift schema applied."""
    async with aiosqlite.connect(":memory:") as conn:
        await init_db(conn)
        yield conn


@pytest.fixture()
def cache_store(db: aiosqlite.Connection) -> SqliteCacheStore:
    return SqliteCacheStore(db)


@pytest.fixture()
def usage_store(db: aiosqlite.Connection) -> SqliteUsageStore:
    return SqliteUsageStore(db)


@pytest.fixture()
def detector() -> StubChangeDetector:
    return StubChangeDetector()


@pytest.fixture()
def cache(cache_store: SqliteCacheStore, detector: StubChangeDetector) -> AnalysisCache:
    return AnalysisCache(cache_store, detector)


@pytest.fixture()
def ledger(usage_store: SqliteUsageStore) -> QuotaLedger:
    return QuotaLedger(usage_store)


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture()
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        batch_delay_seconds=0,
        page_timeout_seconds=1.0,
        run_timeout_seconds=10.0,
        prioritize_urls=False,
    )


@pytest.fixture()
def pipeline(
    cache: AnalysisCache,
    ledger: QuotaLedger,
    fetcher: FakeFetcher,
    analyzer: FakeAnalyzer,
    pipeline_settings: PipelineSettings,
) -> AnalysisPipeline:
    return AnalysisPipeline(
        cache=cache,
        ledger=ledger,
        fetcher=fetcher,
        analyzer=analyzer,
        settings=pipeline_settings,
    )
