"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the stdio transport
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import pagesift.tools.analyze_urls as t_analyze
import pagesift.tools.cache_stats as t_cache_stats
import pagesift.tools.check_quota as t_check_quota
import pagesift.tools.usage_stats as t_usage_stats
from pagesift import __version__
from pagesift.analyzer import HtmlContentAnalyzer
from pagesift.cache import AnalysisCache
from pagesift.change_detector import ChangeDetector
from pagesift.config import Settings
from pagesift.dedup import Deduplicator
from pagesift.errors import PageSiftError
from pagesift.fetcher import Fetcher, build_http_client
from pagesift.pipeline import AnalysisPipeline
from pagesift.quota import QuotaLedger
from pagesift.schedulers import run_cache_sweep_scheduler
from pagesift.state import AppState
from pagesift.storage import SqliteCacheStore, SqliteUsageStore, init_db

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def build_state(settings: Settings, db: aiosqlite.Connection) -> AppState:
    """Wire stores, fetcher, cache, ledger and pipeline over an open connection."""
    await init_db(db)

    http_client = build_http_client(settings.fetcher)
    fetcher = Fetcher(http_client, settings.fetcher)
    cache = AnalysisCache(SqliteCacheStore(db), ChangeDetector(fetcher))
    ledger = QuotaLedger(SqliteUsageStore(db), fail_open=settings.quota.fail_open)
    pipeline = AnalysisPipeline(
        cache=cache,
        ledger=ledger,
        fetcher=fetcher,
        analyzer=HtmlContentAnalyzer(),
        deduplicator=Deduplicator(),
        settings=settings.pipeline,
    )
    return AppState(
        settings=settings,
        cache=cache,
        ledger=ledger,
        pipeline=pipeline,
        db=db,
        http_client=http_client,
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info("server_starting", version=__version__)

    db_path = Path(settings.storage.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    state = await build_state(settings, db)

    sweep_task = asyncio.create_task(run_cache_sweep_scheduler(state))

    log.info("server_started", version=__version__, db_path=str(db_path))

    try:
        yield state
    finally:
        sweep_task.cancel()
        with suppress(asyncio.CancelledError):
            await sweep_task
        if state.http_client is not None:
            await state.http_client.aclose()
        await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("pagesift", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: PageSiftError) -> CallToolResult:
    """Convert a PageSiftError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: PageSiftError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def analyze_urls(
    urls: list[str], user_id: str, ctx: Context, tier: str = "starter"
) -> object:
    """Analyze a list of page URLs and return deduplicated, quality-ranked pages.

    Counts as one analysis against the caller's daily allowance. Pages
    analyzed recently and unchanged since are served from cache.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_analyze.handle(urls, user_id, tier, state)
    except PageSiftError as exc:
        _log_tool_error("analyze_urls", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="analyze_urls", exc_info=True)
        raise


@mcp.tool()
async def check_quota(
    user_id: str, ctx: Context, tier: str = "starter", pages: int | None = None
) -> object:
    """Report whether the caller may start another analysis today.

    Also estimates the cost in cents of analyzing ``pages`` URLs (a full call
    when omitted) on the tier.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_check_quota.handle(user_id, tier, pages, state)
    except PageSiftError as exc:
        _log_tool_error("check_quota", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="check_quota", exc_info=True)
        raise


@mcp.tool()
async def cache_stats(ctx: Context, tier: str | None = None) -> object:
    """Summarize the analysis cache, optionally for a single tier."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_cache_stats.handle(tier, state)
    except PageSiftError as exc:
        _log_tool_error("cache_stats", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="cache_stats", exc_info=True)
        raise


@mcp.tool()
async def usage_stats(user_id: str, ctx: Context, days: int = 30) -> object:
    """Summarize the caller's usage over the last ``days`` days."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_usage_stats.handle(user_id, days, state)
    except PageSiftError as exc:
        _log_tool_error("usage_stats", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="usage_stats", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
