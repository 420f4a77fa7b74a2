"""Tool handler for cache_stats."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pagesift.errors import ErrorCode, PageSiftError, StoreError
from pagesift.models.tools import CacheStatsInput, CacheStatsOutput

if TYPE_CHECKING:
    from pagesift.state import AppState


async def handle(tier: str | None, state: AppState) -> dict:
    """Handle a cache_stats tool call."""
    log = structlog.get_logger().bind(tool="cache_stats", tier=tier)
    log.info("handler_called")

    try:
        validated = CacheStatsInput(tier=tier)
    except ValueError as exc:
        raise PageSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Omit tier, or pass one of starter, coffee, growth or scale.",
            recoverable=False,
        ) from exc

    stats = await state.cache.stats(validated.tier)
    if stats is None:
        raise StoreError(ErrorCode.CACHE_STORE_ERROR, "Cache statistics are unavailable.")

    output = CacheStatsOutput(tier=validated.tier, stats=stats)
    return output.model_dump(mode="json")
