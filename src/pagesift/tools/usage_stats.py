"""Tool handler for usage_stats."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pagesift.errors import ErrorCode, PageSiftError, StoreError
from pagesift.models.tools import UsageStatsInput, UsageStatsOutput

if TYPE_CHECKING:
    from pagesift.state import AppState


async def handle(user_id: str, days: int, state: AppState) -> dict:
    """Handle a usage_stats tool call."""
    log = structlog.get_logger().bind(tool="usage_stats", user_id=user_id, days=days)
    log.info("handler_called")

    try:
        validated = UsageStatsInput(user_id=user_id, days=days)
    except ValueError as exc:
        raise PageSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a non-empty user_id and days between 1 and 365.",
            recoverable=False,
        ) from exc

    stats = await state.ledger.usage_stats(validated.user_id, validated.days)
    if stats is None:
        raise StoreError(ErrorCode.USAGE_STORE_ERROR, "Usage statistics are unavailable.")

    output = UsageStatsOutput(user_id=validated.user_id, days=validated.days, stats=stats)
    return output.model_dump(mode="json")
