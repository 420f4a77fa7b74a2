"""Tool handler for analyze_urls.

Receives AppState, validates the request, delegates to the analysis pipeline
and returns a structured dict. No MCP or FastMCP imports; server.py handles
the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pagesift.errors import ErrorCode, PageSiftError
from pagesift.models.tools import MAX_URLS_PER_CALL, AnalyzeUrlsInput, AnalyzeUrlsOutput

if TYPE_CHECKING:
    from pagesift.state import AppState


async def handle(urls: list[str], user_id: str, tier: str, state: AppState) -> dict:
    """Handle an analyze_urls tool call."""
    log = structlog.get_logger().bind(tool="analyze_urls", user_id=user_id, tier=tier)
    log.info("handler_called", url_count=len(urls))

    try:
        validated = AnalyzeUrlsInput(urls=urls, user_id=user_id, tier=tier)
    except ValueError as exc:
        raise PageSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                f"Provide 1-{MAX_URLS_PER_CALL} http(s) URLs, a non-empty user_id and "
                "a tier of starter, coffee, growth or scale."
            ),
            recoverable=False,
        ) from exc

    result = await state.pipeline.run(validated.urls, validated.user_id, validated.tier)
    log.info(
        "analyze_complete",
        page_count=len(result.pages),
        cached_pages=result.metrics.cached_pages,
    )

    output = AnalyzeUrlsOutput(tier=result.tier, pages=result.pages, metrics=result.metrics)
    return output.model_dump(mode="json")
