"""Tool handler for check_quota. Read-only: never counts an analysis."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pagesift.errors import ErrorCode, PageSiftError
from pagesift.models.tools import MAX_URLS_PER_CALL, CheckQuotaInput, CheckQuotaOutput
from pagesift.quota import estimate_cost_cents

if TYPE_CHECKING:
    from pagesift.state import AppState


async def handle(user_id: str, tier: str, pages: int | None, state: AppState) -> dict:
    """Handle a check_quota tool call.

    ``pages`` is how many URLs the caller plans to submit; without it the
    estimate assumes a full call. Either way the tier's page ceiling applies.
    """
    log = structlog.get_logger().bind(tool="check_quota", user_id=user_id, tier=tier)
    log.info("handler_called", pages=pages)

    try:
        validated = CheckQuotaInput(user_id=user_id, tier=tier, pages=pages)
    except ValueError as exc:
        raise PageSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a non-empty user_id, a tier of starter, coffee, growth or scale, "
                f"and pages between 1 and {MAX_URLS_PER_CALL}."
            ),
            recoverable=False,
        ) from exc

    check = await state.ledger.check_and_reserve(validated.user_id, validated.tier)
    estimated_pages = min(
        validated.pages or MAX_URLS_PER_CALL, check.limits.max_pages_per_analysis
    )
    output = CheckQuotaOutput(
        **check.model_dump(),
        estimated_pages=estimated_pages,
        estimated_cost_cents=estimate_cost_cents(estimated_pages, validated.tier),
    )
    return output.model_dump(mode="json")
