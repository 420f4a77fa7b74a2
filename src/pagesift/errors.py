from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pagesift.models.usage import QuotaCheck


class ErrorCode(StrEnum):
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    DISCOVERY_FAILED = "DISCOVERY_FAILED"
    PAGE_ANALYSIS_FAILED = "PAGE_ANALYSIS_FAILED"
    PAGE_FETCH_FAILED = "PAGE_FETCH_FAILED"
    URL_NOT_ALLOWED = "URL_NOT_ALLOWED"
    CACHE_STORE_ERROR = "CACHE_STORE_ERROR"
    USAGE_STORE_ERROR = "USAGE_STORE_ERROR"
    TIMEOUT_EXCEEDED = "TIMEOUT_EXCEEDED"
    INVALID_INPUT = "INVALID_INPUT"


class PageSiftError(Exception):
    """Raised for all expected failure conditions.

    Tool handlers let this propagate to server.py, which serialises it into
    the MCP error response. Inside the pipeline only QUOTA_EXCEEDED,
    DISCOVERY_FAILED and the run-level TIMEOUT_EXCEEDED escape; the other
    codes are recovered where they are raised.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class QuotaExceededError(PageSiftError):
    """Daily analysis allowance used up for the caller's tier."""

    def __init__(self, check: QuotaCheck) -> None:
        upgrade = check.suggested_upgrade
        super().__init__(
            code=ErrorCode.QUOTA_EXCEEDED,
            message=check.reason or "Daily analysis limit reached.",
            suggestion=(
                f"Upgrade to the {upgrade} tier or try again tomorrow."
                if upgrade is not None
                else "Try again tomorrow."
            ),
            recoverable=False,
        )
        self.check = check

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["current_usage"] = self.check.current_usage.model_dump(mode="json")
        payload["error"]["limits"] = self.check.limits.model_dump(mode="json")
        payload["error"]["suggested_upgrade"] = self.check.suggested_upgrade
        return payload


class StoreError(PageSiftError):
    """Persistence failure inside a cache or usage store.

    Stores raise this instead of driver exceptions so that AnalysisCache and
    QuotaLedger can degrade without knowing which engine is behind them.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(
            code=code,
            message=message,
            suggestion="The storage backend may be temporarily unavailable.",
            recoverable=True,
        )
