"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite
    import httpx

    from pagesift.cache import AnalysisCache
    from pagesift.config import Settings
    from pagesift.pipeline import AnalysisPipeline
    from pagesift.quota import QuotaLedger


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    cache: AnalysisCache
    ledger: QuotaLedger
    pipeline: AnalysisPipeline
    db: aiosqlite.Connection | None = None
    http_client: httpx.AsyncClient | None = None
