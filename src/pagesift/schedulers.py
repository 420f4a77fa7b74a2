"""Background scheduler coroutine for expired cache entry sweeps."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pagesift.state import AppState

log = structlog.get_logger()


async def run_cache_sweep_scheduler(state: AppState) -> None:
    """Sweep expired cache entries at startup, then on the configured interval.

    ``sweep_if_due`` skips the work when another process swept recently, so
    several servers sharing one database do not repeat it.
    """
    interval_hours = state.settings.cache.sweep_interval_hours

    while True:
        try:
            await state.cache.sweep_if_due(interval_hours)
        except Exception:
            log.warning("cache_sweep_scheduler_error", exc_info=True)
        await asyncio.sleep(interval_hours * 3600)
