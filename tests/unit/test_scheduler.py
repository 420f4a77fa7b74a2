"""Unit tests for the cache sweep scheduler in schedulers.py.

The loop never returns on its own; asyncio.sleep is patched to cancel it
after a fixed number of iterations.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pagesift.config import Settings
from pagesift.schedulers import run_cache_sweep_scheduler
from pagesift.state import AppState


def _make_state(cache: MagicMock) -> AppState:
    return AppState(
        settings=Settings(cache={"sweep_interval_hours": 2}),
        cache=cache,
        ledger=MagicMock(),
        pipeline=MagicMock(),
    )


def _sleep_then_cancel(iterations: int) -> AsyncMock:
    calls = {"n": 0}

    async def fake_sleep(_seconds: float) -> None:
        calls["n"] += 1
        if calls["n"] >= iterations:
            raise asyncio.CancelledError

    return AsyncMock(side_effect=fake_sleep)


class TestCacheSweepScheduler:
    async def test_sweeps_at_startup_then_on_interval(self) -> None:
        cache = MagicMock()
        cache.sweep_if_due = AsyncMock()
        state = _make_state(cache)
        mock_sleep = _sleep_then_cancel(3)

        with (
            patch("pagesift.schedulers.asyncio.sleep", mock_sleep),
            pytest.raises(asyncio.CancelledError),
        ):
            await run_cache_sweep_scheduler(state)

        assert cache.sweep_if_due.await_count == 3
        cache.sweep_if_due.assert_awaited_with(2)
        mock_sleep.assert_awaited_with(2 * 3600)

    async def test_error_does_not_stop_loop(self) -> None:
        cache = MagicMock()
        cache.sweep_if_due = AsyncMock(side_effect=[RuntimeError("boom"), None])
        state = _make_state(cache)

        with (
            patch("pagesift.schedulers.asyncio.sleep", _sleep_then_cancel(2)),
            pytest.raises(asyncio.CancelledError),
        ):
            await run_cache_sweep_scheduler(state)

        assert cache.sweep_if_due.await_count == 2
