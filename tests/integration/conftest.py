"""Integration test fixtures.

Provides a fully wired AppState over in-memory SQLite (built by the same
``build_state`` the server lifespan uses) and an env dict for subprocess
tests against the real stdio server.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from pagesift.config import Settings
from pagesift.server import build_state

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from pagesift.state import AppState


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points the database at an isolated tmp directory so a developer's local
    pagesift.yaml or data directory never leaks into the run.
    """
    env = os.environ.copy()
    env["PAGESIFT__STORAGE__DB_PATH"] = str(tmp_path / "pagesift.db")
    env["PAGESIFT__LOGGING__LEVEL"] = "WARNING"
    return env


@pytest.fixture()
async def app_state() -> AsyncGenerator[AppState, None]:
    """Full AppState with real stores, fetcher, cache, ledger and pipeline."""
    settings = Settings(pipeline={"batch_delay_seconds": 0})
    async with aiosqlite.connect(":memory:") as db:
        state = await build_state(settings, db)
        try:
            yield state
        finally:
            assert state.http_client is not None
            await state.http_client.aclose()
