"""
Shared pytest fixtures for db-spine tests.

This module provides:
- Environment isolation for settings and structlog configuration
- In-memory row sources and a deterministic clock
- A traversal manager wired to a memory state store
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import structlog

from dbspine.connector.state import MemoryStateStore
from dbspine.connector.traversal import TraversalManager
from dbspine.core.settings import clear_settings_cache
from tests._support.sources import ListRowSource, StepClock, make_rows


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything not explicitly marked as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep DBSPINE_* env vars, .env files and structlog config per test."""
    for key in list(os.environ):
        if key.startswith("DBSPINE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()


# =============================================================================
# Sources and managers
# =============================================================================


@pytest.fixture
def row_source() -> ListRowSource:
    return ListRowSource(make_rows(5))


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def memory_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def manager(row_source, memory_store, clock) -> TraversalManager:
    """Manager over five rows with batch hint 1 (fetches of three rows)."""
    return TraversalManager(
        row_source,
        db_name="testdb_",
        hostname="localhost",
        primary_keys=["id"],
        store=memory_store,
        batch_hint=1,
        clock=clock,
    )
