"""
Batch cursor fetching.

``BatchFetcher`` asks a :class:`~dbspine.core.protocols.RowSource` for the
next slice of rows and advances the traversal cursor. ``SqlQuerySource``
is the SQLAlchemy-backed source: it pages through the operator's query
with ``LIMIT``/``OFFSET``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from dbspine.connector.state import GlobalState
from dbspine.core.errors import InvalidConfigError, SourceQueryError
from dbspine.core.logging import get_logger
from dbspine.core.protocols import RowSource

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class SqlQuerySource:
    """
    Row source over an arbitrary ``SELECT``.

    The query is wrapped as a subquery so operator SQL with its own
    ``ORDER BY`` pages correctly. The query must order rows
    deterministically for offsets to be meaningful.

    Args:
        engine: SQLAlchemy engine for the source database.
        query: The operator's ``SELECT`` statement.
    """

    def __init__(self, engine: Engine, query: str) -> None:
        self._engine = engine
        self._query = query.strip().rstrip(";")
        self._paged = text(
            f"SELECT * FROM ({self._query}) AS dbspine_src LIMIT :limit OFFSET :offset"
        )

    @property
    def query(self) -> str:
        return self._query

    def execute_partial_query(self, cursor: int, limit: int) -> list[dict[str, Any]]:
        with self._engine.connect() as conn:
            result = conn.execute(self._paged, {"limit": limit, "offset": cursor})
            return [dict(row) for row in result.mappings()]


class BatchFetcher:
    """
    Fetches bounded slices and moves the cursor forward.

    No retries: any exception from the source becomes a
    :class:`SourceQueryError` and the state is left untouched.

    Args:
        source: Partial-query primitive.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(self, source: RowSource, clock: Callable[[], datetime] = utc_now) -> None:
        self.source = source
        self._clock = clock

    def fetch(self, state: GlobalState, limit: int) -> list[dict[str, Any]]:
        """Read up to *limit* rows at ``state.cursor``; an empty list means end of source."""
        if limit <= 0:
            raise InvalidConfigError("limit", limit, f"Fetch limit must be positive, got {limit}")

        cursor = state.cursor
        started_at = self._clock()
        try:
            rows = self.source.execute_partial_query(cursor, limit)
        except Exception as exc:
            raise SourceQueryError(
                f"Partial query failed at cursor {cursor}: {exc}", cause=exc
            ).with_context(phase="fetch", cursor=cursor, limit=limit) from exc

        rows = list(rows or [])
        state.advance(len(rows), started_at)
        logger.info("batch_fetched", cursor=cursor, limit=limit, rows=len(rows))
        return rows


__all__ = ["utc_now", "SqlQuerySource", "BatchFetcher"]
