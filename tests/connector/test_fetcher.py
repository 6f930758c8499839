"""
Tests for dbspine.connector.fetcher module.

Tests cover:
- Cursor advance and fetch timestamps
- Source failures leave state untouched
- Non-positive limits
- SqlQuerySource paging against SQLite
"""

import pytest
from sqlalchemy import create_engine, text

from dbspine.connector.fetcher import BatchFetcher, SqlQuerySource
from dbspine.connector.state import GlobalState
from dbspine.core.errors import InvalidConfigError, SourceQueryError
from tests._support.sources import ListRowSource, StepClock, make_rows


class TestBatchFetcher:
    def setup_method(self):
        self.source = ListRowSource(make_rows(5))
        self.clock = StepClock()
        self.fetcher = BatchFetcher(self.source, clock=self.clock)
        self.state = GlobalState()

    def test_fetch_advances_cursor(self):
        start = self.clock.now
        rows = self.fetcher.fetch(self.state, 3)
        assert [r["id"] for r in rows] == [1, 2, 3]
        assert self.state.cursor == 3
        assert self.state.record_count == 3
        assert self.state.query_execution_time == start
        assert self.source.calls == [(0, 3)]

    def test_short_and_empty_batches(self):
        self.fetcher.fetch(self.state, 3)
        assert len(self.fetcher.fetch(self.state, 3)) == 2
        assert self.fetcher.fetch(self.state, 3) == []
        assert self.state.cursor == 5
        assert self.source.calls == [(0, 3), (3, 3), (5, 3)]

    def test_source_failure_wrapped_state_untouched(self):
        self.fetcher.fetch(self.state, 3)
        before = (self.state.cursor, self.state.query_execution_time, self.state.record_count)
        self.source.fail_with = RuntimeError("connection reset")

        with pytest.raises(SourceQueryError) as exc_info:
            self.fetcher.fetch(self.state, 3)

        error = exc_info.value
        assert isinstance(error.cause, RuntimeError)
        assert error.retryable is True
        assert error.context.phase == "fetch"
        assert error.context.metadata == {"cursor": 3, "limit": 3}
        assert (self.state.cursor, self.state.query_execution_time, self.state.record_count) == before

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit(self, limit):
        with pytest.raises(InvalidConfigError):
            self.fetcher.fetch(self.state, limit)
        assert self.source.calls == []


@pytest.mark.integration
class TestSqlQuerySource:
    @pytest.fixture
    def engine(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'source.db'}")
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)"))
            conn.execute(
                text("INSERT INTO people (id, name) VALUES (:id, :name)"),
                [{"id": i, "name": f"person-{i}"} for i in range(1, 8)],
            )
        yield engine
        engine.dispose()

    def test_pages_through_query(self, engine):
        source = SqlQuerySource(engine, "SELECT id, name FROM people ORDER BY id;")
        assert source.query == "SELECT id, name FROM people ORDER BY id"
        first = source.execute_partial_query(0, 3)
        assert first == [
            {"id": 1, "name": "person-1"},
            {"id": 2, "name": "person-2"},
            {"id": 3, "name": "person-3"},
        ]
        assert [r["id"] for r in source.execute_partial_query(6, 3)] == [7]
        assert source.execute_partial_query(7, 3) == []

    def test_bad_sql_surfaces_through_fetcher(self, engine):
        fetcher = BatchFetcher(SqlQuerySource(engine, "SELECT * FROM missing_table"))
        with pytest.raises(SourceQueryError):
            fetcher.fetch(GlobalState(), 3)


def test_sources_satisfy_row_source_protocol(tmp_path):
    from dbspine.core.protocols import RowSource

    engine = create_engine(f"sqlite:///{tmp_path / 'p.db'}")
    assert isinstance(SqlQuerySource(engine, "SELECT 1"), RowSource)
    assert isinstance(ListRowSource(), RowSource)
