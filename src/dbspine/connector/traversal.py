"""
Crawl state machine.

Manifesto:
    The traversal manager is the only thing a host talks to. It is driven
    by two calls, ``start_traversal()`` and ``resume_traversal(token)``,
    issued one at a time. Each call either returns a batch of documents
    for the consumer or says the cycle is complete, in which case the
    host waits out its retry delay before resuming.

    - **Fetch only when the queue is empty:** prefetch is 3x the batch hint
    - **Classify once:** the first non-empty batch fixes the execution mode
    - **All or nothing per batch:** a bad row aborts the batch and rewinds
      the cursor so the same rows are read again next time
    - **Persist at completion:** state is saved only when the source is
      drained and nothing is left to send

Architecture:
    ::

        IDLE ──start/resume──▶ FETCHING ──rows──────────▶ DRAINING
                                  │                           │
                                  └─no rows, queue empty─▶ CYCLE_COMPLETE
                                                          (save state)

        resume_traversal(T):  reconcile(T)  →  traverse

Examples:
    >>> manager = TraversalManager(source, db_name="hr", hostname="db1",
    ...                            primary_keys=["id"])
    >>> result = manager.start_traversal()
    >>> while isinstance(result, DocumentBatch):
    ...     for doc in result:
    ...         feed(doc)
    ...     result = manager.resume_traversal(result.checkpoint())
    >>> result.record_count
    1200

Tags:
    traversal, state-machine, checkpoint, incremental, db-spine

Doc-Types:
    - API Reference
    - Operation Patterns Guide
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from dbspine.connector.checkpoint import Reconciliation, current_token, reconcile
from dbspine.connector.document import Document
from dbspine.connector.fetcher import BatchFetcher, SqlQuerySource, utc_now
from dbspine.connector.materializer import materialize
from dbspine.connector.modes import ExecutionMode, detect_execution_mode
from dbspine.connector.state import GlobalState, JsonFileStateStore, MemoryStateStore
from dbspine.core.errors import (
    InvalidConfigError,
    SpineError,
    StatePersistenceError,
    ValidationError,
)
from dbspine.core.logging import LogContext, get_logger
from dbspine.core.protocols import RowRenderer, RowSource, StateStore
from dbspine.core.settings import ConnectorSettings

logger = get_logger(__name__)

PREFETCH_FACTOR = 3


class TraversalPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DRAINING = "draining"
    CYCLE_COMPLETE = "cycle_complete"


@dataclass(frozen=True, slots=True)
class CycleComplete:
    """No more work this cycle: the source is drained and nothing is queued."""

    record_count: int
    completed_at: datetime | None = None


class DocumentBatch:
    """
    The consumer's view of the queue.

    Documents taken through ``next_document()`` (or iteration) move into
    the in-flight list until the next resume confirms them.
    ``checkpoint()`` returns the token the consumer should persist once it
    has absorbed what it took.
    """

    def __init__(self, state: GlobalState) -> None:
        self._state = state

    def next_document(self) -> Document | None:
        return self._state.drain_one()

    def take_all(self) -> list[Document]:
        return self._state.drain_all()

    def checkpoint(self) -> str:
        return current_token(self._state)

    def __iter__(self) -> Iterator[Document]:
        while (doc := self.next_document()) is not None:
            yield doc

    def __len__(self) -> int:
        return len(self._state.documents)


class TraversalManager:
    """
    Drives incremental traversal of one relational source.

    Args:
        source: Partial-query primitive for the source table.
        db_name: Logical database name, used in display URLs.
        hostname: Host used in display URLs.
        primary_keys: Columns forming the document identity, matched
            case-insensitively against row columns.
        store: Persisted state blob; defaults to an in-memory store.
        renderer: Row renderer; defaults to the XML renderer.
        base_url: Prefix for ``dbconn_url`` values in metadata-URL mode.
        batch_hint: Consumer batch size hint; fetches ask for three times this.
        clock: Current-time source for fetch timestamps.

    Raises:
        StatePersistenceError: the persisted state could not be loaded.
    """

    def __init__(
        self,
        source: RowSource,
        *,
        db_name: str,
        hostname: str,
        primary_keys: Sequence[str],
        store: StateStore | None = None,
        renderer: RowRenderer | None = None,
        base_url: str | None = None,
        batch_hint: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db_name = db_name
        self.hostname = hostname
        self.primary_keys = list(primary_keys)
        self.base_url = base_url
        self._renderer = renderer
        self._store: StateStore = store if store is not None else MemoryStateStore()
        self._fetcher = BatchFetcher(source, clock=clock)
        self._mode: ExecutionMode | None = None
        self._phase = TraversalPhase.IDLE
        self._batch_hint = 100
        self.batch_hint = batch_hint
        self._state = self._load_state()

    @classmethod
    def from_settings(
        cls,
        settings: ConnectorSettings,
        *,
        source: RowSource | None = None,
        store: StateStore | None = None,
    ) -> TraversalManager:
        """Build a manager from :class:`ConnectorSettings`."""
        if source is None:
            from sqlalchemy import create_engine

            source = SqlQuerySource(create_engine(settings.database_url), settings.sql_query)
        return cls(
            source,
            db_name=settings.db_name,
            hostname=settings.hostname,
            primary_keys=settings.primary_keys,
            store=store if store is not None else JsonFileStateStore(settings.state_path),
            base_url=settings.base_url,
            batch_hint=settings.batch_hint,
        )

    # -- properties ----------------------------------------------------------

    @property
    def state(self) -> GlobalState:
        return self._state

    @property
    def execution_mode(self) -> ExecutionMode | None:
        """Mode fixed by the first non-empty batch, ``None`` until then."""
        return self._mode

    @property
    def phase(self) -> TraversalPhase:
        return self._phase

    @property
    def batch_hint(self) -> int:
        return self._batch_hint

    @batch_hint.setter
    def batch_hint(self, value: int) -> None:
        if not isinstance(value, int) or value <= 0:
            raise InvalidConfigError("batch_hint", value, f"Batch hint must be positive, got {value!r}")
        self._batch_hint = value

    # -- traversal entry points ----------------------------------------------

    def start_traversal(self) -> DocumentBatch | CycleComplete:
        """Forget previous progress and traverse from the first row."""
        with LogContext(db_name=self.db_name):
            logger.info("traversal_started")
            self._state.clear()
            try:
                self._store.clear()
            except StatePersistenceError:
                raise
            except Exception as exc:
                raise StatePersistenceError("Could not clear old state", cause=exc).with_context(
                    db_name=self.db_name, phase="start"
                ) from exc
            return self._traverse()

    def resume_traversal(self, checkpoint: str) -> DocumentBatch | CycleComplete:
        """Reconcile the consumer's *checkpoint* with local state, then traverse."""
        with LogContext(db_name=self.db_name):
            logger.info("traversal_resumed", checkpoint=checkpoint)
            self.reconcile(checkpoint)
            return self._traverse()

    def reconcile(self, checkpoint: str) -> Reconciliation:
        return reconcile(self._state, checkpoint)

    def iter_documents(self) -> Iterator[Document]:
        """
        Yield every remaining document of the current sweep.

        Fetches batch after batch until the source returns no rows. Yielded
        documents count as delivered and never enter the in-flight list, so
        documents an earlier :class:`DocumentBatch` handed out stay in flight
        until a checkpoint reconciles them. The sweep is closed by the next
        ``start_traversal``/``resume_traversal`` call.
        """
        while True:
            if len(self._state.documents) == 0 and not self._fetch_and_add():
                self._phase = TraversalPhase.IDLE
                return
            self._phase = TraversalPhase.DRAINING
            yield self._state.documents.pop_head()

    # -- internals -----------------------------------------------------------

    def _traverse(self) -> DocumentBatch | CycleComplete:
        documents = self._state.documents
        if len(documents) == 0:
            if self._state.closed_sweep_count is not None:
                return self._complete(self._state.closed_sweep_count)
            self._phase = TraversalPhase.FETCHING
            rows = self._fetch_and_add()
            if not rows:
                record_count = self._state.record_count
                deletions = self._state.mark_new_traversal()
                if len(documents) == 0:
                    return self._complete(record_count)
                logger.info("deletions_queued", count=deletions)

        self._phase = TraversalPhase.DRAINING
        logger.info("documents_queued", count=len(documents))
        return DocumentBatch(self._state)

    def _complete(self, record_count: int) -> CycleComplete:
        self._state.closed_sweep_count = None
        self._save_state()
        self._phase = TraversalPhase.CYCLE_COMPLETE
        logger.info("crawl_cycle_completed", record_count=record_count)
        return CycleComplete(record_count, self._state.query_execution_time)

    def _fetch_and_add(self) -> list[dict[str, Any]]:
        state = self._state
        before = (state.cursor, state.query_execution_time, state.record_count)
        rows = self._fetcher.fetch(state, PREFETCH_FACTOR * self._batch_hint)
        if not rows:
            return rows

        if self._mode is None:
            self._mode = detect_execution_mode(rows[0])
            if self._mode is ExecutionMode.METADATA_URL:
                state.metadata_url_feed = True
            logger.info("execution_mode_detected", mode=self._mode.value)

        docs = []
        for offset, row in enumerate(rows):
            try:
                docs.append(
                    materialize(
                        self._mode,
                        row,
                        self.primary_keys,
                        self.db_name,
                        self.hostname,
                        renderer=self._renderer,
                        base_url=self.base_url,
                    )
                )
            except SpineError as exc:
                state.cursor, state.query_execution_time, state.record_count = before
                exc.with_context(
                    db_name=self.db_name, phase="materialize", row_offset=before[0] + offset
                )
                raise
            except Exception as exc:
                state.cursor, state.query_execution_time, state.record_count = before
                raise ValidationError(
                    f"Row at offset {before[0] + offset} could not be materialized: {exc}",
                    cause=exc,
                ).with_context(
                    db_name=self.db_name, phase="materialize", row_offset=before[0] + offset
                ) from exc

        for doc in docs:
            state.add_document(doc)
        return rows

    def _load_state(self) -> GlobalState:
        try:
            blob = self._store.load()
        except StatePersistenceError:
            raise
        except Exception as exc:
            raise StatePersistenceError("Could not load state", cause=exc).with_context(
                db_name=self.db_name, phase="load"
            ) from exc
        if blob is None:
            return GlobalState()
        return GlobalState.from_dict(blob)

    def _save_state(self) -> None:
        try:
            self._store.save(self._state.to_dict())
        except StatePersistenceError:
            raise
        except Exception as exc:
            raise StatePersistenceError("Could not save state", cause=exc).with_context(
                db_name=self.db_name, phase="save"
            ) from exc


__all__ = [
    "PREFETCH_FACTOR",
    "TraversalPhase",
    "CycleComplete",
    "DocumentBatch",
    "TraversalManager",
]
