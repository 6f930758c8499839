"""
Traversal state and its persistence.

Manifesto:
    A crawl must survive a process restart. ``GlobalState`` holds
    everything needed to pick up where the last completed cycle ended:
    the cursor, the last fetch time, queued and in-flight documents, and
    the ids seen in the previous sweep (for deletion detection).

    - **Persist at cycle boundaries only:** never mid-batch
    - **Persistence-agnostic:** JSON file or in-memory (tests)
    - **Versioned blob:** ``version`` key guards the on-disk format

Architecture:
    ::

        GlobalState ──to_dict()──▶ StateStore.save(blob)
                    ◀─from_dict()─ StateStore.load()

        StateStore implementations:
        ├── JsonFileStateStore(path)   atomic write via temp file + replace
        └── MemoryStateStore()         dict copy, for tests

Examples:
    >>> state = GlobalState()
    >>> state.cursor
    0
    >>> store = MemoryStateStore()
    >>> store.save(state.to_dict())
    >>> GlobalState.from_dict(store.load()).cursor
    0

Tags:
    state, persistence, checkpoint, resume, db-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from dbspine.connector.document import Document, delete_doc
from dbspine.connector.queue import DocumentQueue
from dbspine.core.errors import StatePersistenceError
from dbspine.core.logging import get_logger

logger = get_logger(__name__)

STATE_VERSION = 1


class GlobalState:
    """
    Mutable traversal state for one source.

    Not thread-safe; one traversal manager owns one state and callers
    serialize access to the manager.

    Attributes:
        cursor: Offset of the next unread row in the current sweep.
        query_execution_time: Start time of the most recent fetch.
        in_flight_query_time: Fetch time that was current when the
            documents now in flight were handed to the consumer.
        record_count: Rows read during the current sweep.
        metadata_url_feed: Set when the source was classified as a
            metadata-and-URL feed.
        closed_sweep_count: Record count of a sweep that was closed with
            deletion markers still queued, ``None`` otherwise. Once the
            markers drain the cycle completes without starting a new sweep.
        documents: Queue and in-flight tracker.
    """

    def __init__(self) -> None:
        self.cursor = 0
        self.query_execution_time: datetime | None = None
        self.in_flight_query_time: datetime | None = None
        self.record_count = 0
        self.metadata_url_feed = False
        self.documents = DocumentQueue()
        self.closed_sweep_count: int | None = None
        self._current_sweep_ids: dict[str, None] = {}
        self._previous_sweep_ids: dict[str, None] = {}

    # -- mutation ------------------------------------------------------------

    def advance(self, rows: int, query_time: datetime) -> None:
        """Record a fetch of *rows* rows that started at *query_time*."""
        self.cursor += rows
        self.record_count += rows
        self.query_execution_time = query_time

    def add_document(self, doc: Document) -> None:
        self.documents.enqueue(doc)
        if doc.doc_id is not None:
            self._current_sweep_ids[doc.doc_id] = None

    def drain_one(self) -> Document | None:
        """Hand the queue head to the consumer, remembering the fetch time."""
        was_idle = self.documents.in_flight_count == 0
        doc = self.documents.drain_one()
        if doc is not None and was_idle:
            self.in_flight_query_time = self.query_execution_time
        return doc

    def drain_all(self) -> list[Document]:
        was_idle = self.documents.in_flight_count == 0
        docs = self.documents.move_all_to_in_flight()
        if docs and was_idle:
            self.in_flight_query_time = self.query_execution_time
        return docs

    def mark_new_traversal(self) -> int:
        """
        Close the current sweep and prepare the next one.

        Ids seen in the previous sweep but not in this one get a deletion
        marker on the queue. The cursor and record count go back to zero.

        Returns:
            Number of deletion markers queued.
        """
        missing = [
            doc_id for doc_id in self._previous_sweep_ids
            if doc_id not in self._current_sweep_ids
        ]
        for doc_id in missing:
            self.documents.enqueue(delete_doc(doc_id))
        self.closed_sweep_count = self.record_count if missing else None
        self._previous_sweep_ids = self._current_sweep_ids
        self._current_sweep_ids = {}
        self.cursor = 0
        self.record_count = 0
        return len(missing)

    def clear(self) -> None:
        """Reset for an explicit new crawl: cursor, counters and queues."""
        self.cursor = 0
        self.record_count = 0
        self.query_execution_time = None
        self.in_flight_query_time = None
        self.closed_sweep_count = None
        self.documents.clear()
        self._current_sweep_ids = {}

    # -- serialisation -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "cursor": self.cursor,
            "query_execution_time": _iso(self.query_execution_time),
            "in_flight_query_time": _iso(self.in_flight_query_time),
            "record_count": self.record_count,
            "metadata_url_feed": self.metadata_url_feed,
            "closed_sweep_count": self.closed_sweep_count,
            "queue": [doc.to_dict() for doc in self.documents.queued],
            "in_flight": [doc.to_dict() for doc in self.documents.in_flight],
            "current_sweep_ids": list(self._current_sweep_ids),
            "previous_sweep_ids": list(self._previous_sweep_ids),
        }

    @classmethod
    def from_dict(cls, blob: dict[str, Any]) -> GlobalState:
        version = blob.get("version")
        if version != STATE_VERSION:
            raise StatePersistenceError(f"Unsupported state version: {version!r}")
        state = cls()
        state.cursor = int(blob.get("cursor", 0))
        state.query_execution_time = _parse_iso(blob.get("query_execution_time"))
        state.in_flight_query_time = _parse_iso(blob.get("in_flight_query_time"))
        state.record_count = int(blob.get("record_count", 0))
        state.metadata_url_feed = bool(blob.get("metadata_url_feed", False))
        closed = blob.get("closed_sweep_count")
        state.closed_sweep_count = int(closed) if closed is not None else None
        state.documents = DocumentQueue(
            queue=[Document.from_dict(d) for d in blob.get("queue", [])],
            in_flight=[Document.from_dict(d) for d in blob.get("in_flight", [])],
        )
        state._current_sweep_ids = dict.fromkeys(blob.get("current_sweep_ids", []))
        state._previous_sweep_ids = dict.fromkeys(blob.get("previous_sweep_ids", []))
        return state


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# State stores
# ---------------------------------------------------------------------------


class MemoryStateStore:
    """In-memory state store. Keeps a deep copy of the last saved blob."""

    def __init__(self, blob: dict[str, Any] | None = None) -> None:
        self._blob = copy.deepcopy(blob)
        self.saves = 0

    def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._blob)

    def save(self, blob: dict[str, Any]) -> None:
        self._blob = copy.deepcopy(blob)
        self.saves += 1

    def clear(self) -> None:
        self._blob = None


class JsonFileStateStore:
    """
    State store backed by a JSON file.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash mid-write leaves the previous state
    intact. OS and decoding errors surface as
    :class:`StatePersistenceError`.

    Args:
        path: Location of the state file. Parent directories are created
            on first save.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with self.path.open(encoding="utf-8") as fh:
                blob = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StatePersistenceError(
                f"Could not load state from {self.path}", cause=exc
            ) from exc
        logger.info("state_loaded", path=str(self.path))
        return blob

    def save(self, blob: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(blob, fh)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise StatePersistenceError(
                f"Could not save state to {self.path}", cause=exc
            ) from exc
        logger.info("state_saved", path=str(self.path))

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StatePersistenceError(
                f"Could not clear state at {self.path}", cause=exc
            ) from exc


__all__ = [
    "STATE_VERSION",
    "GlobalState",
    "MemoryStateStore",
    "JsonFileStateStore",
]
