"""
Document queue and in-flight tracker.

Documents wait in ``queue`` until the consumer takes them. A taken
document moves to ``in_flight``, where it stays until a checkpoint
confirms the consumer absorbed it (``clear_in_flight``) or shows it did
not (``requeue_in_flight`` puts it back at the front of the queue).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from dbspine.connector.document import Document


class DocumentQueue:
    """Two FIFO sequences: documents waiting and documents in flight."""

    def __init__(
        self,
        queue: Iterable[Document] = (),
        in_flight: Iterable[Document] = (),
    ) -> None:
        self._queue: deque[Document] = deque(queue)
        self._in_flight: deque[Document] = deque(in_flight)

    # -- waiting documents ---------------------------------------------------

    def enqueue(self, doc: Document) -> None:
        self._queue.append(doc)

    def extend(self, docs: Iterable[Document]) -> None:
        self._queue.extend(docs)

    def drain_one(self) -> Document | None:
        """Take the head of the queue and track it as in flight."""
        if not self._queue:
            return None
        doc = self._queue.popleft()
        self._in_flight.append(doc)
        return doc

    def pop_head(self) -> Document | None:
        """Take the head of the queue without tracking it as in flight."""
        return self._queue.popleft() if self._queue else None

    def peek_head(self) -> Document | None:
        return self._queue[0] if self._queue else None

    # -- in-flight documents -------------------------------------------------

    def move_all_to_in_flight(self) -> list[Document]:
        """Hand every queued document to the consumer at once."""
        moved = list(self._queue)
        self._in_flight.extend(moved)
        self._queue.clear()
        return moved

    def requeue_in_flight(self) -> int:
        """Put in-flight documents back in front of the queue, oldest first."""
        count = len(self._in_flight)
        self._queue.extendleft(reversed(self._in_flight))
        self._in_flight.clear()
        return count

    def clear_in_flight(self) -> None:
        self._in_flight.clear()

    def peek_in_flight(self) -> Document | None:
        return self._in_flight[0] if self._in_flight else None

    @property
    def in_flight(self) -> tuple[Document, ...]:
        return tuple(self._in_flight)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # -- whole structure -----------------------------------------------------

    def clear(self) -> None:
        self._queue.clear()
        self._in_flight.clear()

    @property
    def queued(self) -> tuple[Document, ...]:
        return tuple(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[Document]:
        return iter(tuple(self._queue))
