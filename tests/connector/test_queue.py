"""Tests for dbspine.connector.queue module."""

from dbspine.connector.document import delete_doc
from dbspine.connector.queue import DocumentQueue


def ids(docs):
    return [doc.doc_id for doc in docs]


class TestDocumentQueue:
    """Queue / in-flight movement."""

    def setup_method(self):
        self.queue = DocumentQueue()
        self.queue.extend(delete_doc(name) for name in ("a", "b", "c"))

    def test_fifo_drain_moves_to_in_flight(self):
        assert self.queue.drain_one().doc_id == "a"
        assert self.queue.drain_one().doc_id == "b"
        assert ids(self.queue.in_flight) == ["a", "b"]
        assert ids(self.queue.queued) == ["c"]
        assert len(self.queue) == 1

    def test_drain_empty_returns_none(self):
        empty = DocumentQueue()
        assert empty.drain_one() is None
        assert empty.in_flight_count == 0
        assert not empty

    def test_peek_head_does_not_move(self):
        assert self.queue.peek_head().doc_id == "a"
        assert len(self.queue) == 3
        assert self.queue.in_flight_count == 0

    def test_pop_head_bypasses_in_flight(self):
        self.queue.drain_one()
        assert self.queue.pop_head().doc_id == "b"
        assert ids(self.queue.in_flight) == ["a"]
        assert ids(self.queue.queued) == ["c"]
        assert DocumentQueue().pop_head() is None

    def test_requeue_in_flight_restores_order(self):
        self.queue.drain_one()
        self.queue.drain_one()
        assert self.queue.requeue_in_flight() == 2
        assert ids(self.queue.queued) == ["a", "b", "c"]
        assert self.queue.in_flight_count == 0

    def test_clear_in_flight(self):
        self.queue.drain_one()
        self.queue.clear_in_flight()
        assert self.queue.in_flight == ()
        assert ids(self.queue) == ["b", "c"]

    def test_move_all_to_in_flight(self):
        moved = self.queue.move_all_to_in_flight()
        assert ids(moved) == ["a", "b", "c"]
        assert len(self.queue) == 0
        assert self.queue.peek_in_flight().doc_id == "a"

    def test_clear(self):
        self.queue.drain_one()
        self.queue.clear()
        assert len(self.queue) == 0
        assert self.queue.in_flight_count == 0
