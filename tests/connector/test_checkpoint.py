"""
Tests for dbspine.connector.checkpoint module.

Tests cover:
- Token format with and without timestamp / doc id
- Old and current tokens
- Reconciliation outcomes and their effect on in-flight documents
"""

from datetime import UTC, datetime

from dbspine.connector.checkpoint import (
    NO_DOCID,
    NO_TIMESTAMP,
    Reconciliation,
    checkpoint_token,
    current_token,
    old_token,
    reconcile,
)
from dbspine.connector.document import delete_doc
from dbspine.connector.state import GlobalState

T0 = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)
T1 = datetime(2026, 1, 15, 9, 31, tzinfo=UTC)


class TestCheckpointToken:
    def test_full_token(self):
        assert checkpoint_token(T0, delete_doc("abc")) == "(2026-01-15T09:30:00+00:00)abc"

    def test_placeholders(self):
        assert checkpoint_token(None, None) == f"({NO_TIMESTAMP}){NO_DOCID}"
        assert checkpoint_token(T0, None) == f"({T0.isoformat()}){NO_DOCID}"


class TestTokens:
    def setup_method(self):
        self.state = GlobalState()
        for name in ("a", "b", "c"):
            self.state.add_document(delete_doc(name))
        self.state.query_execution_time = T0

    def test_old_token_without_in_flight(self):
        assert old_token(self.state) == "(NO_TIMESTAMP)NO_DOCID"

    def test_tokens_after_draining(self):
        self.state.drain_one()
        self.state.query_execution_time = T1
        assert old_token(self.state) == f"({T0.isoformat()})a"
        assert current_token(self.state) == f"({T1.isoformat()})b"


class TestReconcile:
    def setup_method(self):
        self.state = GlobalState()
        for name in ("a", "b", "c"):
            self.state.add_document(delete_doc(name))
        self.state.query_execution_time = T0
        self.state.drain_one()
        self.state.drain_one()

    def test_current_token_confirms(self):
        outcome = reconcile(self.state, f"({T0.isoformat()})c")
        assert outcome is Reconciliation.CONFIRMED
        assert self.state.documents.in_flight == ()
        assert [d.doc_id for d in self.state.documents] == ["c"]

    def test_old_token_redispatches(self):
        outcome = reconcile(self.state, f"({T0.isoformat()})a")
        assert outcome is Reconciliation.REDISPATCHED
        assert self.state.documents.in_flight == ()
        assert [d.doc_id for d in self.state.documents] == ["a", "b", "c"]

    def test_stale_no_docid_token_redispatches(self):
        self.state.documents.drain_one()
        self.state.query_execution_time = T1
        outcome = reconcile(self.state, f"({T0.isoformat()}){NO_DOCID}")
        assert outcome is Reconciliation.REDISPATCHED
        assert [d.doc_id for d in self.state.documents] == ["a", "b", "c"]

    def test_unknown_token_leaves_in_flight(self):
        outcome = reconcile(self.state, "(1999-01-01T00:00:00)zzz")
        assert outcome is Reconciliation.UNRECOGNIZED
        assert [d.doc_id for d in self.state.documents.in_flight] == ["a", "b"]
        assert [d.doc_id for d in self.state.documents] == ["c"]

    def test_empty_state_initial_token_confirms(self):
        assert reconcile(GlobalState(), "(NO_TIMESTAMP)NO_DOCID") is Reconciliation.CONFIRMED
