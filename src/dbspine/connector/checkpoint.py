"""
Checkpoint tokens and resume-time reconciliation.

A checkpoint token is ``"(" + fetch time + ")" + document id``; the fetch
time is the start of the query that produced the documents, the id is the
next document the consumer has not taken yet. Missing parts are written
as ``NO_TIMESTAMP`` / ``NO_DOCID``.

On resume the consumer hands back the last token it persisted. Comparing
it against two locally computed tokens tells whether the documents in
flight were absorbed:

    ::

        T == current token                → CONFIRMED     clear in-flight
        T == old token, or T has NO_DOCID → REDISPATCHED  requeue in-flight
        anything else                     → UNRECOGNIZED  leave as is

The ``NO_DOCID`` rule covers a consumer that persisted the token of a
drained queue, ``(t1)NO_DOCID``, but not the one handed out after the
next fetch at ``t2``. That stale token is equivalent to ``(t2)X`` where X
heads the in-flight list, so the documents are sent again.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from dbspine.connector.document import Document
from dbspine.connector.state import GlobalState
from dbspine.core.logging import get_logger

logger = get_logger(__name__)

NO_TIMESTAMP = "NO_TIMESTAMP"
NO_DOCID = "NO_DOCID"


class Reconciliation(str, Enum):
    """Outcome of comparing a resume token with local state."""

    CONFIRMED = "confirmed"
    REDISPATCHED = "redispatched"
    UNRECOGNIZED = "unrecognized"


def checkpoint_token(timestamp: datetime | None, doc: Document | None) -> str:
    """``(<timestamp or NO_TIMESTAMP>)<doc id or NO_DOCID>``"""
    stamp = NO_TIMESTAMP if timestamp is None else timestamp.isoformat()
    doc_id = doc.doc_id if doc is not None else None
    return f"({stamp}){doc_id or NO_DOCID}"


def old_token(state: GlobalState) -> str:
    """Token the consumer holds if it never confirmed the in-flight documents."""
    head = state.documents.peek_in_flight()
    if head is None:
        return checkpoint_token(None, None)
    return checkpoint_token(state.in_flight_query_time, head)


def current_token(state: GlobalState) -> str:
    """Token handed out for the queue as it stands now."""
    return checkpoint_token(state.query_execution_time, state.documents.peek_head())


def reconcile(state: GlobalState, token: str) -> Reconciliation:
    """Apply the resume decision table to *state* for the consumer's *token*."""
    current = current_token(state)
    old = old_token(state)

    if token == current:
        outcome = Reconciliation.CONFIRMED
        state.documents.clear_in_flight()
    elif token == old or NO_DOCID in token:
        outcome = Reconciliation.REDISPATCHED
        state.documents.requeue_in_flight()
    else:
        outcome = Reconciliation.UNRECOGNIZED

    logger.info(
        "checkpoint_reconciled",
        checkpoint=token,
        current=current,
        old=old,
        outcome=outcome.value,
    )
    return outcome


__all__ = [
    "NO_TIMESTAMP",
    "NO_DOCID",
    "Reconciliation",
    "checkpoint_token",
    "old_token",
    "current_token",
    "reconcile",
]
