"""
Database connector: rows in, documents out, with resumable checkpoints.
"""

from dbspine.connector.checkpoint import (
    NO_DOCID,
    NO_TIMESTAMP,
    Reconciliation,
    checkpoint_token,
    reconcile,
)
from dbspine.connector.document import Document, DocumentBuilder, Value, ValueType
from dbspine.connector.fetcher import BatchFetcher, SqlQuerySource
from dbspine.connector.materializer import materialize
from dbspine.connector.modes import ExecutionMode, detect_execution_mode
from dbspine.connector.queue import DocumentQueue
from dbspine.connector.renderer import XmlRowRenderer
from dbspine.connector.state import GlobalState, JsonFileStateStore, MemoryStateStore
from dbspine.connector.traversal import (
    CycleComplete,
    DocumentBatch,
    TraversalManager,
    TraversalPhase,
)

__all__ = [
    # Documents
    "Document",
    "DocumentBuilder",
    "Value",
    "ValueType",
    # Materialization
    "ExecutionMode",
    "detect_execution_mode",
    "materialize",
    "XmlRowRenderer",
    # Fetching
    "BatchFetcher",
    "SqlQuerySource",
    # State
    "DocumentQueue",
    "GlobalState",
    "JsonFileStateStore",
    "MemoryStateStore",
    # Checkpoints
    "NO_DOCID",
    "NO_TIMESTAMP",
    "Reconciliation",
    "checkpoint_token",
    "reconcile",
    # Traversal
    "CycleComplete",
    "DocumentBatch",
    "TraversalManager",
    "TraversalPhase",
]
