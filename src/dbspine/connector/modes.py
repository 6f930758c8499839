"""
Execution-mode detection.

The operator chooses how rows become documents by aliasing columns in the
SQL query. A ``dbconn_url`` column means every row describes an external
document by URL (metadata-and-URL feed), ``dbconn_clob`` / ``dbconn_blob``
mean a large-object column holds the document body, and anything else is
fed as the rendered row itself.

Detection looks at the column names of a single row. The traversal
manager calls it once, on the first non-empty batch, and keeps the answer
for its lifetime.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

DOC_COLUMN = "dbconn_url"
CLOB_COLUMN = "dbconn_clob"
BLOB_COLUMN = "dbconn_blob"
MIME_TYPE_COLUMN = "dbconn_mime_type"
LAST_MOD_COLUMN = "dbconn_last_mod"
TITLE_COLUMN = "dbconn_title"
LOB_URL_COLUMN = "dbconn_lob_url"


class ExecutionMode(str, Enum):
    """How rows are turned into documents."""

    NORMAL = "normal"
    METADATA_URL = "metadata_url"
    CLOB = "clob"
    BLOB = "blob"


# Checked in order: URL beats CLOB beats BLOB.
_SENTINELS: tuple[tuple[str, ExecutionMode], ...] = (
    (DOC_COLUMN, ExecutionMode.METADATA_URL),
    (CLOB_COLUMN, ExecutionMode.CLOB),
    (BLOB_COLUMN, ExecutionMode.BLOB),
)


def detect_execution_mode(row: Mapping[str, Any]) -> ExecutionMode:
    """Classify *row*'s column layout. Column names match case-insensitively."""
    columns = {column.lower() for column in row}
    for sentinel, mode in _SENTINELS:
        if sentinel in columns:
            return mode
    return ExecutionMode.NORMAL


__all__ = [
    "DOC_COLUMN",
    "CLOB_COLUMN",
    "BLOB_COLUMN",
    "MIME_TYPE_COLUMN",
    "LAST_MOD_COLUMN",
    "TITLE_COLUMN",
    "LOB_URL_COLUMN",
    "ExecutionMode",
    "detect_execution_mode",
]
