"""
Row materialization: one database row in, one :class:`Document` out.

Manifesto:
    Every row becomes exactly one document whose id depends only on the
    primary key values. What else the document carries depends on the
    execution mode:

    - **Normal:** the rendered row is the content
    - **Metadata-URL:** the row points at an external URL; the other
      columns become metadata and no content is sent
    - **CLOB / BLOB:** a large-object column is the content; the other
      columns become metadata

    Primary key problems abort materialization with
    :class:`IdentityGenerationError`. Null metadata columns are simply not
    sent.

Architecture:
    ::

        materialize(mode, row, primary_keys, db_name, hostname)
              │
              ├── NORMAL        → row_to_doc()
              ├── METADATA_URL  → metadata_url_to_doc()
              └── CLOB | BLOB   → large_object_to_doc()

Examples:
    >>> doc = row_to_doc("hr", ["id"], {"id": "42", "name": "x"}, "localhost")
    >>> doc.doc_id
    '2c7b593c94006814678d14dd28c03989f1a044f3'
    >>> doc.get_string(PROP_DISPLAY_URL)
    'dbconnector://localhost/hr/2c7b593c94006814678d14dd28c03989f1a044f3'

Tags:
    materializer, document, row, execution-mode, db-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from dbspine.connector.document import (
    ACTION_ADD,
    PROP_ACTION,
    PROP_CONTENT,
    PROP_DISPLAY_URL,
    PROP_DOCID,
    PROP_LAST_MODIFIED,
    PROP_MIMETYPE,
    PROP_SEARCH_URL,
    PROP_TITLE,
    ROW_CHECKSUM,
    Document,
    DocumentBuilder,
)
from dbspine.connector.modes import (
    BLOB_COLUMN,
    CLOB_COLUMN,
    DOC_COLUMN,
    LAST_MOD_COLUMN,
    LOB_URL_COLUMN,
    MIME_TYPE_COLUMN,
    TITLE_COLUMN,
    ExecutionMode,
)
from dbspine.connector.renderer import XmlRowRenderer, build_title
from dbspine.core.errors import ValidationError
from dbspine.core.hashing import (
    generate_doc_id,
    resolve_column,
    resolve_primary_keys,
    row_checksum,
)
from dbspine.core.logging import get_logger
from dbspine.core.protocols import Row, RowRenderer

logger = get_logger(__name__)

DBCONNECTOR_PROTOCOL = "dbconnector://"
MIMETYPE = "text/html"
CLOB_MIMETYPE = "text/plain"
BLOB_MIMETYPE = "application/octet-stream"

_default_renderer = XmlRowRenderer()


def display_url(hostname: str, db_name: str, doc_id: str) -> str:
    """``dbconnector://<hostname>/<db_name>/<doc_id>``"""
    return f"{DBCONNECTOR_PROTOCOL}{hostname}/{db_name}/{doc_id}"


def row_to_doc(
    db_name: str,
    primary_keys: Sequence[str],
    row: Row,
    hostname: str,
    renderer: RowRenderer | None = None,
) -> Document:
    """Normal mode: the rendered row is the document content."""
    doc_id = generate_doc_id(primary_keys, row)
    content = (renderer or _default_renderer).render(db_name, row, primary_keys)
    return (
        DocumentBuilder()
        .set_property(PROP_DOCID, doc_id)
        .set_property(PROP_ACTION, ACTION_ADD)
        .set_property(PROP_CONTENT, content)
        .set_property(ROW_CHECKSUM, row_checksum(content))
        .set_property(PROP_MIMETYPE, MIMETYPE)
        .set_property(PROP_DISPLAY_URL, display_url(hostname, db_name, doc_id))
        .set_property(PROP_TITLE, build_title(primary_keys, row))
        .build()
    )


def metadata_url_to_doc(
    db_name: str,
    primary_keys: Sequence[str],
    row: Row,
    hostname: str,
    base_url: str | None = None,
    renderer: RowRenderer | None = None,
) -> Document:
    """
    Metadata-URL mode: ``dbconn_url`` locates the document, other columns
    are metadata.

    A non-blank *base_url* is prepended to the ``dbconn_url`` value. The
    row is still rendered so the checksum tracks changes to any column,
    but the rendering is not sent as content.
    """
    doc_id = generate_doc_id(primary_keys, row)
    rendered = (renderer or _default_renderer).render(db_name, row, primary_keys)
    builder = (
        DocumentBuilder()
        .set_property(PROP_DOCID, doc_id)
        .set_property(PROP_ACTION, ACTION_ADD)
        .set_property(ROW_CHECKSUM, row_checksum(rendered))
    )

    url_column = resolve_column(DOC_COLUMN, row)
    url_value = row.get(url_column) if url_column else None
    if url_value is not None and str(url_value).strip():
        url = str(url_value)
        if base_url and base_url.strip():
            url = base_url.strip() + url
        builder.set_property(PROP_SEARCH_URL, url)
        builder.set_property(PROP_DISPLAY_URL, url)

    mime_column = resolve_column(MIME_TYPE_COLUMN, row)
    if mime_column and row[mime_column] is not None:
        builder.set_property(PROP_MIMETYPE, str(row[mime_column]))

    last_mod_column = resolve_column(LAST_MOD_COLUMN, row)
    if last_mod_column and row[last_mod_column] is not None:
        builder.set_last_modified(
            PROP_LAST_MODIFIED, _as_datetime(row[last_mod_column], LAST_MOD_COLUMN)
        )

    skip = {DOC_COLUMN, MIME_TYPE_COLUMN, LAST_MOD_COLUMN}
    skip.update(resolve_primary_keys(primary_keys, row))
    _set_metadata(builder, row, skip)
    return builder.build()


def large_object_to_doc(
    db_name: str,
    primary_keys: Sequence[str],
    row: Row,
    hostname: str,
    lob_column: str,
) -> Document:
    """
    CLOB / BLOB mode: the large-object column is the document content.

    ``dbconn_lob_url``, when present, replaces the synthesized display URL
    and ``dbconn_title`` supplies the title.
    """
    doc_id = generate_doc_id(primary_keys, row)
    is_blob = lob_column.lower() == BLOB_COLUMN
    builder = (
        DocumentBuilder()
        .set_property(PROP_DOCID, doc_id)
        .set_property(PROP_ACTION, ACTION_ADD)
    )

    content_column = resolve_column(lob_column, row)
    raw = row.get(content_column) if content_column else None
    if raw is not None:
        if is_blob:
            payload = _blob_bytes(raw, content_column)
            builder.set_binary_content(PROP_CONTENT, payload)
        else:
            payload = _clob_text(raw, content_column)
            builder.set_property(PROP_CONTENT, payload)
        builder.set_property(ROW_CHECKSUM, row_checksum(payload))
    else:
        builder.set_property(
            ROW_CHECKSUM,
            row_checksum(_default_renderer.render(db_name, row, primary_keys)),
        )

    lob_url_column = resolve_column(LOB_URL_COLUMN, row)
    lob_url = row.get(lob_url_column) if lob_url_column else None
    if lob_url is not None and str(lob_url).strip():
        builder.set_property(PROP_DISPLAY_URL, str(lob_url))
    else:
        builder.set_property(PROP_DISPLAY_URL, display_url(hostname, db_name, doc_id))

    mime_column = resolve_column(MIME_TYPE_COLUMN, row)
    if mime_column and row[mime_column] is not None:
        builder.set_property(PROP_MIMETYPE, str(row[mime_column]))
    else:
        builder.set_property(PROP_MIMETYPE, BLOB_MIMETYPE if is_blob else CLOB_MIMETYPE)

    title_column = resolve_column(TITLE_COLUMN, row)
    if title_column and row[title_column] is not None:
        builder.set_property(PROP_TITLE, str(row[title_column]))

    skip = {lob_column, TITLE_COLUMN}
    skip.update(resolve_primary_keys(primary_keys, row))
    _set_metadata(builder, row, skip)
    return builder.build()


def materialize(
    mode: ExecutionMode,
    row: Row,
    primary_keys: Sequence[str],
    db_name: str,
    hostname: str,
    *,
    renderer: RowRenderer | None = None,
    base_url: str | None = None,
) -> Document:
    """Convert *row* under *mode*."""
    if mode is ExecutionMode.METADATA_URL:
        return metadata_url_to_doc(db_name, primary_keys, row, hostname, base_url, renderer)
    if mode is ExecutionMode.CLOB:
        return large_object_to_doc(db_name, primary_keys, row, hostname, CLOB_COLUMN)
    if mode is ExecutionMode.BLOB:
        return large_object_to_doc(db_name, primary_keys, row, hostname, BLOB_COLUMN)
    return row_to_doc(db_name, primary_keys, row, hostname, renderer)


def _set_metadata(builder: DocumentBuilder, row: Row, skip_columns: Collection[str]) -> None:
    """Add every non-null column outside *skip_columns* as a metadata property."""
    skip = {column.lower() for column in skip_columns}
    for column, value in row.items():
        if column.lower() in skip:
            logger.debug("metadata_skipped", column=column)
            continue
        if value is None:
            continue
        if isinstance(value, datetime):
            builder.set_last_modified(column, value)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            builder.set_binary_content(column, bytes(value))
        else:
            builder.set_property(column, str(value))


def _blob_bytes(value: Any, column: str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    # bytes(int) would yield a zero-filled buffer of that length
    raise ValidationError(
        f"column {column} holds {type(value).__name__}, not binary content",
        field=column,
        value=value,
    )


def _clob_text(value: Any, column: str) -> str:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        return str(value)
    try:
        return bytes(value).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"column {column} is not valid UTF-8 text", field=column, cause=exc
        ) from exc


def _as_datetime(value: Any, column: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(
            f"column {column} is not a timestamp", field=column, value=value, cause=exc
        ) from exc


__all__ = [
    "DBCONNECTOR_PROTOCOL",
    "MIMETYPE",
    "display_url",
    "row_to_doc",
    "metadata_url_to_doc",
    "large_object_to_doc",
    "materialize",
]
