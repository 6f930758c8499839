"""
Row rendering.

The default renderer turns a row into a small XML document: a ``title``
element built from the primary key values followed by one ``column``
element per row column, in row order. Its output is both the content fed
in normal mode and the input to the row checksum in every mode that
hashes rendered rows, so it must be deterministic.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any
from xml.etree import ElementTree

from dbspine.core.hashing import resolve_primary_keys

DATABASE_TITLE_PREFIX = "Database Connector Result"


def build_title(primary_keys: Sequence[str] | None, row: Mapping[str, Any] | None) -> str:
    """
    Title of a database document: ``"Database Connector Result id=42 "``.

    Key names are taken from the row's own columns, so a key configured as
    ``ID`` shows up as ``id=`` when that is how the column is named.
    """
    parts = [DATABASE_TITLE_PREFIX, " "]
    for column in resolve_primary_keys(primary_keys, row):
        value = row[column]
        text = "" if value is None or not str(value).strip() else str(value)
        parts.append(f"{column}={text} ")
    return "".join(parts)


def format_column_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


class XmlRowRenderer:
    """Renders rows as ``<database name=...>`` XML strings."""

    def render(self, db_name: str, row: Mapping[str, Any], primary_keys: Sequence[str]) -> str:
        root = ElementTree.Element("database", {"name": db_name})
        ElementTree.SubElement(root, "title").text = build_title(primary_keys, row)
        for column, value in row.items():
            element = ElementTree.SubElement(root, "column", {"name": column})
            element.text = format_column_value(value)
        return ElementTree.tostring(root, encoding="unicode")
