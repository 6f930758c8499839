"""
Immutable documents produced from database rows.

A :class:`Document` maps property names to a tuple of typed values. It is
assembled once through :class:`DocumentBuilder` and never mutated after
``build()``, so a document sitting in the queue cannot be changed by
whoever still holds the row it came from.

Examples:
    >>> doc = (
    ...     DocumentBuilder()
    ...     .set_property(PROP_DOCID, "2c7b59...")
    ...     .set_property(PROP_ACTION, ACTION_ADD)
    ...     .build()
    ... )
    >>> doc.doc_id
    '2c7b59...'
    >>> doc.find_property("missing") is None
    True

Tags:
    document, value-object, builder, db-spine
"""

from __future__ import annotations

import base64
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

# ---------------------------------------------------------------------------
# Property names
# ---------------------------------------------------------------------------

PROP_DOCID = "google:docid"
PROP_ACTION = "google:action"
PROP_CONTENT = "google:content"
PROP_DISPLAY_URL = "google:displayurl"
PROP_SEARCH_URL = "google:searchurl"
PROP_MIMETYPE = "google:mimetype"
PROP_LAST_MODIFIED = "google:lastmodified"
PROP_TITLE = "google:title"
ROW_CHECKSUM = "dbconnector:checksum"

ACTION_ADD = "add"
ACTION_DELETE = "delete"


class ValueType(str, Enum):
    """Types a property value can carry."""

    STRING = "string"
    TIMESTAMP = "timestamp"
    BINARY = "binary"


@dataclass(frozen=True, slots=True)
class Value:
    """One typed property value."""

    type: ValueType
    data: str | datetime | bytes

    @classmethod
    def string(cls, data: str) -> Value:
        return cls(ValueType.STRING, data)

    @classmethod
    def timestamp(cls, data: datetime) -> Value:
        return cls(ValueType.TIMESTAMP, data)

    @classmethod
    def binary(cls, data: bytes) -> Value:
        return cls(ValueType.BINARY, bytes(data))

    def __str__(self) -> str:
        if self.type is ValueType.TIMESTAMP:
            return self.data.isoformat()
        if self.type is ValueType.BINARY:
            return base64.b64encode(self.data).decode("ascii")
        return self.data

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type.value, "value": str(self)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, str]) -> Value:
        value_type = ValueType(raw["type"])
        if value_type is ValueType.TIMESTAMP:
            return cls.timestamp(datetime.fromisoformat(raw["value"]))
        if value_type is ValueType.BINARY:
            return cls.binary(base64.b64decode(raw["value"]))
        return cls.string(raw["value"])


@dataclass(frozen=True)
class Document:
    """
    A feedable document: property name -> ordered tuple of values.

    Attributes:
        properties: Read-only mapping of property names to value tuples.
    """

    properties: Mapping[str, tuple[Value, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def find_property(self, name: str) -> tuple[Value, ...] | None:
        """Values for *name*, or ``None`` when the property is absent."""
        return self.properties.get(name)

    def first_value(self, name: str) -> Value | None:
        values = self.properties.get(name)
        return values[0] if values else None

    def get_string(self, name: str) -> str | None:
        """First value of *name* rendered as a string, or ``None``."""
        value = self.first_value(name)
        return None if value is None else str(value)

    def property_names(self) -> frozenset[str]:
        return frozenset(self.properties)

    @property
    def doc_id(self) -> str | None:
        return self.get_string(PROP_DOCID)

    @property
    def action(self) -> str | None:
        return self.get_string(PROP_ACTION)

    def __iter__(self) -> Iterator[str]:
        return iter(self.properties)

    def __contains__(self, name: object) -> bool:
        return name in self.properties

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        """Serialise for the persisted state blob."""
        return {
            name: [value.to_dict() for value in values]
            for name, values in self.properties.items()
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, list[Mapping[str, str]]]) -> Document:
        builder = DocumentBuilder()
        for name, values in raw.items():
            builder.set_values(name, [Value.from_dict(v) for v in values])
        return builder.build()


class DocumentBuilder:
    """
    Collects properties for a :class:`Document`.

    Every setter ignores ``None`` so optional row columns can be passed
    straight through. Setters return ``self`` for chaining.
    """

    def __init__(self) -> None:
        self._properties: dict[str, tuple[Value, ...]] = {}

    def set_property(self, name: str, value: str | None) -> DocumentBuilder:
        if value is not None:
            self._properties[name] = (Value.string(value),)
        return self

    def set_last_modified(self, name: str, value: datetime | None) -> DocumentBuilder:
        if value is not None:
            self._properties[name] = (Value.timestamp(value),)
        return self

    def set_binary_content(self, name: str, value: bytes | None) -> DocumentBuilder:
        if value is not None:
            self._properties[name] = (Value.binary(value),)
        return self

    def set_values(self, name: str, values: list[Value]) -> DocumentBuilder:
        if values:
            self._properties[name] = tuple(values)
        return self

    def build(self) -> Document:
        return Document(properties=MappingProxyType(dict(self._properties)))


def delete_doc(doc_id: str) -> Document:
    """Deletion marker for a document id that disappeared from the source."""
    return (
        DocumentBuilder()
        .set_property(PROP_DOCID, doc_id)
        .set_property(PROP_ACTION, ACTION_DELETE)
        .build()
    )


__all__ = [
    "PROP_DOCID",
    "PROP_ACTION",
    "PROP_CONTENT",
    "PROP_DISPLAY_URL",
    "PROP_SEARCH_URL",
    "PROP_MIMETYPE",
    "PROP_LAST_MODIFIED",
    "PROP_TITLE",
    "ROW_CHECKSUM",
    "ACTION_ADD",
    "ACTION_DELETE",
    "ValueType",
    "Value",
    "Document",
    "DocumentBuilder",
    "delete_doc",
]
