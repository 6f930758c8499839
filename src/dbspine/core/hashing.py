"""
Deterministic hashing utilities for document identity and change detection.

Manifesto:
    A row needs two stable fingerprints:
    - **Document id:** SHA-1 over the primary key values only. Same keys
      give the same id no matter what else changed in the row, which makes
      re-sending a document idempotent downstream.
    - **Row checksum:** SHA-1 over the rendered row content. Same id with a
      different checksum means the row was edited since the last sweep.

    Text is always encoded as UTF-8 before hashing so the same row hashes
    the same on every platform.

Architecture:
    ::

        primary keys ["id", "last_name"], row {"id": 1, "last_name": "last_01"}
              │
              ▼
        canonical_key_string()  →  "(1,7)1last_01"
              │
              ▼
        sha1_hex()              →  "6fd5643953e6e60188c93b89c71bc1808eb7edc2"

Examples:
    >>> generate_doc_id(["id"], {"id": "42", "name": "x"})
    '2c7b593c94006814678d14dd28c03989f1a044f3'
    >>> canonical_key_string(["ID"], {"id": None})
    '(-1)'

Tags:
    hashing, deduplication, idempotency, sha1, db-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from typing import Any

from dbspine.core.errors import ChecksumUnavailableError, IdentityGenerationError
from dbspine.core.logging import get_logger

logger = get_logger(__name__)

CHECKSUM_ALGO = "sha1"
PRIMARY_KEYS_SEPARATOR = ","
TEXT_ENCODING = "utf-8"


def sha1_hex(data: bytes | str) -> str:
    """
    Lower-case hex SHA-1 digest of *data*.

    ``str`` input is encoded as UTF-8 first. Two hex characters per byte,
    most significant nibble first (``hashlib.hexdigest`` order).

    Raises:
        ChecksumUnavailableError: the interpreter was built without SHA-1.
    """
    if isinstance(data, str):
        data = data.encode(TEXT_ENCODING)
    try:
        digest = hashlib.new(CHECKSUM_ALGO)
    except ValueError as exc:
        raise ChecksumUnavailableError(
            f"Could not get a message digest for {CHECKSUM_ALGO}", cause=exc
        ) from exc
    digest.update(data)
    return digest.hexdigest()


def row_checksum(content: bytes | str) -> str:
    """Checksum of a row's rendered content (or large-object payload)."""
    return sha1_hex(content)


def resolve_column(name: str, row: Mapping[str, Any]) -> str | None:
    """Return the row column matching *name* ignoring case, or ``None``."""
    if name in row:
        return name
    lowered = name.lower()
    for column in row:
        if column.lower() == lowered:
            return column
    return None


def resolve_primary_keys(
    primary_keys: Sequence[str] | None,
    row: Mapping[str, Any] | None,
) -> list[str]:
    """
    Map the configured primary key names onto the row's actual column names.

    Raises:
        IdentityGenerationError: row is ``None``, no primary keys are
            configured, or a key has no case-insensitive match.
    """
    if row is None:
        raise IdentityGenerationError("row is null")
    if not primary_keys:
        raise IdentityGenerationError("primary key list is empty or null")

    columns = []
    for key in primary_keys:
        column = resolve_column(key, row)
        if column is None:
            raise IdentityGenerationError(
                f"primary key {key!r} does not match any column name",
                field=key,
            )
        columns.append(column)
    return columns


def canonical_key_string(
    primary_keys: Sequence[str] | None,
    row: Mapping[str, Any] | None,
) -> str:
    """
    Canonical encoding of the primary key values of *row*.

    ``"(" + comma-joined lengths + ")" + concatenated values``, in declared
    key order. A null value contributes ``-1`` to the lengths and nothing
    to the values.
    """
    lengths = []
    values = []
    for column in resolve_primary_keys(primary_keys, row):
        value = row[column]
        if value is None:
            lengths.append("-1")
        else:
            text = str(value)
            lengths.append(str(len(text)))
            values.append(text)
    return "(" + PRIMARY_KEYS_SEPARATOR.join(lengths) + ")" + "".join(values)


def generate_doc_id(
    primary_keys: Sequence[str] | None,
    row: Mapping[str, Any] | None,
) -> str:
    """Document id: SHA-1 of :func:`canonical_key_string`."""
    canonical = canonical_key_string(primary_keys, row)
    doc_id = sha1_hex(canonical)
    logger.debug("doc_id_generated", canonical=canonical, doc_id=doc_id)
    return doc_id


__all__ = [
    "sha1_hex",
    "row_checksum",
    "resolve_column",
    "resolve_primary_keys",
    "canonical_key_string",
    "generate_doc_id",
]
