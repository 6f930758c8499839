"""
Canonical protocol definitions for db-spine.

The traversal engine talks to three collaborators it does not own: the
database (through a partial-query primitive), the row renderer, and the
persisted state blob. Each is a structural protocol here, so tests can
pass any object with the right shape.

Architecture:
    ::

        protocols.py
        ├── RowSource     execute_partial_query(cursor, limit) -> rows
        ├── RowRenderer   render(db_name, row, primary_keys) -> str
        └── StateStore    load() / save(blob) / clear()

Tags:
    protocol, contracts, db-spine
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

Row = Mapping[str, Any]


@runtime_checkable
class RowSource(Protocol):
    """
    Paged access to a relational source.

    Rows must come back in a stable order: the same cursor and limit
    return the same rows as long as the table is unchanged. An empty list
    means the end of the source was reached.
    """

    def execute_partial_query(self, cursor: int, limit: int) -> list[dict[str, Any]]:
        ...


@runtime_checkable
class RowRenderer(Protocol):
    """Converts one row into the text representation that is hashed and fed."""

    def render(self, db_name: str, row: Row, primary_keys: Sequence[str]) -> str:
        ...


@runtime_checkable
class StateStore(Protocol):
    """Opaque load/save of the traversal state blob."""

    def load(self) -> dict[str, Any] | None:
        """Return the last saved blob, or ``None`` if nothing was saved."""
        ...

    def save(self, blob: dict[str, Any]) -> None:
        ...

    def clear(self) -> None:
        """Forget any saved blob."""
        ...


__all__ = ["Row", "RowSource", "RowRenderer", "StateStore"]
