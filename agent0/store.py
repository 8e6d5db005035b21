"""Data-store boundary.

Rows are plain JSON-compatible dicts keyed by ``id``. Runs and versions are
append-only: the store refuses to update them.
"""

import copy
from typing import Any, Protocol

from agent0.errors import PersistenceError
from agent0.utils.identifiers import generate_row_id

INSERT_ONLY_TABLES = frozenset({"runs", "versions"})


class DataStore(Protocol):
    """Protocol for the persistence collaborator."""

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it (with its id)."""
        ...

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        """Fetch a row by id."""
        ...

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        """Rows whose fields equal every filter, in insertion order."""
        ...

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """Update fields of a mutable row; returns the new row or None if missing."""
        ...


class MemoryStore:
    """Keeps rows in dicts. Used by tests and local experiments."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = self.tables.setdefault(table, {})
        stored = copy.deepcopy(row)
        stored.setdefault("id", generate_row_id())
        if stored["id"] in rows:
            raise PersistenceError(f"Duplicate id in {table}: {stored['id']}")
        rows[stored["id"]] = stored
        return copy.deepcopy(stored)

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        row = self.tables.get(table, {}).get(row_id)
        return copy.deepcopy(row) if row is not None else None

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(row)
            for row in self.tables.get(table, {}).values()
            if all(row.get(key) == value for key, value in filters.items())
        ]

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        if table in INSERT_ONLY_TABLES:
            raise PersistenceError(f"Rows in {table} are immutable")
        row = self.tables.get(table, {}).get(row_id)
        if row is None:
            return None
        row.update(copy.deepcopy(fields))
        return copy.deepcopy(row)

    def clear(self) -> None:
        """Drop all rows."""
        self.tables.clear()
