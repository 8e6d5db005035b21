"""SQLite storage for runner rows.

Every table has the same shape: the row's id, its JSON body, and when it was
written. Filters in ``select`` match top-level JSON fields.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any

from agent0.config import runtime_settings
from agent0.errors import PersistenceError
from agent0.store import INSERT_ONLY_TABLES
from agent0.utils.identifiers import generate_row_id, utc_timestamp

TABLES = (
    "providers",
    "agents",
    "versions",
    "runs",
    "workspace_users",
    "api_keys",
    "users",
)


class SQLiteStore:
    """``DataStore`` on a single SQLite file."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else runtime_settings().DB_PATH

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _table(self, table: str) -> str:
        # table names can't be bound as parameters
        if table not in TABLES:
            raise PersistenceError(f"Unknown table: {table}")
        return table

    def init_db(self) -> None:
        with self._connect() as conn:
            for table in TABLES:
                conn.execute(
                    f"""
                    create table if not exists {table} (
                        id text primary key,
                        row_json text not null,
                        created_at text not null
                    )
                    """
                )
            conn.execute(
                "create index if not exists idx_runs_version_id "
                "on runs(json_extract(row_json, '$.version_id'))"
            )
            conn.commit()

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """insert a row; ids must be unique."""
        table = self._table(table)
        stored = dict(row)
        stored.setdefault("id", generate_row_id())
        try:
            with self._connect() as conn:
                conn.execute(
                    f"insert into {table} (id, row_json, created_at) values (?, ?, ?)",
                    (stored["id"], json.dumps(stored), stored.get("created_at") or utc_timestamp()),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Insert into {table} failed: {e}") from e
        return stored

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        table = self._table(table)
        with self._connect() as conn:
            row = conn.execute(
                f"select row_json from {table} where id = ?",
                (row_id,),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["row_json"])

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        table = self._table(table)
        clauses = []
        params: list[Any] = []
        for key, value in filters.items():
            if not key.isidentifier():
                raise PersistenceError(f"Invalid filter field: {key}")
            clauses.append(f"json_extract(row_json, '$.{key}') = ?")
            params.append(value)
        where = f" where {' and '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"select row_json from {table}{where} order by rowid",
                params,
            ).fetchall()
        return [json.loads(row["row_json"]) for row in rows]

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """update fields of a mutable row."""
        table = self._table(table)
        if table in INSERT_ONLY_TABLES:
            raise PersistenceError(f"Rows in {table} are immutable")
        current = self.get(table, row_id)
        if current is None:
            return None
        current.update(fields)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"update {table} set row_json = ? where id = ?",
                    (json.dumps(current), row_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Update of {table} failed: {e}") from e
        return current
