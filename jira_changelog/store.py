"""store.py – SQLite persistence for issues, changelog rows and status durations.

Only the standard ``sqlite3`` module is needed. Each bulk write runs in one
transaction: either every row of the batch lands or none does.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .models import ChangeRow, Issue

__all__ = ["ChangelogStore", "QueryResult", "StorageError", "SCHEMA"]

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS issues (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_key TEXT NOT NULL,
    summary TEXT,
    created TEXT,
    issue_type TEXT,
    status TEXT,
    status_category TEXT,
    labels TEXT
);
CREATE TABLE IF NOT EXISTS changelog (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_key TEXT,
    field TEXT,
    from_value TEXT,
    to_value TEXT,
    change_date TEXT,
    author TEXT
);
CREATE INDEX IF NOT EXISTS idx_issues_key ON issues(issue_key);
CREATE INDEX IF NOT EXISTS idx_issues_type ON issues(issue_type);
CREATE INDEX IF NOT EXISTS idx_changelog_issue ON changelog(issue_key);
CREATE INDEX IF NOT EXISTS idx_changelog_date ON changelog(change_date);
CREATE VIEW IF NOT EXISTS status_durations AS
SELECT
    issue_key,
    to_value AS status,
    change_date AS entered_at,
    COALESCE(LEAD(change_date) OVER w, CURRENT_TIMESTAMP) AS left_at,
    JULIANDAY(COALESCE(LEAD(change_date) OVER w, 'now')) - JULIANDAY(change_date) AS days_in_state
FROM changelog
WHERE field = 'status'
WINDOW w AS (PARTITION BY issue_key ORDER BY datetime(change_date), id);
"""

# Insertable columns per table, in statement order.
TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "issues": ("issue_key", "summary", "created", "issue_type", "status", "status_category", "labels"),
    "changelog": ("issue_key", "field", "from_value", "to_value", "change_date", "author"),
}


class StorageError(RuntimeError):
    """A database operation failed; the current transaction was rolled back."""


@dataclass
class QueryResult:
    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class ChangelogStore:
    """Owns the SQLite file: schema, bulk inserts and the ad-hoc read path.

    Use as a context manager so the connection is closed on every exit path::

        with ChangelogStore("output/jira_data.db") as store:
            store.insert_changes(rows)
    """

    def __init__(self, path: str | Path, *, create_dirs: bool = False):
        self.path = Path(path)
        if create_dirs:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(str(self.path))
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self.path}: {exc}") from exc
        try:
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            self._conn.close()
            raise StorageError(f"Cannot initialise database {self.path}: {exc}") from exc

    def __enter__(self) -> "ChangelogStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def bulk_insert(
        self,
        table: str,
        rows: Iterable[Mapping[str, Any]],
        *,
        replace_keys: Sequence[str] | None = None,
    ) -> int:
        """Insert *rows* into *table* in a single transaction.

        With *replace_keys*, existing rows for those issue keys are deleted
        first, inside the same transaction. Returns the number of rows inserted.
        """
        if table not in TABLE_COLUMNS:
            raise ValueError(f"Unknown table {table!r}")
        columns = TABLE_COLUMNS[table]
        insert_sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})"
        )
        batch = list(rows)

        try:
            with self._conn:
                if replace_keys:
                    self._conn.executemany(
                        f"DELETE FROM {table} WHERE issue_key = ?",
                        ((key,) for key in replace_keys),
                    )
                self._conn.executemany(insert_sql, batch)
        except sqlite3.Error as exc:
            log.error("Failed to write %s rows to %s: %s", len(batch), table, exc)
            raise StorageError(f"Failed to write to {table}: {exc}") from exc

        log.debug("Inserted %s rows into %s", len(batch), table)
        return len(batch)

    def insert_issues(self, issues: Iterable[Issue], *, replace: bool = False) -> int:
        batch = list(issues)
        keys = [i.key for i in batch] if replace else None
        return self.bulk_insert("issues", (i.to_row() for i in batch), replace_keys=keys)

    def insert_changes(
        self, rows: Iterable[ChangeRow], *, replace_keys: Sequence[str] | None = None
    ) -> int:
        return self.bulk_insert("changelog", (r.to_row() for r in rows), replace_keys=replace_keys)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, sql: str, params: Sequence[Any] | Mapping[str, Any] = ()) -> QueryResult:
        """Run an arbitrary read query and return column names plus dict rows."""
        try:
            cur = self._conn.execute(sql, params)
            fetched = cur.fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc
        columns = [d[0] for d in cur.description] if cur.description else []
        return QueryResult(columns, [dict(row) for row in fetched])

    def count(self, table: str) -> int:
        if table not in TABLE_COLUMNS and table != "status_durations":
            raise ValueError(f"Unknown table {table!r}")
        return self.query(f"SELECT COUNT(*) AS n FROM {table}").rows[0]["n"]
