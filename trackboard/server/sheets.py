"""Tabular backend contract and its SQLite implementation.

A backend exposes named tables shaped like spreadsheet tabs: row 1 is the
header, data rows follow, and cells are addressed with 1-based row/column
coordinates. The backend also owns the process-wide advisory lock the
mutation gateway serializes writes on.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

from trackboard.shared.settings import StorageSettings

logger = logging.getLogger(__name__)

_STORE_LOCKS: dict[str, threading.Lock] = {}
_STORE_LOCKS_GUARD = threading.Lock()


def store_lock(key: str) -> threading.Lock:
    """Return the advisory lock shared by every backend in this process that opens ``key``."""

    with _STORE_LOCKS_GUARD:
        return _STORE_LOCKS.setdefault(key, threading.Lock())


class TabularBackend(Protocol):
    def has_table(self, table: str) -> bool: ...

    def create_table(self, table: str, header: list[str]) -> None: ...

    def get_all_rows(self, table: str) -> list[list[Any]]: ...

    def append_row(self, table: str, row: list[Any]) -> None: ...

    def update_cell(self, table: str, row: int, column: int, value: Any) -> None: ...

    def delete_row(self, table: str, row: int) -> None: ...

    def acquire_lock(self, timeout_ms: int) -> bool: ...

    def release_lock(self) -> None: ...


class SQLiteSheetBackend:
    """Store every named table as a header plus positioned JSON-encoded rows."""

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        if self.db_path == ":memory:":
            # A private in-memory database is only reachable through this object.
            self._lock = threading.Lock()
        else:
            self._lock = store_lock(str(Path(self.db_path).resolve()))
        # Serializes connection use; independent of the advisory lock.
        self._conn_guard = threading.RLock()
        self._configure_connection()
        self._init_schema()

    def _configure_connection(self) -> None:
        """Apply local-first SQLite settings for durability and concurrent reads."""

        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA busy_timeout=5000")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA temp_store=MEMORY")

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS sheets (
                name TEXT PRIMARY KEY,
                header_json TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sheet_rows (
                sheet TEXT NOT NULL,
                position INTEGER NOT NULL,
                cells_json TEXT NOT NULL,
                PRIMARY KEY (sheet, position),
                FOREIGN KEY(sheet) REFERENCES sheets(name)
            );
            """
        )
        self.conn.commit()

    def _require_table(self, table: str) -> None:
        if not self.has_table(table):
            raise KeyError(f"Unknown table: {table}")

    def has_table(self, table: str) -> bool:
        with self._conn_guard:
            row = self.conn.execute("SELECT 1 FROM sheets WHERE name = ?", (table,)).fetchone()
        return row is not None

    def create_table(self, table: str, header: list[str]) -> None:
        with self._conn_guard:
            self.conn.execute(
                "INSERT OR IGNORE INTO sheets (name, header_json) VALUES (?, ?)",
                (table, json.dumps(list(header))),
            )
            self.conn.commit()

    def get_all_rows(self, table: str) -> list[list[Any]]:
        with self._conn_guard:
            header = self.conn.execute(
                "SELECT header_json FROM sheets WHERE name = ?", (table,)
            ).fetchone()
            if header is None:
                raise KeyError(f"Unknown table: {table}")
            rows = self.conn.execute(
                "SELECT cells_json FROM sheet_rows WHERE sheet = ? ORDER BY position ASC",
                (table,),
            ).fetchall()
        return [json.loads(header[0])] + [json.loads(row[0]) for row in rows]

    def append_row(self, table: str, row: list[Any]) -> None:
        self._require_table(table)
        with self._conn_guard:
            self.conn.execute(
                """
                INSERT INTO sheet_rows (sheet, position, cells_json)
                VALUES (?, (SELECT COALESCE(MAX(position), 1) + 1 FROM sheet_rows WHERE sheet = ?), ?)
                """,
                (table, table, json.dumps(list(row))),
            )
            self.conn.commit()

    def update_cell(self, table: str, row: int, column: int, value: Any) -> None:
        if row < 2 or column < 1:
            raise IndexError(f"Invalid cell coordinate: ({row}, {column})")
        with self._conn_guard:
            found = self.conn.execute(
                "SELECT cells_json FROM sheet_rows WHERE sheet = ? AND position = ?",
                (table, row),
            ).fetchone()
            if found is None:
                raise IndexError(f"Row {row} out of range for {table}")
            cells = json.loads(found[0])
            if len(cells) < column:
                cells.extend([""] * (column - len(cells)))
            cells[column - 1] = value
            self.conn.execute(
                "UPDATE sheet_rows SET cells_json = ? WHERE sheet = ? AND position = ?",
                (json.dumps(cells), table, row),
            )
            self.conn.commit()

    def delete_row(self, table: str, row: int) -> None:
        if row < 2:
            raise IndexError(f"Cannot delete header or invalid row: {row}")
        with self._conn_guard:
            cur = self.conn.execute(
                "DELETE FROM sheet_rows WHERE sheet = ? AND position = ?", (table, row)
            )
            if cur.rowcount == 0:
                self.conn.rollback()
                raise IndexError(f"Row {row} out of range for {table}")
            # Shift in ascending order so the (sheet, position) key never collides.
            positions = self.conn.execute(
                "SELECT position FROM sheet_rows WHERE sheet = ? AND position > ? ORDER BY position ASC",
                (table, row),
            ).fetchall()
            for (position,) in positions:
                self.conn.execute(
                    "UPDATE sheet_rows SET position = ? WHERE sheet = ? AND position = ?",
                    (position - 1, table, position),
                )
            self.conn.commit()

    def acquire_lock(self, timeout_ms: int) -> bool:
        return self._lock.acquire(timeout=max(timeout_ms, 0) / 1000)

    def release_lock(self) -> None:
        self._lock.release()


def build_backend_from_settings(settings: StorageSettings) -> TabularBackend:
    if settings.backend == "memory":
        from trackboard.server.sheets_inmemory import InMemorySheetBackend

        return InMemorySheetBackend()
    logger.debug("Opening SQLite sheet backend at %s", settings.sqlite_path)
    return SQLiteSheetBackend(settings.sqlite_path)
