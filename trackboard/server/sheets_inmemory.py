"""In-memory tabular backend for deterministic local tests."""

from __future__ import annotations

import threading
from typing import Any


class InMemorySheetBackend:
    """Spreadsheet-shaped tables held in plain lists.

    ``writes`` records every mutating primitive so tests can assert that an
    operation performed no writes at all. The tables live on the instance, so
    its own lock already covers the whole store.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[list[Any]]] = {}
        self.writes: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _rows(self, table: str) -> list[list[Any]]:
        rows = self.tables.get(table)
        if rows is None:
            raise KeyError(f"Unknown table: {table}")
        return rows

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def create_table(self, table: str, header: list[str]) -> None:
        if table not in self.tables:
            self.tables[table] = [list(header)]

    def get_all_rows(self, table: str) -> list[list[Any]]:
        return [list(row) for row in self._rows(table)]

    def append_row(self, table: str, row: list[Any]) -> None:
        self._rows(table).append(list(row))
        self.writes.append(("append_row", table))

    def update_cell(self, table: str, row: int, column: int, value: Any) -> None:
        rows = self._rows(table)
        if row < 2 or row > len(rows) or column < 1:
            raise IndexError(f"Invalid cell coordinate: ({row}, {column})")
        cells = rows[row - 1]
        if len(cells) < column:
            cells.extend([""] * (column - len(cells)))
        cells[column - 1] = value
        self.writes.append(("update_cell", table))

    def delete_row(self, table: str, row: int) -> None:
        rows = self._rows(table)
        if row < 2 or row > len(rows):
            raise IndexError(f"Row {row} out of range for {table}")
        del rows[row - 1]
        self.writes.append(("delete_row", table))

    def acquire_lock(self, timeout_ms: int) -> bool:
        return self._lock.acquire(timeout=max(timeout_ms, 0) / 1000)

    def release_lock(self) -> None:
        self._lock.release()
