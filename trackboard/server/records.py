"""Schema-driven record store over a tabular backend."""

from __future__ import annotations

import logging
from typing import Any, Callable

from trackboard.server.errors import NotFoundError
from trackboard.server.schema import (
    COLUMNS,
    INTEGER_FIELDS,
    PROJECT_KEY_SETTING,
    SETTINGS,
    SPRINT_ACTIVE,
    SPRINTS,
    TABLE_SCHEMAS,
    TICKET_COUNTER_SETTING,
    utc_now_iso,
)
from trackboard.server.sheets import TabularBackend
from trackboard.shared.settings import SeedSettings

logger = logging.getLogger(__name__)


class RecordStore:
    """Generic read/append/update/delete over the tables in ``TABLE_SCHEMAS``.

    Records are plain dicts keyed by column name. Rows are mapped through the
    table's declared column order in both directions: omitted or ``None``
    fields are written as ``""`` and keys outside the schema are ignored.
    Lookups by id scan the table and the first matching row wins.
    """

    def __init__(
        self,
        backend: TabularBackend,
        schemas: dict[str, tuple[str, ...]] | None = None,
    ) -> None:
        self.backend = backend
        self.schemas = dict(schemas or TABLE_SCHEMAS)

    def _columns(self, table: str) -> tuple[str, ...]:
        columns = self.schemas.get(table)
        if columns is None:
            raise KeyError(f"Unknown table: {table}")
        return columns

    def _encode(self, table: str, column: str, value: Any) -> Any:
        if value is None:
            return ""
        if column in INTEGER_FIELDS.get(table, frozenset()):
            if value == "":
                return ""
            try:
                return int(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid_integer:{table}.{column}") from exc
        return str(value)

    def _decode(self, table: str, column: str, value: Any) -> Any:
        if value is None or value == "":
            return ""
        if column in INTEGER_FIELDS.get(table, frozenset()):
            return int(value)
        return str(value)

    def _to_record(self, table: str, row: list[Any]) -> dict[str, Any]:
        columns = self._columns(table)
        return {
            column: self._decode(table, column, row[index] if index < len(row) else "")
            for index, column in enumerate(columns)
        }

    def _to_row(self, table: str, record: dict[str, Any]) -> list[Any]:
        return [self._encode(table, column, record.get(column)) for column in self._columns(table)]

    def _find_row(self, table: str, record_id: str) -> tuple[int, list[Any]] | None:
        """Return the 1-based sheet row number and cells of the first match."""

        rows = self.backend.get_all_rows(table)
        for index, row in enumerate(rows[1:], start=2):
            if row and str(row[0]) == str(record_id):
                return index, row
        return None

    def list(self, table: str) -> list[dict[str, Any]]:
        rows = self.backend.get_all_rows(table)
        return [self._to_record(table, row) for row in rows[1:]]

    def row_count(self, table: str) -> int:
        """Header-inclusive number of rows in ``table``."""

        return len(self.backend.get_all_rows(table))

    def get_by_id(self, table: str, record_id: str) -> dict[str, Any] | None:
        found = self._find_row(table, record_id)
        if found is None:
            return None
        return self._to_record(table, found[1])

    def append(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        row = self._to_row(table, record)
        self.backend.append_row(table, row)
        return self._to_record(table, row)

    def update_by_id(
        self, table: str, record_id: str, partial: dict[str, Any]
    ) -> dict[str, Any]:
        found = self._find_row(table, record_id)
        if found is None:
            raise NotFoundError(table, record_id)
        row_number, row = found
        return self._write_cells(table, row_number, row, partial)

    def update_where(
        self,
        table: str,
        predicate: Callable[[dict[str, Any]], bool],
        partial: dict[str, Any],
    ) -> int:
        """Apply ``partial`` to every row whose record satisfies ``predicate``.

        Rows are addressed by position rather than id, so records that share
        an id are each updated. Returns the number of rows written.
        """

        rows = self.backend.get_all_rows(table)
        updated = 0
        for row_number, row in enumerate(rows[1:], start=2):
            if not predicate(self._to_record(table, row)):
                continue
            self._write_cells(table, row_number, row, partial)
            updated += 1
        return updated

    def _write_cells(
        self, table: str, row_number: int, row: list[Any], partial: dict[str, Any]
    ) -> dict[str, Any]:
        columns = self._columns(table)
        cells = list(row) + [""] * (len(columns) - len(row))
        for index, column in enumerate(columns):
            if column not in partial:
                continue
            value = self._encode(table, column, partial[column])
            self.backend.update_cell(table, row_number, index + 1, value)
            cells[index] = value
        return self._to_record(table, cells)

    def delete_by_id(self, table: str, record_id: str) -> bool:
        found = self._find_row(table, record_id)
        if found is None:
            return False
        self.backend.delete_row(table, found[0])
        return True

    def settings(self) -> dict[str, str]:
        return {
            str(record["key"]): str(record["value"])
            for record in self.list(SETTINGS)
            if record["key"]
        }

    def get_setting(self, key: str, default: str = "") -> str:
        record = self.get_by_id(SETTINGS, key)
        if record is None:
            return default
        return str(record["value"])

    def set_setting(self, key: str, value: Any) -> None:
        if self.get_by_id(SETTINGS, key) is None:
            self.append(SETTINGS, {"key": key, "value": value})
        else:
            self.update_by_id(SETTINGS, key, {"value": value})

    def ensure_schema(self, seed: SeedSettings | None = None) -> None:
        """Create missing tables and seed the ones that hold no data rows."""

        seed = seed or SeedSettings()
        for table, columns in self.schemas.items():
            if not self.backend.has_table(table):
                self.backend.create_table(table, list(columns))

        current = self.settings()
        if PROJECT_KEY_SETTING not in current:
            self.set_setting(PROJECT_KEY_SETTING, seed.project_key)
        if TICKET_COUNTER_SETTING not in current:
            self.set_setting(TICKET_COUNTER_SETTING, seed.ticket_counter)

        if self.row_count(COLUMNS) <= 1:
            for order_index, (column_id, title) in enumerate(seed.columns):
                self.append(COLUMNS, {"id": column_id, "title": title, "orderIndex": order_index})
            logger.info("Seeded %d workflow columns", len(seed.columns))

        if self.row_count(SPRINTS) <= 1:
            self.append(
                SPRINTS,
                {
                    "id": "s1",
                    "name": "Sprint 1",
                    "status": SPRINT_ACTIVE,
                    "startDate": utc_now_iso(),
                },
            )
            logger.info("Seeded initial active sprint s1")
