"""Workflow columns: the ordered stages a ticket status can occupy."""

from __future__ import annotations

import logging
import re
from typing import Any

from trackboard.server.records import RecordStore
from trackboard.server.schema import BACKLOG_STATUS, COLUMNS, TICKETS, utc_now_iso

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]")


def column_id_for_title(title: str) -> str:
    """``"QA Review"`` -> ``"qa-review"``; every char outside [a-z0-9] becomes ``-``."""

    return _NON_SLUG_CHARS.sub("-", title.lower())


class WorkflowService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list_columns(self) -> list[dict[str, Any]]:
        columns = self.store.list(COLUMNS)
        return sorted(columns, key=lambda column: _order_key(column["orderIndex"]))

    def add_column(self, title: str) -> dict[str, Any]:
        if not title.strip():
            raise ValueError("missing_title")
        column_id = column_id_for_title(title)
        existing = self.store.get_by_id(COLUMNS, column_id)
        if existing is not None:
            return existing
        indices = [
            column["orderIndex"]
            for column in self.store.list(COLUMNS)
            if isinstance(column["orderIndex"], int)
        ]
        order_index = max(indices) + 1 if indices else 0
        return self.store.append(
            COLUMNS, {"id": column_id, "title": title, "orderIndex": order_index}
        )

    def delete_column(self, column_id: str) -> dict[str, bool]:
        """Move tickets off ``column_id`` into the backlog, then drop the column."""

        if not column_id:
            raise ValueError("missing_id")
        moved = self.store.update_where(
            TICKETS,
            lambda ticket: ticket["status"] == column_id,
            {"status": BACKLOG_STATUS, "sprintId": "", "updated": utc_now_iso()},
        )
        self.store.delete_by_id(COLUMNS, column_id)
        logger.info("Deleted column %s; moved %d tickets to backlog", column_id, moved)
        return {"success": True}

    def reorder_columns(self, ordered_ids: list[str]) -> dict[str, bool]:
        """Set each listed column's orderIndex to its position in ``ordered_ids``.

        Columns missing from the list keep their index and nothing is
        renumbered, so a partial list can produce duplicate indices. When an id
        is listed twice its last position wins.
        """

        positions = {str(column_id): index for index, column_id in enumerate(ordered_ids)}
        for column in self.store.list(COLUMNS):
            column_id = str(column["id"])
            if column_id in positions and column["orderIndex"] != positions[column_id]:
                self.store.update_by_id(COLUMNS, column_id, {"orderIndex": positions[column_id]})
        return {"success": True}


def _order_key(value: Any) -> tuple[int, int]:
    # Columns with a blank index sort after every numbered column.
    if isinstance(value, int):
        return (0, value)
    return (1, 0)
