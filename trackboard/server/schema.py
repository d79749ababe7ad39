"""Table layout for the tracker store.

Each table is an ordered column list; the first column holds the row id
used by ``update_by_id``/``delete_by_id``. Column names double as the keys
of the records exchanged with the request layer.
"""

from __future__ import annotations

from datetime import datetime, timezone

TICKETS = "Tickets"
SPRINTS = "Sprints"
COLUMNS = "Columns"
SETTINGS = "Settings"

TABLE_SCHEMAS: dict[str, tuple[str, ...]] = {
    TICKETS: (
        "id",
        "title",
        "priority",
        "status",
        "description",
        "assignee",
        "sprintId",
        "due",
        "created",
        "updated",
    ),
    SPRINTS: ("id", "name", "status", "startDate", "endDate", "completedDate"),
    COLUMNS: ("id", "title", "orderIndex"),
    SETTINGS: ("key", "value"),
}

# Columns read back as integers rather than strings.
INTEGER_FIELDS: dict[str, frozenset[str]] = {
    COLUMNS: frozenset({"orderIndex"}),
}

BACKLOG_STATUS = "backlog"
DONE_STATUS = "done"
DEFAULT_PRIORITY = "Medium"

SPRINT_ACTIVE = "active"
SPRINT_COMPLETED = "completed"

PROJECT_KEY_SETTING = "projectKey"
TICKET_COUNTER_SETTING = "ticketCounter"


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
