"""Ticket create/update/delete flows."""

from __future__ import annotations

from typing import Any

from trackboard.server.records import RecordStore
from trackboard.server.schema import (
    BACKLOG_STATUS,
    DEFAULT_PRIORITY,
    TICKETS,
    utc_now_iso,
)
from trackboard.server.sequencer import Sequencer


class TicketService:
    def __init__(self, store: RecordStore, sequencer: Sequencer) -> None:
        self.store = store
        self.sequencer = sequencer

    def create(self, fields: dict[str, Any]) -> dict[str, Any]:
        now = utc_now_iso()
        record = dict(fields)
        record["id"] = self.sequencer.next_ticket_id()
        record["priority"] = record.get("priority") or DEFAULT_PRIORITY
        record["status"] = record.get("status") or BACKLOG_STATUS
        record["created"] = now
        record["updated"] = now
        return self.store.append(TICKETS, record)

    def update(self, ticket_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        if not ticket_id:
            raise ValueError("missing_id")
        changes = {key: value for key, value in fields.items() if key not in {"id", "created"}}
        changes["updated"] = utc_now_iso()
        return self.store.update_by_id(TICKETS, ticket_id, changes)

    def delete(self, ticket_id: str) -> dict[str, str]:
        if not ticket_id:
            raise ValueError("missing_id")
        self.store.delete_by_id(TICKETS, ticket_id)
        return {"id": ticket_id}
