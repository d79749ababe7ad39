"""Sprint rotation: close the active sprint and open its successor."""

from __future__ import annotations

import logging
from typing import Any

from trackboard.server.errors import NoActiveSprintError
from trackboard.server.records import RecordStore
from trackboard.server.schema import (
    DONE_STATUS,
    SPRINT_ACTIVE,
    SPRINT_COMPLETED,
    SPRINTS,
    TICKETS,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class SprintService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def active_sprints(self) -> list[dict[str, Any]]:
        return [
            sprint for sprint in self.store.list(SPRINTS) if sprint["status"] == SPRINT_ACTIVE
        ]

    def active_sprint(self) -> dict[str, Any] | None:
        active = self.active_sprints()
        return active[0] if len(active) == 1 else None

    def complete_sprint(self) -> dict[str, Any]:
        """Complete the active sprint, open the next one and carry over open work.

        The successor is numbered from the header-inclusive row count of the
        Sprints table, not from a counter, so ids are only sequential while no
        sprint rows are ever removed.
        """

        active = self.active_sprints()
        if len(active) != 1:
            raise NoActiveSprintError(active_count=len(active))
        old_sprint = active[0]
        old_id = str(old_sprint["id"])

        now = utc_now_iso()
        # Sprint ids can repeat, so select the row by status rather than id.
        self.store.update_where(
            SPRINTS,
            lambda sprint: sprint["status"] == SPRINT_ACTIVE,
            {"status": SPRINT_COMPLETED, "completedDate": now},
        )

        number = self.store.row_count(SPRINTS)
        new_sprint = self.store.append(
            SPRINTS,
            {
                "id": f"s{number}",
                "name": f"Sprint {number}",
                "status": SPRINT_ACTIVE,
                "startDate": now,
                "endDate": "",
                "completedDate": "",
            },
        )

        carried = self.store.update_where(
            TICKETS,
            lambda ticket: ticket["sprintId"] == old_id and ticket["status"] != DONE_STATUS,
            {"sprintId": new_sprint["id"]},
        )

        logger.info(
            "Completed sprint %s; opened %s and carried over %d tickets",
            old_id,
            new_sprint["id"],
            carried,
        )
        return {"completedSprintId": old_id, "newSprint": new_sprint}
