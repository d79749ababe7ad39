"""Human-readable ticket id allocation backed by persisted settings."""

from __future__ import annotations

import logging

from trackboard.server.records import RecordStore
from trackboard.server.schema import PROJECT_KEY_SETTING, TICKET_COUNTER_SETTING, TICKETS
from trackboard.shared.settings import DEFAULT_PROJECT_KEY

logger = logging.getLogger(__name__)


class Sequencer:
    """Issue ``<projectKey>-<n>`` ids from the ``ticketCounter`` setting.

    Holds no state and takes no lock of its own: callers run inside the
    gateway's critical section, which is what keeps two callers from reading
    the same pre-increment counter.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def project_key(self) -> str:
        return self.store.get_setting(PROJECT_KEY_SETTING) or DEFAULT_PROJECT_KEY

    def current_counter(self) -> int:
        raw = self.store.get_setting(TICKET_COUNTER_SETTING).strip()
        if not raw:
            return 0
        try:
            return int(raw)
        except ValueError as exc:
            raise ValueError(f"invalid_ticket_counter:{raw}") from exc

    def next_ticket_id(self) -> str:
        key = self.project_key()
        counter = self.current_counter() + 1
        self.store.set_setting(TICKET_COUNTER_SETTING, counter)
        return f"{key}-{counter}"

    def rekey_project(self, new_key: str) -> int:
        """Switch the project key and rewrite matching ticket id prefixes.

        Returns the number of tickets rewritten. Ids that do not start with
        ``<oldKey>-`` are left alone. There is no rollback if a write fails
        midway.
        """

        new_key = new_key.strip()
        old_key = self.project_key()
        if not new_key or new_key == old_key:
            return 0

        self.store.set_setting(PROJECT_KEY_SETTING, new_key)
        old_prefix = f"{old_key}-"
        # Snapshot first so every ticket is visited exactly once.
        ticket_ids = [str(ticket["id"]) for ticket in self.store.list(TICKETS)]
        rekeyed = 0
        for ticket_id in ticket_ids:
            if not ticket_id.startswith(old_prefix):
                continue
            suffix = ticket_id[len(old_prefix) :]
            self.store.update_by_id(TICKETS, ticket_id, {"id": f"{new_key}-{suffix}"})
            rekeyed += 1
        logger.info("Rekeyed %d tickets from %s to %s", rekeyed, old_key, new_key)
        return rekeyed
