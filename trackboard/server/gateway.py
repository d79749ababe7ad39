"""Single-writer mutation gateway.

Every action runs while holding the backend's process-wide lock, acquired
with a bounded wait. Nothing else in the store locks, so the sequencer and
sprint rotation are only correct because two ``execute`` calls never
overlap.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from pydantic import ValidationError

from trackboard.server.contracts import (
    ColumnRef,
    CreateColumnRequest,
    DispatchRequest,
    ReorderColumnsRequest,
    TicketRef,
    UpdateSettingsRequest,
)
from trackboard.server.errors import BusyError, TrackboardError, UnknownActionError
from trackboard.server.records import RecordStore
from trackboard.server.schema import SPRINTS, TICKETS
from trackboard.server.sequencer import Sequencer
from trackboard.server.sheets import TabularBackend
from trackboard.server.sprints import SprintService
from trackboard.server.tickets import TicketService
from trackboard.server.workflow import WorkflowService
from trackboard.shared.settings import DEFAULT_LOCK_TIMEOUT_MS

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Any]


class MutationGateway:
    def __init__(
        self,
        backend: TabularBackend,
        store: RecordStore | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    ) -> None:
        self.backend = backend
        self.store = store or RecordStore(backend)
        self.lock_timeout_ms = lock_timeout_ms
        self.sequencer = Sequencer(self.store)
        self.tickets = TicketService(self.store, self.sequencer)
        self.workflow = WorkflowService(self.store)
        self.sprints = SprintService(self.store)
        self.handlers: dict[str, Handler] = {
            "loadInitialData": self._load_initial_data,
            "createTicket": self._create_ticket,
            "updateTicket": self._update_ticket,
            "deleteTicket": self._delete_ticket,
            "createColumn": self._create_column,
            "deleteColumn": self._delete_column,
            "reorderColumns": self._reorder_columns,
            "completeSprint": self._complete_sprint,
            "updateSettings": self._update_settings,
        }

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store lock for the duration of the block."""

        if not self.backend.acquire_lock(self.lock_timeout_ms):
            raise BusyError(self.lock_timeout_ms)
        try:
            yield
        finally:
            self.backend.release_lock()

    def execute(self, action: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = payload or {}
        started = time.perf_counter()
        try:
            with self.exclusive():
                handler = self.handlers.get(action)
                if handler is None:
                    raise UnknownActionError(action)
                logger.debug("Executing %s", action)
                result = handler(payload)
        except BusyError as exc:
            logger.warning("Rejected %s: %s", action, exc)
            return _error(str(exc))
        except (TrackboardError, ValueError, ValidationError) as exc:
            logger.warning(
                "Action %s failed (%s): %s",
                action,
                getattr(exc, "reason_code", "invalid_request"),
                exc,
            )
            return _error(str(exc))
        except Exception as exc:
            logger.exception("Action %s raised an unexpected error", action)
            return _error(str(exc))
        logger.debug(
            "Completed %s in %.1f ms", action, (time.perf_counter() - started) * 1000
        )
        return {"status": "success", "data": result}

    def dispatch(self, request: dict[str, Any]) -> dict[str, Any]:
        """Validate a raw ``{action, data}`` request and execute it."""

        try:
            parsed = DispatchRequest.model_validate(request)
        except ValidationError as exc:
            return _error(f"Invalid request: {exc.errors()[0]['msg']}")
        return self.execute(parsed.action, parsed.data or {})

    def load_initial_data(self) -> dict[str, Any]:
        """Snapshot of all tables; safe to call without the lock."""

        return {
            "tickets": self.store.list(TICKETS),
            "sprints": self.store.list(SPRINTS),
            "columns": self.workflow.list_columns(),
            "settings": self.store.settings(),
        }

    def _load_initial_data(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.load_initial_data()

    def _create_ticket(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.tickets.create(payload)

    def _update_ticket(self, payload: dict[str, Any]) -> dict[str, Any]:
        ref = TicketRef.model_validate(payload)
        fields = {key: value for key, value in payload.items() if key != "id"}
        return self.tickets.update(ref.id, fields)

    def _delete_ticket(self, payload: dict[str, Any]) -> dict[str, str]:
        ref = TicketRef.model_validate(payload)
        return self.tickets.delete(ref.id)

    def _create_column(self, payload: dict[str, Any]) -> dict[str, Any]:
        request = CreateColumnRequest.model_validate(payload)
        return self.workflow.add_column(request.title)

    def _delete_column(self, payload: dict[str, Any]) -> dict[str, bool]:
        ref = ColumnRef.model_validate(payload)
        return self.workflow.delete_column(ref.id)

    def _reorder_columns(self, payload: dict[str, Any]) -> dict[str, bool]:
        request = ReorderColumnsRequest.model_validate(payload)
        return self.workflow.reorder_columns(request.newOrderIds)

    def _complete_sprint(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.sprints.complete_sprint()

    def _update_settings(self, payload: dict[str, Any]) -> dict[str, bool]:
        request = UpdateSettingsRequest.model_validate(payload)
        if request.projectKey is not None:
            self.sequencer.rekey_project(request.projectKey)
        return {"success": True}


def _error(message: str) -> dict[str, Any]:
    return {"status": "error", "message": message}
