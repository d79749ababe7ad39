"""Error taxonomy surfaced through the mutation gateway."""

from __future__ import annotations


class TrackboardError(Exception):
    """Base mixin carrying a stable reason code for log lines."""

    reason_code = "error"


class BusyError(TrackboardError, RuntimeError):
    """Raised when the store lock is not acquired within the bounded wait."""

    reason_code = "busy"

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Server busy: lock not acquired within {timeout_ms} ms")


class UnknownActionError(TrackboardError, ValueError):
    reason_code = "unknown_action"

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Unknown action: {action}")


class NotFoundError(TrackboardError, LookupError):
    reason_code = "not_found"

    def __init__(self, table: str, record_id: str) -> None:
        self.table = table
        self.record_id = record_id
        super().__init__(f"ID not found: {record_id} in {table}")


class NoActiveSprintError(TrackboardError, RuntimeError):
    reason_code = "no_active_sprint"

    def __init__(self, active_count: int = 0) -> None:
        self.active_count = active_count
        if active_count:
            message = f"Expected exactly one active sprint, found {active_count}"
        else:
            message = "No active sprint"
        super().__init__(message)
