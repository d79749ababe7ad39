import pytest

from trackboard.server.errors import NoActiveSprintError
from trackboard.server.records import RecordStore
from trackboard.server.schema import SPRINTS, TICKETS
from trackboard.server.sheets_inmemory import InMemorySheetBackend
from trackboard.server.sprints import SprintService


def _sprints() -> SprintService:
    store = RecordStore(InMemorySheetBackend())
    store.ensure_schema()
    return SprintService(store)


def test_complete_sprint_rotates_and_carries_unfinished_work():
    service = _sprints()
    store = service.store
    store.append(TICKETS, {"id": "KAN-1", "status": "todo", "sprintId": "s1", "updated": "t0"})
    store.append(TICKETS, {"id": "KAN-2", "status": "done", "sprintId": "s1", "updated": "t0"})
    store.append(TICKETS, {"id": "KAN-3", "status": "backlog", "sprintId": "", "updated": "t0"})

    result = service.complete_sprint()

    assert result["completedSprintId"] == "s1"
    new_sprint = result["newSprint"]
    assert new_sprint["id"] == "s2"
    assert new_sprint["name"] == "Sprint 2"
    assert new_sprint["status"] == "active"
    assert new_sprint["startDate"]
    assert new_sprint["endDate"] == ""
    assert new_sprint["completedDate"] == ""

    sprints = {s["id"]: s for s in store.list(SPRINTS)}
    assert sprints["s1"]["status"] == "completed"
    assert sprints["s1"]["completedDate"]
    assert [s["id"] for s in store.list(SPRINTS) if s["status"] == "active"] == ["s2"]

    tickets = {t["id"]: t for t in store.list(TICKETS)}
    assert tickets["KAN-1"]["sprintId"] == "s2"
    assert tickets["KAN-1"]["updated"] == "t0"
    assert tickets["KAN-2"]["sprintId"] == "s1"
    assert tickets["KAN-3"]["sprintId"] == ""


def test_successive_completions_number_from_row_count():
    service = _sprints()

    assert service.complete_sprint()["newSprint"]["id"] == "s2"
    assert service.complete_sprint()["newSprint"]["id"] == "s3"
    assert service.active_sprint()["id"] == "s3"


def test_sprint_numbering_follows_table_size_after_row_removal():
    service = _sprints()
    service.complete_sprint()
    service.complete_sprint()
    service.store.delete_by_id(SPRINTS, "s1")

    # Header plus two rows: the new id collides with the sprint just completed.
    assert service.complete_sprint()["newSprint"]["id"] == "s3"


def test_complete_sprint_without_active_sprint_writes_nothing():
    service = _sprints()
    service.store.update_by_id(SPRINTS, "s1", {"status": "completed"})
    backend = service.store.backend
    writes_before = len(backend.writes)

    with pytest.raises(NoActiveSprintError, match="No active sprint"):
        service.complete_sprint()

    assert len(backend.writes) == writes_before


def test_complete_sprint_with_two_active_sprints_is_rejected():
    service = _sprints()
    service.store.append(SPRINTS, {"id": "s9", "status": "active"})

    with pytest.raises(NoActiveSprintError) as excinfo:
        service.complete_sprint()

    assert excinfo.value.active_count == 2
    assert service.active_sprint() is None


def test_carry_over_moves_tickets_sharing_an_id():
    service = _sprints()
    store = service.store
    store.append(TICKETS, {"id": "KAN-1", "status": "todo", "sprintId": "s1"})
    store.append(TICKETS, {"id": "KAN-1", "status": "progress", "sprintId": "s1"})

    service.complete_sprint()

    assert [t["sprintId"] for t in store.list(TICKETS)] == ["s2", "s2"]


def test_complete_sprint_closes_active_row_when_sprint_id_is_reused():
    service = _sprints()
    service.complete_sprint()
    service.complete_sprint()
    service.store.delete_by_id(SPRINTS, "s1")
    service.complete_sprint()  # opens a second "s3" behind the completed one

    service.complete_sprint()

    statuses = [(s["id"], s["status"]) for s in service.store.list(SPRINTS)]
    assert statuses == [
        ("s2", "completed"),
        ("s3", "completed"),
        ("s3", "completed"),
        ("s4", "active"),
    ]
