import pytest

from trackboard.server.records import RecordStore
from trackboard.server.schema import COLUMNS, TICKETS
from trackboard.server.sheets_inmemory import InMemorySheetBackend
from trackboard.server.workflow import WorkflowService, column_id_for_title


def _workflow() -> WorkflowService:
    store = RecordStore(InMemorySheetBackend())
    store.ensure_schema()
    return WorkflowService(store)


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("QA Review", "qa-review"),
        ("Done!", "done-"),
        ("In  Progress 2", "in--progress-2"),
    ],
)
def test_column_id_for_title(title: str, expected: str) -> None:
    assert column_id_for_title(title) == expected


def test_add_column_is_idempotent():
    workflow = _workflow()

    first = workflow.add_column("QA Review")
    second = workflow.add_column("QA Review")

    assert first == second
    assert first["id"] == "qa-review"
    assert first["orderIndex"] == 3
    assert [c["id"] for c in workflow.store.list(COLUMNS)].count("qa-review") == 1


def test_add_column_returns_existing_unchanged_even_with_different_title_case():
    workflow = _workflow()

    existing = workflow.add_column("TODO")

    assert existing == {"id": "todo", "title": "To Do", "orderIndex": 0}
    assert len(workflow.store.list(COLUMNS)) == 3


def test_add_column_starts_at_zero_without_columns():
    workflow = _workflow()
    for column in workflow.store.list(COLUMNS):
        workflow.store.delete_by_id(COLUMNS, column["id"])

    assert workflow.add_column("Triage")["orderIndex"] == 0


def test_add_column_uses_max_index_not_count():
    workflow = _workflow()
    workflow.reorder_columns(["done", "todo", "progress"])
    workflow.store.update_by_id(COLUMNS, "progress", {"orderIndex": 10})

    assert workflow.add_column("Blocked")["orderIndex"] == 11


def test_add_column_rejects_blank_title():
    with pytest.raises(ValueError, match="missing_title"):
        _workflow().add_column("   ")


def test_delete_column_moves_tickets_to_backlog_first():
    workflow = _workflow()
    store = workflow.store
    store.append(TICKETS, {"id": "KAN-1", "status": "progress", "sprintId": "s1", "updated": "t0"})
    store.append(TICKETS, {"id": "KAN-2", "status": "todo", "sprintId": "s1", "updated": "t0"})

    assert workflow.delete_column("progress") == {"success": True}

    tickets = {t["id"]: t for t in store.list(TICKETS)}
    assert tickets["KAN-1"]["status"] == "backlog"
    assert tickets["KAN-1"]["sprintId"] == ""
    assert tickets["KAN-1"]["updated"] != "t0"
    assert tickets["KAN-2"]["status"] == "todo"
    assert tickets["KAN-2"]["sprintId"] == "s1"
    assert not any(t["status"] == "progress" for t in tickets.values())
    assert [c["id"] for c in store.list(COLUMNS)] == ["todo", "done"]


def test_delete_missing_column_is_noop():
    workflow = _workflow()

    assert workflow.delete_column("nope") == {"success": True}
    assert len(workflow.store.list(COLUMNS)) == 3


def test_reorder_columns_sets_positions():
    workflow = _workflow()

    workflow.reorder_columns(["done", "todo", "progress"])

    assert [c["id"] for c in workflow.list_columns()] == ["done", "todo", "progress"]
    assert [c["orderIndex"] for c in workflow.list_columns()] == [0, 1, 2]


def test_reorder_columns_partial_list_leaves_others_untouched():
    workflow = _workflow()

    workflow.reorder_columns(["done"])

    indices = {c["id"]: c["orderIndex"] for c in workflow.store.list(COLUMNS)}
    assert indices == {"todo": 0, "progress": 1, "done": 0}


def test_reorder_columns_ignores_unknown_ids_and_last_duplicate_wins():
    workflow = _workflow()

    workflow.reorder_columns(["ghost", "todo", "done", "todo"])

    indices = {c["id"]: c["orderIndex"] for c in workflow.store.list(COLUMNS)}
    assert indices == {"todo": 3, "progress": 1, "done": 2}


def test_delete_column_migrates_tickets_sharing_an_id():
    workflow = _workflow()
    store = workflow.store
    store.append(TICKETS, {"id": "KAN-1", "status": "progress", "sprintId": "s1"})
    store.append(TICKETS, {"id": "KAN-1", "status": "progress", "sprintId": "s1"})

    workflow.delete_column("progress")

    tickets = store.list(TICKETS)
    assert [t["status"] for t in tickets] == ["backlog", "backlog"]
    assert [t["sprintId"] for t in tickets] == ["", ""]
