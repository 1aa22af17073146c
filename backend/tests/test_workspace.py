import pytest

from services.errors import NotFound, StorageUnavailable
from services.row_store import BatchOperation
from services.sample_data import SAMPLE_TABLE_ID, ensure_sample_table
from services.schema_model import Column
from services.workspace import TableWorkspace

from conftest import FlakyStore

STAFF_COLUMNS = [Column(id="name", name="Name", type="text"), Column(id="active", name="Active", type="boolean")]


def test_mutations_reach_the_store(workspace, store):
    table = workspace.create_table("Staff", STAFF_COLUMNS).value
    row = workspace.create_row(table.id, {"name": "Amy"}).value
    workspace.update_row(table.id, row.id, {"active": True})

    reloaded = TableWorkspace(store)
    assert reloaded.get_table(table.id).rows[0].fields == {"name": "Amy", "active": True}


def test_missing_table_is_not_found(workspace):
    with pytest.raises(NotFound):
        workspace.get_table("nope")
    with pytest.raises(NotFound):
        workspace.create_row("nope", {})


def test_storage_failure_keeps_memory_change_and_flush_reconciles(store):
    flaky = FlakyStore(store)
    workspace = TableWorkspace(flaky)
    table = workspace.create_table("Staff", STAFF_COLUMNS).value

    flaky.down = True
    result = workspace.create_row(table.id, {"name": "Amy"})
    assert result.synced is False
    assert result.error == "store is down"
    assert workspace.get_table(table.id).rows[0].fields["name"] == "Amy"
    assert workspace.sync_status()["pending"] == [table.id]

    assert workspace.flush() == {"flushed": [], "pending": [table.id]}

    flaky.down = False
    assert workspace.flush() == {"flushed": [table.id], "pending": []}
    assert workspace.sync_status() == {"pending": [], "last_error": None}
    assert TableWorkspace(store).get_table(table.id).rows[0].fields["name"] == "Amy"


def test_next_mutation_on_pending_table_writes_full_snapshot(store):
    flaky = FlakyStore(store)
    workspace = TableWorkspace(flaky)
    table = workspace.create_table("Staff", STAFF_COLUMNS).value

    flaky.down = True
    workspace.create_row(table.id, {"name": "Amy"}, row_id="amy")
    flaky.down = False
    assert workspace.create_row(table.id, {"name": "Bob"}, row_id="bob").synced is True

    assert [r.id for r in TableWorkspace(store).get_table(table.id).rows] == ["amy", "bob"]


def test_pending_delete_is_retried(store):
    flaky = FlakyStore(store)
    workspace = TableWorkspace(flaky)
    table = workspace.create_table("Staff", STAFF_COLUMNS).value

    flaky.down = True
    assert workspace.delete_table(table.id).synced is False
    with pytest.raises(NotFound):
        workspace.get_table(table.id)

    flaky.down = False
    workspace.flush()
    assert TableWorkspace(store).list_tables() == []


def test_update_table_renames_and_replaces_columns(workspace):
    table = workspace.create_table("Staff", STAFF_COLUMNS).value
    workspace.create_row(table.id, {"name": "Amy", "active": True})

    updated = workspace.update_table(
        table.id,
        name="People",
        columns=[Column(id="name", name="Name", type="text")],
    ).value

    assert updated.name == "People"
    assert [c.id for c in updated.columns] == ["name"]
    assert "active" not in updated.rows[0].fields


def test_batch_through_workspace(workspace):
    table = workspace.create_table("Staff", STAFF_COLUMNS).value
    report = workspace.batch_rows(
        table.id,
        [
            BatchOperation(type="create", fields={"name": "A"}),
            BatchOperation(type="delete", row_id="ghost"),
        ],
    ).value
    assert len(report.results) == 1 and len(report.errors) == 1
    assert len(workspace.list_rows(table.id)) == 1


def test_sample_table_seeded_once(workspace):
    assert ensure_sample_table(workspace) is True
    assert ensure_sample_table(workspace) is False
    table = workspace.get_table(SAMPLE_TABLE_ID)
    assert [r.id for r in table.rows] == ["emp1", "emp2"]
    assert table.rows[0].fields["salary"] == 65000.0


def test_recreated_row_keeps_its_new_place_after_reload(workspace, store):
    table = workspace.create_table("Staff", STAFF_COLUMNS).value
    for row_id in ("a", "b", "c"):
        workspace.create_row(table.id, {"name": row_id.upper()}, row_id=row_id)

    result = workspace.batch_rows(
        table.id,
        [
            BatchOperation(type="delete", row_id="a"),
            BatchOperation(type="create", row_id="a", fields={"name": "A again"}),
        ],
    )
    assert result.synced is True

    in_memory = [r.id for r in workspace.list_rows(table.id)]
    reloaded = TableWorkspace(store).get_table(table.id)
    assert in_memory == ["b", "c", "a"]
    assert [r.id for r in reloaded.rows] == in_memory
    assert reloaded.rows[2].fields["name"] == "A again"


def test_rows_handed_out_are_read_only(workspace):
    table = workspace.create_table("Staff", STAFF_COLUMNS).value
    row = workspace.create_row(table.id, {"name": "Amy"}).value

    with pytest.raises(TypeError):
        row.fields["name"] = "Mallory"
    with pytest.raises(TypeError):
        workspace.get_row(table.id, row.id).fields["active"] = True

    assert workspace.get_row(table.id, row.id).fields == {"name": "Amy", "active": False}
