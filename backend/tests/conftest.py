from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from db.base import Base
from db.session import make_engine, make_session_factory
from models import table_records  # noqa: F401
from services.deps import get_workspace
from services.errors import StorageUnavailable
from services.schema_model import Column, new_table
from services.table_store import SqlTableStore
from services.workspace import TableWorkspace


@pytest.fixture()
def engine(tmp_path: Path):
    eng = make_engine(f"sqlite:///{tmp_path / 'tables.sqlite'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def store(engine) -> SqlTableStore:
    return SqlTableStore(make_session_factory(engine), max_attempts=2, backoff_seconds=0)


@pytest.fixture()
def workspace(store) -> TableWorkspace:
    ws = TableWorkspace(store)
    ws.load()
    return ws


@pytest.fixture()
def client(workspace):
    from main import app

    app.dependency_overrides[get_workspace] = lambda: workspace
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_staff_table():
    return new_table(
        "Staff",
        [
            Column(id="name", name="Name", type="text"),
            Column(id="active", name="Active", type="boolean"),
        ],
        table_id="staff",
    )


class FlakyStore(SqlTableStore):
    def __init__(self, inner: SqlTableStore):
        super().__init__(inner.session_factory, max_attempts=1, backoff_seconds=0)
        self.down = False

    def _check(self):
        if self.down:
            raise StorageUnavailable("store is down")

    def apply_changes(self, before, after):
        self._check()
        super().apply_changes(before, after)

    def save_table(self, table):
        self._check()
        super().save_table(table)

    def delete_table(self, table_id):
        self._check()
        return super().delete_table(table_id)
