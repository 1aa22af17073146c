import logging
import threading
from dataclasses import dataclass
from typing import Any, Generic, Iterable, TypeVar

from services import query_engine, row_store, schema_model
from services.errors import Conflict, NotFound, StorageUnavailable
from services.query_engine import SortSpec
from services.row_store import BatchOperation, BatchReport
from services.schema_model import Column, Row, Table
from services.table_store import SqlTableStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Mutation(Generic[T]):
    """Outcome of a mutation: the value is applied in memory, `synced` says whether it reached the store."""

    value: T
    synced: bool
    error: str | None = None


class TableWorkspace:
    """
    Owns the current snapshot of every table and keeps the backing store in
    step with it. Mutations are applied in memory first; a store failure marks
    the table pending instead of undoing the change.
    """

    def __init__(self, store: SqlTableStore):
        self.store = store
        self._tables: dict[str, Table] = {}
        self._pending: dict[str, str] = {}  # table id -> "save" | "delete"
        self._last_error: str | None = None
        self._loaded = False
        self._lock = threading.RLock()

    # ---------- LOAD / SYNC ----------

    def load(self) -> None:
        tables = self.store.load_tables()
        with self._lock:
            self._tables = {table.id: table for table in tables}
            self._loaded = True
        logger.info("WORKSPACE: loaded %s tables", len(tables))

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _persist(self, before: Table | None, after: Table) -> tuple[bool, str | None]:
        if after.id in self._pending:
            # A full snapshot covers every change made since the last failure.
            self._pending[after.id] = "save"
            return self._flush_one(after.id)
        try:
            self.store.apply_changes(before, after)
        except StorageUnavailable as exc:
            self._mark_pending(after.id, "save", exc)
            return False, exc.message
        return True, None

    def _mark_pending(self, table_id: str, action: str, exc: StorageUnavailable) -> None:
        self._pending[table_id] = action
        self._last_error = exc.message
        logger.warning("SYNC PENDING: table=%s action=%s reason=%s", table_id, action, exc.message)

    def _flush_one(self, table_id: str) -> tuple[bool, str | None]:
        action = self._pending.get(table_id, "save")
        try:
            if action == "delete":
                self.store.delete_table(table_id)
            else:
                self.store.save_table(self._tables[table_id])
        except StorageUnavailable as exc:
            self._mark_pending(table_id, action, exc)
            return False, exc.message
        self._pending.pop(table_id, None)
        return True, None

    def flush(self) -> dict[str, Any]:
        with self._lock:
            flushed, failed = [], []
            for table_id in list(self._pending):
                ok, _ = self._flush_one(table_id)
                (flushed if ok else failed).append(table_id)
            if not self._pending:
                self._last_error = None
        logger.info("SYNC FLUSH: flushed=%s failed=%s", len(flushed), len(failed))
        return {"flushed": flushed, "pending": failed}

    def sync_status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "pending": sorted(self._pending),
                "last_error": self._last_error,
            }

    def _commit(self, before: Table | None, after: Table, value: T) -> Mutation[T]:
        self._tables[after.id] = after
        synced, error = self._persist(before, after)
        return Mutation(value=value, synced=synced, error=error)

    # ---------- TABLES ----------

    def list_tables(self) -> list[dict[str, Any]]:
        with self._lock:
            self._ensure_loaded()
            return [table.summary() for table in self._tables.values()]

    def get_table(self, table_id: str) -> Table:
        with self._lock:
            self._ensure_loaded()
            table = self._tables.get(table_id)
        if table is None:
            raise NotFound(f"Table not found: {table_id}")
        return table

    def create_table(self, name: str, columns: Iterable[Column] = (), table_id: str | None = None) -> Mutation[Table]:
        with self._lock:
            self._ensure_loaded()
            if table_id and table_id in self._tables:
                raise Conflict(f"Table id already in use: {table_id}")
            table = schema_model.new_table(name, columns, table_id=table_id)
            logger.info("TABLE CREATE: table=%s columns=%s", table.id, len(table.columns))
            return self._commit(None, table, table)

    def update_table(self, table_id: str, name: str | None = None, columns: Iterable[Column] | None = None) -> Mutation[Table]:
        with self._lock:
            before = self.get_table(table_id)
            after = before
            if name is not None:
                after = schema_model.rename_table(after, name)
            if columns is not None:
                after = schema_model.replace_columns(after, columns)
            logger.info("TABLE UPDATE: table=%s", table_id)
            return self._commit(before, after, after)

    def delete_table(self, table_id: str) -> Mutation[None]:
        with self._lock:
            self.get_table(table_id)
            self._tables.pop(table_id)
            logger.info("TABLE DELETE: table=%s", table_id)
            try:
                self.store.delete_table(table_id)
            except StorageUnavailable as exc:
                self._mark_pending(table_id, "delete", exc)
                return Mutation(value=None, synced=False, error=exc.message)
            self._pending.pop(table_id, None)
            return Mutation(value=None, synced=True)

    # ---------- COLUMNS ----------

    def add_column(
        self,
        table_id: str,
        name: str,
        column_type: str,
        options: Iterable[str] | None = None,
        column_id: str | None = None,
    ) -> Mutation[Column]:
        with self._lock:
            before = self.get_table(table_id)
            after, column = schema_model.add_column(before, name, column_type, options=options, column_id=column_id)
            logger.info("COLUMN ADD: table=%s column=%s type=%s", table_id, column.id, column.type)
            return self._commit(before, after, column)

    def rename_column(self, table_id: str, column_id: str, new_name: str) -> Mutation[Column]:
        with self._lock:
            before = self.get_table(table_id)
            after = schema_model.rename_column(before, column_id, new_name)
            return self._commit(before, after, after.column(column_id))

    def remove_column(self, table_id: str, column_id: str) -> Mutation[Table]:
        with self._lock:
            before = self.get_table(table_id)
            after = schema_model.remove_column(before, column_id)
            logger.info("COLUMN REMOVE: table=%s column=%s", table_id, column_id)
            return self._commit(before, after, after)

    def reorder_columns(self, table_id: str, new_order: Iterable[str]) -> Mutation[Table]:
        with self._lock:
            before = self.get_table(table_id)
            after = schema_model.reorder_columns(before, new_order)
            return self._commit(before, after, after)

    # ---------- ROWS ----------

    def list_rows(self, table_id: str) -> list[Row]:
        return list(self.get_table(table_id).rows)

    def get_row(self, table_id: str, row_id: str) -> Row:
        return row_store.get_row(self.get_table(table_id), row_id)

    def create_row(self, table_id: str, fields: dict[str, Any] | None = None, row_id: str | None = None) -> Mutation[Row]:
        with self._lock:
            before = self.get_table(table_id)
            after, row = row_store.create_row(before, fields, row_id=row_id)
            logger.info("ROW CREATE: table=%s row=%s", table_id, row.id)
            return self._commit(before, after, row)

    def update_row(self, table_id: str, row_id: str, fields: dict[str, Any]) -> Mutation[Row]:
        with self._lock:
            before = self.get_table(table_id)
            after, row = row_store.update_row(before, row_id, fields)
            logger.info("ROW UPDATE: table=%s row=%s keys=%s", table_id, row_id, sorted(fields or {}))
            return self._commit(before, after, row)

    def delete_row(self, table_id: str, row_id: str) -> Mutation[None]:
        with self._lock:
            before = self.get_table(table_id)
            after = row_store.delete_row(before, row_id)
            logger.info("ROW DELETE: table=%s row=%s", table_id, row_id)
            return self._commit(before, after, None)

    def batch_rows(self, table_id: str, operations: Iterable[BatchOperation]) -> Mutation[BatchReport]:
        with self._lock:
            before = self.get_table(table_id)
            after, report = row_store.batch_apply(before, operations)
            return self._commit(before, after, report)

    # ---------- QUERY ----------

    def query(
        self,
        table_id: str,
        search: str | None = None,
        filters: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
    ) -> list[Row]:
        return query_engine.query_rows(self.get_table(table_id), search=search, filters=filters, sort=sort)
