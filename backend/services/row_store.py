import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from services import value_codec
from services.errors import Conflict, InvalidArgument, NotFound, TableError
from services.schema_model import Row, Table, new_id

logger = logging.getLogger(__name__)

BATCH_OPERATIONS = ("create", "update", "delete")


def _decode_fields(table: Table, fields: dict[str, Any]) -> dict[str, Any]:
    columns = {col.id: col for col in table.columns}
    out: dict[str, Any] = {}
    for key, value in fields.items():
        column = columns.get(key)
        out[key] = value_codec.decode(column, value) if column is not None else value
    return out


def _row_index(table: Table, row_id: str) -> int:
    for idx, row in enumerate(table.rows):
        if row.id == row_id:
            return idx
    raise NotFound(f"Row not found: {row_id}")


def get_row(table: Table, row_id: str) -> Row:
    return table.rows[_row_index(table, row_id)]


def create_row(table: Table, fields: dict[str, Any] | None = None, row_id: str | None = None) -> tuple[Table, Row]:
    if row_id is not None:
        row_id = str(row_id).strip()
        if not row_id:
            raise InvalidArgument("Row id must not be empty")
        if any(row.id == row_id for row in table.rows):
            raise Conflict(f"Row id already in use: {row_id}")

    data = _decode_fields(table, dict(fields or {}))
    for col in table.columns:
        if col.id not in data:
            data[col.id] = value_codec.default_value(col.type)

    row = Row(id=row_id or new_id(), fields=data)
    return replace(table, rows=table.rows + (row,)), row


def update_row(table: Table, row_id: str, partial_fields: dict[str, Any]) -> tuple[Table, Row]:
    idx = _row_index(table, row_id)
    current = table.rows[idx]
    merged = dict(current.fields)
    merged.update(_decode_fields(table, dict(partial_fields or {})))
    row = Row(id=current.id, fields=merged)
    rows = table.rows[:idx] + (row,) + table.rows[idx + 1:]
    return replace(table, rows=rows), row


def delete_row(table: Table, row_id: str) -> Table:
    idx = _row_index(table, row_id)
    return replace(table, rows=table.rows[:idx] + table.rows[idx + 1:])


# ---------- BATCH ----------

@dataclass(frozen=True)
class BatchOperation:
    type: str
    row_id: str | None = None
    row_ids: tuple[str, ...] | None = None
    fields: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchOperation":
        row_ids = data.get("row_ids")
        return cls(
            type=str(data.get("type") or ""),
            row_id=data.get("row_id"),
            row_ids=tuple(row_ids) if row_ids is not None else None,
            fields=data.get("fields"),
        )


@dataclass
class BatchReport:
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"results": list(self.results), "errors": list(self.errors)}


def _error_entry(index: int, op_type: str, row_id: str | None, exc: TableError) -> dict[str, Any]:
    return {
        "index": index,
        "operation": op_type,
        "id": row_id,
        "kind": exc.kind,
        "error": exc.message,
    }


def _apply_one(table: Table, op: BatchOperation) -> tuple[Table, list[str]]:
    if op.type == "create":
        table, row = create_row(table, op.fields, row_id=op.row_id)
        return table, [row.id]
    if op.type == "update":
        if not op.row_id:
            raise InvalidArgument("Update requires row_id")
        table, row = update_row(table, op.row_id, op.fields or {})
        return table, [row.id]
    if op.type == "delete":
        if not op.row_id:
            raise InvalidArgument("Delete requires row_id or row_ids")
        return delete_row(table, op.row_id), [op.row_id]
    raise InvalidArgument("Unknown operation type")


def batch_apply(table: Table, operations: Iterable[BatchOperation]) -> tuple[Table, BatchReport]:
    """
    Apply operations in order, best-effort. A failing operation is recorded in
    `errors` and leaves the table as it was before that operation; later
    operations still run.
    """
    report = BatchReport()
    for index, op in enumerate(operations):
        targets = [op]
        if op.type == "delete" and not op.row_id and op.row_ids:
            targets = [BatchOperation(type="delete", row_id=rid) for rid in op.row_ids]

        for target in targets:
            try:
                table, ids = _apply_one(table, target)
            except TableError as exc:
                report.errors.append(_error_entry(index, target.type, target.row_id, exc))
                continue
            for row_id in ids:
                report.results.append({"index": index, "operation": target.type, "id": row_id, "success": True})

    logger.info(
        "BATCH: table=%s results=%s errors=%s",
        table.id,
        len(report.results),
        len(report.errors),
    )
    return table, report
