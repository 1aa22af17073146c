import logging
import uuid
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from services import value_codec
from services.errors import Conflict, InvalidArgument, NotFound

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------- DATA MODEL ----------

@dataclass(frozen=True)
class Column:
    id: str
    name: str
    type: str
    options: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.options is not None:
            out["options"] = list(self.options)
        return out


@dataclass(frozen=True)
class Row:
    id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # private read-only copy
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "fields": dict(self.fields)}


@dataclass(frozen=True)
class Table:
    id: str
    name: str
    columns: tuple[Column, ...] = ()
    rows: tuple[Row, ...] = ()

    def column(self, column_id: str) -> Column:
        for col in self.columns:
            if col.id == column_id:
                return col
        raise NotFound(f"Column not found: {column_id}")

    def has_column(self, column_id: str) -> bool:
        return any(col.id == column_id for col in self.columns)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "columns": [col.to_dict() for col in self.columns],
        }

    def to_dict(self) -> dict[str, Any]:
        out = self.summary()
        out["rows"] = [row.to_dict() for row in self.rows]
        return out


def cell_value(row: Row, column: Column) -> Any:
    if column.id not in row.fields:
        return value_codec.default_value(column.type)
    return value_codec.decode(column, row.fields[column.id])


def primary_column(table: Table) -> Column | None:
    return table.columns[0] if table.columns else None


# ---------- VALIDATION ----------

def _clean_name(name: str | None, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidArgument(f"{what} name must not be empty")
    return cleaned


def _clean_options(column_type: str, options: Iterable[str] | None) -> tuple[str, ...] | None:
    if column_type != value_codec.SELECT:
        return None
    return tuple(opt.strip() for opt in (options or []) if isinstance(opt, str) and opt.strip())


def make_column(
    name: str,
    column_type: str,
    options: Iterable[str] | None = None,
    column_id: str | None = None,
) -> Column:
    if column_type not in value_codec.COLUMN_TYPES:
        raise InvalidArgument(f"Unknown column type: {column_type}")
    return Column(
        id=column_id or new_id(),
        name=_clean_name(name, "Column"),
        type=column_type,
        options=_clean_options(column_type, options),
    )


def column_from_dict(data: dict[str, Any]) -> Column:
    # Columns created without a display name fall back to their id.
    return make_column(
        name=data.get("name") or data.get("id") or "",
        column_type=data.get("type") or value_codec.TEXT,
        options=data.get("options"),
        column_id=data.get("id"),
    )


def new_table(name: str, columns: Iterable[Column] = (), table_id: str | None = None) -> Table:
    cols = tuple(columns)
    ids = [col.id for col in cols]
    if len(ids) != len(set(ids)):
        raise InvalidArgument("Column ids must be unique")
    return Table(id=table_id or new_id(), name=_clean_name(name, "Table"), columns=cols, rows=())


def rename_table(table: Table, name: str) -> Table:
    return replace(table, name=_clean_name(name, "Table"))


# ---------- COLUMN OPERATIONS ----------

def add_column(
    table: Table,
    name: str,
    column_type: str,
    options: Iterable[str] | None = None,
    column_id: str | None = None,
) -> tuple[Table, Column]:
    if column_id and table.has_column(column_id):
        raise Conflict(f"Column id already in use: {column_id}")
    column = make_column(name, column_type, options=options, column_id=column_id)
    return replace(table, columns=table.columns + (column,)), column


def rename_column(table: Table, column_id: str, new_name: str) -> Table:
    column = table.column(column_id)
    cleaned = (new_name or "").strip()
    if not cleaned or cleaned == column.name:
        return table
    columns = tuple(replace(col, name=cleaned) if col.id == column_id else col for col in table.columns)
    return replace(table, columns=columns)


def remove_column(table: Table, column_id: str) -> Table:
    table.column(column_id)
    columns = tuple(col for col in table.columns if col.id != column_id)
    rows = tuple(
        Row(id=row.id, fields={k: v for k, v in row.fields.items() if k != column_id})
        if column_id in row.fields
        else row
        for row in table.rows
    )
    return replace(table, columns=columns, rows=rows)


def reorder_columns(table: Table, new_order: Iterable[str]) -> Table:
    order = list(new_order)
    current = [col.id for col in table.columns]
    if len(order) != len(current) or set(order) != set(current):
        raise InvalidArgument("Column order must be a permutation of the existing column ids")
    by_id = {col.id: col for col in table.columns}
    return replace(table, columns=tuple(by_id[cid] for cid in order))


def replace_columns(table: Table, columns: Iterable[Column]) -> Table:
    """
    Reconcile `table` with a complete new column list.
    Dropped ids cascade like remove_column; the type of a surviving id cannot change.
    """
    incoming = list(columns)
    ids = [col.id for col in incoming]
    if len(ids) != len(set(ids)):
        raise InvalidArgument("Column ids must be unique")

    existing = {col.id: col for col in table.columns}
    for col in incoming:
        current = existing.get(col.id)
        if current is not None and current.type != col.type:
            raise InvalidArgument(
                f"Column type is immutable: {col.id} is {current.type}, got {col.type}"
            )

    result = table
    for col_id in existing:
        if col_id not in ids:
            result = remove_column(result, col_id)

    kept = {col.id: col for col in result.columns}
    for col in incoming:
        kept[col.id] = col
    result = replace(result, columns=tuple(kept[cid] for cid in ids))
    logger.debug("Columns replaced on table %s: %s", table.id, ids)
    return result
