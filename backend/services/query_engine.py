import logging
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Callable, Iterable

from services import value_codec
from services.errors import InvalidArgument
from services.schema_model import Column, Row, Table, cell_value

logger = logging.getLogger(__name__)

NUMBER_BOUNDS = {"_min": "min", "_max": "max"}
DATE_BOUNDS = {"_start": "min", "_end": "max"}

RowPredicate = Callable[[Row], bool]


@dataclass(frozen=True)
class SortSpec:
    key: str
    direction: str = "asc"


def _raw_value(row: Row, column: Column) -> Any:
    if column.id in row.fields:
        return row.fields[column.id]
    return value_codec.default_value(column.type)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _filter_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------- SEARCH ----------

def row_matches_search(row: Row, columns: Iterable[Column], term: str) -> bool:
    needle = term.lower()
    for col in columns:
        text = value_codec.display_value(col.type, cell_value(row, col))
        if needle in text.lower():
            return True
    return False


def search_rows(table: Table, term: str | None) -> list[Row]:
    if not term:
        return list(table.rows)
    return [row for row in table.rows if row_matches_search(row, table.columns, term)]


# ---------- FILTERS ----------

def _exact_predicate(column: Column, wanted: Any) -> RowPredicate:
    if column.type == value_codec.BOOLEAN:
        expected = _filter_text(wanted).strip().lower()
        return lambda row: _filter_text(cell_value(row, column)) == expected

    if column.type == value_codec.SELECT:
        expected = _filter_text(wanted)
        return lambda row: _filter_text(cell_value(row, column) or "") == expected

    needle = _filter_text(wanted).lower()
    return lambda row: needle in value_codec.display_value(column.type, cell_value(row, column)).lower()


def _range_predicate(column: Column, bound: str, limit: Any) -> RowPredicate | None:
    parse = value_codec.to_number if column.type == value_codec.NUMBER else value_codec.to_date
    parsed_limit = parse(limit)
    if parsed_limit is None:
        logger.debug("Ignoring unparseable %s bound for %s: %r", bound, column.id, limit)
        return None

    def predicate(row: Row) -> bool:
        value = parse(_raw_value(row, column))
        # Cells that do not parse are not excluded by a range.
        if value is None:
            return True
        if bound == "min":
            return value >= parsed_limit
        return value <= parsed_limit

    return predicate


def _resolve_filter(table: Table, key: str, value: Any) -> RowPredicate | None:
    if table.has_column(key):
        return _exact_predicate(table.column(key), value)

    for suffixes, column_type in ((NUMBER_BOUNDS, value_codec.NUMBER), (DATE_BOUNDS, value_codec.DATE)):
        for suffix, bound in suffixes.items():
            if not key.endswith(suffix):
                continue
            base = key[: -len(suffix)]
            if table.has_column(base) and table.column(base).type == column_type:
                return _range_predicate(table.column(base), bound, value)

    logger.debug("Ignoring filter on unknown column: %s", key)
    return None


def build_filters(table: Table, filters: dict[str, Any] | None) -> list[RowPredicate]:
    predicates: list[RowPredicate] = []
    for key, value in (filters or {}).items():
        if _is_blank(value):
            continue
        predicate = _resolve_filter(table, key, value)
        if predicate is not None:
            predicates.append(predicate)
    return predicates


def filter_rows(table: Table, rows: Iterable[Row], filters: dict[str, Any] | None) -> list[Row]:
    predicates = build_filters(table, filters)
    return [row for row in rows if all(pred(row) for pred in predicates)]


# ---------- SORT ----------

def sort_rows(table: Table, rows: Iterable[Row], sort: SortSpec | None) -> list[Row]:
    out = list(rows)
    if sort is None:
        return out
    if sort.direction not in {"asc", "desc"}:
        raise InvalidArgument(f"Sort direction must be asc or desc, got {sort.direction}")
    if not table.has_column(sort.key):
        raise InvalidArgument(f"Cannot sort on unknown column: {sort.key}")

    column = table.column(sort.key)
    key = cmp_to_key(
        lambda a, b: value_codec.compare(cell_value(a, column), cell_value(b, column), column.type)
    )
    # sorted() is stable in both directions, reverse=True keeps ties in input order.
    return sorted(out, key=key, reverse=sort.direction == "desc")


def query_rows(
    table: Table,
    search: str | None = None,
    filters: dict[str, Any] | None = None,
    sort: SortSpec | None = None,
) -> list[Row]:
    rows = search_rows(table, search)
    rows = filter_rows(table, rows, filters)
    return sort_rows(table, rows, sort)
