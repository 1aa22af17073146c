from dataclasses import replace

import pytest

from services import row_store
from services.errors import InvalidArgument
from services.query_engine import SortSpec, filter_rows, query_rows, search_rows, sort_rows
from services.schema_model import Column, Row, new_table


def _table():
    table = new_table(
        "People",
        [
            Column(id="name", name="Name", type="text"),
            Column(id="dept", name="Dept", type="select", options=("A", "B")),
            Column(id="age", name="Age", type="number"),
            Column(id="joined", name="Joined", type="date"),
            Column(id="active", name="Active", type="boolean"),
            Column(id="cv", name="CV", type="file"),
        ],
    )
    rows = [
        ("amy", {"name": "Amy", "dept": "A", "age": 30, "joined": "2023-01-15", "active": True, "cv": {"name": "amy_resume.pdf"}}),
        ("bob", {"name": "Bob", "dept": "B", "age": 40, "joined": "2022-06-01", "active": False}),
        ("cat", {"name": "Cat", "dept": "AB", "age": 30, "joined": "2024-03-10", "active": True}),
        ("dan", {"name": "Dan", "dept": "B", "age": 25, "joined": "2021-12-31", "active": False}),
    ]
    for row_id, fields in rows:
        table, _ = row_store.create_row(table, fields, row_id=row_id)
    return table


def _ids(rows):
    return [r.id for r in rows]


def test_search_is_case_insensitive_and_covers_files():
    table = _table()
    assert _ids(search_rows(table, "")) == ["amy", "bob", "cat", "dan"]
    assert _ids(search_rows(table, "BO")) == ["bob"]
    assert _ids(search_rows(table, "resume")) == ["amy"]
    assert _ids(search_rows(table, "2022-06")) == ["bob"]


def test_boolean_filter_is_exact():
    table = _table()
    assert _ids(filter_rows(table, table.rows, {"active": "true"})) == ["amy", "cat"]
    assert _ids(filter_rows(table, table.rows, {"active": False})) == ["bob", "dan"]


def test_select_filter_is_exact_not_substring():
    table = _table()
    assert _ids(filter_rows(table, table.rows, {"dept": "A"})) == ["amy"]


def test_text_filter_is_substring():
    table = _table()
    assert _ids(filter_rows(table, table.rows, {"name": "a"})) == ["amy", "cat", "dan"]


def test_numeric_range_bounds_are_inclusive_and_optional():
    table = _table()
    assert _ids(filter_rows(table, table.rows, {"age_min": "30"})) == ["amy", "bob", "cat"]
    assert _ids(filter_rows(table, table.rows, {"age_max": 30})) == ["amy", "cat", "dan"]
    assert _ids(filter_rows(table, table.rows, {"age_min": 26, "age_max": "35"})) == ["amy", "cat"]
    assert _ids(filter_rows(table, table.rows, {"age_min": "", "age_max": None})) == ["amy", "bob", "cat", "dan"]


def test_numeric_range_lets_non_numeric_cells_through():
    table = _table()
    # Stored data bypassing the codec, e.g. imported or legacy rows.
    table = replace(table, rows=table.rows + (Row(id="eve", fields={"name": "Eve", "age": "unknown"}),))
    assert _ids(filter_rows(table, table.rows, {"age_min": 35})) == ["bob", "eve"]


def test_date_range():
    table = _table()
    assert _ids(filter_rows(table, table.rows, {"joined_start": "2022-01-01", "joined_end": "2023-12-31"})) == ["amy", "bob"]
    assert _ids(filter_rows(table, table.rows, {"joined_end": "2021-12-31"})) == ["dan"]


def test_filters_and_search_are_conjunctive():
    table = _table()
    rows = query_rows(table, search="a", filters={"active": "true", "age_max": 30, "dept": "A"})
    assert _ids(rows) == ["amy"]
    assert query_rows(table, search="bob", filters={"active": "true"}) == []


def test_unknown_filter_keys_are_ignored():
    table = _table()
    assert len(filter_rows(table, table.rows, {"salary_min": 10, "name_start": "x"})) == 4


def test_sort_numeric_and_stable_in_both_directions():
    table = _table()
    asc = sort_rows(table, table.rows, SortSpec("age", "asc"))
    desc = sort_rows(table, table.rows, SortSpec("age", "desc"))
    assert _ids(asc) == ["dan", "amy", "cat", "bob"]
    assert _ids(desc) == ["bob", "amy", "cat", "dan"]


def test_sort_does_not_mutate_table():
    table = _table()
    sort_rows(table, table.rows, SortSpec("name", "desc"))
    assert _ids(table.rows) == ["amy", "bob", "cat", "dan"]


def test_sort_validation():
    table = _table()
    with pytest.raises(InvalidArgument):
        sort_rows(table, table.rows, SortSpec("nope"))
    with pytest.raises(InvalidArgument):
        sort_rows(table, table.rows, SortSpec("age", "sideways"))
