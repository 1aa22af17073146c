import json
import re
from io import BytesIO
from typing import Any

import pandas as pd

from services import value_codec
from services.errors import InvalidArgument
from services.schema_model import Table, cell_value

EXPORT_FORMATS = {
    "json": "application/json",
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def export_filename(table: Table, fmt: str) -> str:
    stem = re.sub(r"\s+", "-", table.name.strip().lower()) or table.id
    return f"{stem}.{fmt}"


def snapshot(table: Table) -> dict[str, Any]:
    return {
        "tableName": table.name,
        "columns": [col.to_dict() for col in table.columns],
        "rows": [row.to_dict() for row in table.rows],
    }


def to_dataframe(table: Table) -> pd.DataFrame:
    """Header = column names, one record per row, cells in column order as display strings."""
    records = [
        [value_codec.display_value(col.type, cell_value(row, col)) for col in table.columns]
        for row in table.rows
    ]
    return pd.DataFrame(records, columns=[col.name for col in table.columns])


def _sheet_name(table: Table) -> str:
    return re.sub(r"[\[\]:*?/\\]", "", table.name)[:31] or "Sheet1"


def export_table(table: Table, fmt: str) -> bytes:
    if fmt not in EXPORT_FORMATS:
        raise InvalidArgument(f"Unsupported export format: {fmt}")
    if fmt == "json":
        return json.dumps(snapshot(table), ensure_ascii=False, indent=2, default=str).encode("utf-8")

    df = to_dataframe(table)
    if fmt == "csv":
        return df.to_csv(index=False).encode("utf-8")

    buf = BytesIO()
    df.to_excel(buf, index=False, sheet_name=_sheet_name(table))
    return buf.getvalue()
