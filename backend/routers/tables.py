from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from models.schemas import (
    AddColumnRequest,
    ColumnPayload,
    CreateTableRequest,
    RenameColumnRequest,
    ReorderColumnsRequest,
    UpdateTableRequest,
)
from routers.notices import notice
from services.deps import get_workspace
from services.export_service import EXPORT_FORMATS, export_filename, export_table
from services.schema_model import Column, column_from_dict
from services.workspace import TableWorkspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["tables"])


def _columns(payloads: list[ColumnPayload]) -> list[Column]:
    return [column_from_dict(p.model_dump()) for p in payloads]


# --------------------------------------------------
# TABLES
# --------------------------------------------------
@router.get("")
def list_tables(workspace: TableWorkspace = Depends(get_workspace)):
    return workspace.list_tables()


@router.post("", status_code=201)
def create_table(payload: CreateTableRequest, workspace: TableWorkspace = Depends(get_workspace)):
    result = workspace.create_table(payload.name, _columns(payload.columns), table_id=payload.id)
    return notice("Table created successfully", result, table=result.value.to_dict())


@router.get("/{table_id}")
def get_table(table_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    return workspace.get_table(table_id).to_dict()


@router.put("/{table_id}")
def update_table(
    table_id: str,
    payload: UpdateTableRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    columns = _columns(payload.columns) if payload.columns is not None else None
    result = workspace.update_table(table_id, name=payload.name, columns=columns)
    return notice("Table updated successfully", result, table=result.value.summary())


@router.delete("/{table_id}")
def delete_table(table_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    result = workspace.delete_table(table_id)
    return notice("Table deleted successfully", result, id=table_id)


# --------------------------------------------------
# COLUMNS
# --------------------------------------------------
@router.post("/{table_id}/columns", status_code=201)
def add_column(
    table_id: str,
    payload: AddColumnRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    result = workspace.add_column(
        table_id,
        payload.name,
        payload.type,
        options=payload.options,
        column_id=payload.id,
    )
    return notice("Column added successfully", result, column=result.value.to_dict())


@router.patch("/{table_id}/columns/{column_id}")
def rename_column(
    table_id: str,
    column_id: str,
    payload: RenameColumnRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    result = workspace.rename_column(table_id, column_id, payload.name)
    return notice("Column renamed successfully", result, column=result.value.to_dict())


@router.delete("/{table_id}/columns/{column_id}")
def remove_column(table_id: str, column_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    result = workspace.remove_column(table_id, column_id)
    return notice("Column deleted successfully", result, table=result.value.summary())


@router.put("/{table_id}/columns/order")
def reorder_columns(
    table_id: str,
    payload: ReorderColumnsRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    result = workspace.reorder_columns(table_id, payload.order)
    return notice("Columns reordered successfully", result, table=result.value.summary())


# --------------------------------------------------
# EXPORT
# --------------------------------------------------
@router.get("/{table_id}/export")
def export(
    table_id: str,
    format: str = Query("json"),
    workspace: TableWorkspace = Depends(get_workspace),
):
    fmt = (format or "json").strip().lower()
    table = workspace.get_table(table_id)
    content = export_table(table, fmt)
    filename = export_filename(table, fmt)
    logger.info("EXPORT: table=%s format=%s bytes=%s", table_id, fmt, len(content))

    return StreamingResponse(
        iter([content]),
        media_type=EXPORT_FORMATS[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
