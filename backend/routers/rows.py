from __future__ import annotations

from fastapi import APIRouter, Depends

from models.schemas import BatchRequest, CreateRowRequest, QueryRequest, UpdateRowRequest
from routers.notices import notice
from services.deps import get_workspace
from services.query_engine import SortSpec
from services.row_store import BatchOperation
from services.workspace import TableWorkspace

router = APIRouter(prefix="/api/tables", tags=["rows"])


@router.get("/{table_id}/rows")
def list_rows(table_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    return [row.to_dict() for row in workspace.list_rows(table_id)]


@router.post("/{table_id}/rows", status_code=201)
def create_row(
    table_id: str,
    payload: CreateRowRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    result = workspace.create_row(table_id, payload.fields, row_id=payload.id)
    return notice("Row created successfully", result, row=result.value.to_dict())


@router.post("/{table_id}/rows/batch")
def batch_rows(
    table_id: str,
    payload: BatchRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    operations = [BatchOperation.from_dict(op.model_dump()) for op in payload.operations]
    result = workspace.batch_rows(table_id, operations)
    return notice("Batch applied", result, **result.value.to_dict())


@router.post("/{table_id}/query")
def query_rows(
    table_id: str,
    payload: QueryRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    sort = SortSpec(key=payload.sort.key, direction=payload.sort.direction) if payload.sort else None
    rows = workspace.query(table_id, search=payload.search, filters=payload.filters, sort=sort)
    return {"rows": [row.to_dict() for row in rows], "total": len(rows)}


@router.get("/{table_id}/rows/{row_id}")
def get_row(table_id: str, row_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    return workspace.get_row(table_id, row_id).to_dict()


@router.put("/{table_id}/rows/{row_id}")
def update_row(
    table_id: str,
    row_id: str,
    payload: UpdateRowRequest,
    workspace: TableWorkspace = Depends(get_workspace),
):
    result = workspace.update_row(table_id, row_id, payload.fields)
    return notice("Row updated successfully", result, row=result.value.to_dict())


@router.delete("/{table_id}/rows/{row_id}")
def delete_row(table_id: str, row_id: str, workspace: TableWorkspace = Depends(get_workspace)):
    result = workspace.delete_row(table_id, row_id)
    return notice("Row deleted successfully", result, id=row_id)
