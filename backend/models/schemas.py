from typing import Any, Literal

from pydantic import BaseModel, Field

ColumnType = Literal["text", "number", "date", "boolean", "select", "email", "phone", "url", "file"]


class ColumnPayload(BaseModel):
    id: str | None = None
    name: str = ""
    type: ColumnType = "text"
    options: list[str] | None = None


class CreateTableRequest(BaseModel):
    id: str | None = None
    name: str = ""
    columns: list[ColumnPayload] = Field(default_factory=list)


class UpdateTableRequest(BaseModel):
    name: str | None = None
    columns: list[ColumnPayload] | None = None


class AddColumnRequest(BaseModel):
    id: str | None = None
    name: str = ""
    type: ColumnType = "text"
    options: list[str] | None = None


class RenameColumnRequest(BaseModel):
    name: str


class ReorderColumnsRequest(BaseModel):
    order: list[str]


class CreateRowRequest(BaseModel):
    id: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class UpdateRowRequest(BaseModel):
    fields: dict[str, Any] = Field(default_factory=dict)


class BatchOperationPayload(BaseModel):
    type: str
    row_id: str | None = None
    row_ids: list[str] | None = None
    fields: dict[str, Any] | None = None


class BatchRequest(BaseModel):
    operations: list[BatchOperationPayload] = Field(default_factory=list)


class SortPayload(BaseModel):
    key: str
    direction: Literal["asc", "desc"] = "asc"


class QueryRequest(BaseModel):
    search: str | None = None
    filters: dict[str, Any] = Field(default_factory=dict)
    sort: SortPayload | None = None
