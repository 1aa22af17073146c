from fastapi import APIRouter, Depends

from services.deps import get_workspace
from services.workspace import TableWorkspace

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status")
def sync_status(workspace: TableWorkspace = Depends(get_workspace)):
    return workspace.sync_status()


@router.post("/flush")
def flush(workspace: TableWorkspace = Depends(get_workspace)):
    return workspace.flush()
