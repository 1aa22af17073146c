import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from db.session import engine, SessionLocal
from db.base import Base
from models import table_records  # noqa: F401  registers the ORM tables
from services.errors import TableError
from services.sample_data import ensure_sample_table
from services.table_store import SqlTableStore
from services.workspace import TableWorkspace

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "conflict": 409,
    "invalid_argument": 400,
    "storage_unavailable": 503,
}


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


def _seed_enabled() -> bool:
    return os.getenv("SEED_SAMPLE_DATA", "").strip().lower() in {"1", "true", "yes", "on"}


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="Table Builder API",
    version="1.0.0",
    swagger_ui_parameters={
        "displayRequestDuration": True,
    },
)
app.state.workspace = TableWorkspace(SqlTableStore(SessionLocal))

# --------------------------------------------------
# DB INIT
# --------------------------------------------------
@app.on_event("startup")
def _init_db():
    try:
        Base.metadata.create_all(bind=engine)
        app.state.workspace.load()
        if _seed_enabled():
            ensure_sample_table(app.state.workspace)
    except Exception:
        logger.exception("DB init failed")

# --------------------------------------------------
# ERRORS
# --------------------------------------------------
@app.exception_handler(TableError)
def _table_error(request: Request, exc: TableError):
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "kind": exc.kind})

# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------------------------------------
# CORS PREFLIGHT (EXPLICIT)
# --------------------------------------------------
@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.tables import router as tables_router
from routers.rows import router as rows_router
from routers.sync import router as sync_router
app.include_router(tables_router)
app.include_router(rows_router)
app.include_router(sync_router)

# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/api/health")
def health():
    return {"status": "ok", "pending_sync": len(app.state.workspace.sync_status()["pending"])}

@app.get("/")
def root():
    return {"status": "ok"}
