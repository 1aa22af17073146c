import os
import re
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

load_dotenv()


def _normalize_database_url(raw_url: str) -> str:
    cleaned = re.sub(r"\s+", "", (raw_url or "").strip())
    if cleaned.startswith("postgres://"):
        cleaned = "postgresql://" + cleaned[len("postgres://") :]
    return cleaned


def _needs_ssl(url: str) -> bool:
    return ".rds.amazonaws.com" in url or ".aws.neon.tech" in url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(raw_url: str):
    url = _normalize_database_url(raw_url)
    engine_kwargs = {
        "pool_pre_ping": True,
    }

    if url.startswith("postgresql"):
        engine_kwargs.update(
            {
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "1800")),
                "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
            }
        )

        if _needs_ssl(url) and "sslmode=" not in url:
            engine_kwargs["connect_args"] = {"sslmode": "require"}
    elif url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    new_engine = create_engine(url, **engine_kwargs)
    if url.startswith("sqlite"):
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def make_session_factory(bound_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=bound_engine)


DATABASE_URL = _normalize_database_url(
    os.getenv("DATABASE_URL", "sqlite:///./tables.sqlite")
)

engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
