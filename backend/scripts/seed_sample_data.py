import argparse

from db.base import Base
from db.session import DATABASE_URL, make_engine, make_session_factory
from services.sample_data import ensure_sample_table
from services.table_store import SqlTableStore
from services.workspace import TableWorkspace


def main():
    parser = argparse.ArgumentParser(description="Seed the sample employee table into an empty store.")
    parser.add_argument("--database-url", default=DATABASE_URL, help="defaults to DATABASE_URL")
    args = parser.parse_args()

    engine = make_engine(args.database_url)
    Base.metadata.create_all(bind=engine)
    try:
        workspace = TableWorkspace(SqlTableStore(make_session_factory(engine)))
        created = ensure_sample_table(workspace)
        status = workspace.sync_status()
        if status["pending"]:
            raise SystemExit(f"Seed not persisted: {status['last_error']}")
        print(f"Seed complete. sample_created={created}")
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
