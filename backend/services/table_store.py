import itertools
import json
import logging
import os
import time
from typing import Any, Callable, TypeVar

from sqlalchemy import func, text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.table_records import RowRecord, TableRecord
from services.errors import StorageUnavailable
from services.schema_model import Column, Row, Table

logger = logging.getLogger(__name__)

SYNC_MAX_ATTEMPTS = int(os.getenv("SYNC_MAX_ATTEMPTS", "3"))
SYNC_BACKOFF_SECONDS = float(os.getenv("SYNC_BACKOFF_SECONDS", "0.2"))

_TRANSIENT_ERRORS = (OperationalError, InterfaceError)

T = TypeVar("T")


# ---------- (DE)SERIALIZATION ----------

def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _load(raw: Any, expected: type):
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    return raw if isinstance(raw, expected) else None


def _column_from_record(data: dict) -> Column | None:
    if not data.get("id"):
        return None
    options = data.get("options")
    return Column(
        id=str(data["id"]),
        name=str(data.get("name") or data["id"]),
        type=str(data.get("type") or "text"),
        options=tuple(options) if isinstance(options, list) else None,
    )


def _columns_blob(table: Table) -> str:
    return _dump([col.to_dict() for col in table.columns])


class SqlTableStore:
    """
    Relational backing store. Column lists and row field maps are kept as
    JSON text; the dynamic schema is never projected into SQL columns.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_attempts: int = SYNC_MAX_ATTEMPTS,
        backoff_seconds: float = SYNC_BACKOFF_SECONDS,
    ):
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    # ---------- RETRY ----------

    def _run(self, label: str, work: Callable[[Session], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            db = self.session_factory()
            try:
                result = work(db)
                db.commit()
                return result
            except _TRANSIENT_ERRORS as exc:
                db.rollback()
                if attempt >= self.max_attempts:
                    logger.warning("%s failed after %s attempts: %s", label, attempt, exc)
                    raise StorageUnavailable(f"Backing store unavailable during {label}") from exc
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.info("%s attempt %s failed, retrying in %.2fs: %s", label, attempt, delay, exc)
                time.sleep(delay)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("%s failed", label)
                raise StorageUnavailable(f"Backing store error during {label}") from exc
            finally:
                db.close()

    # ---------- READS ----------

    def ping(self) -> bool:
        return self._run("ping", lambda db: db.execute(text("SELECT 1")).scalar() == 1)

    def load_tables(self) -> list[Table]:
        def work(db: Session) -> list[Table]:
            records = db.query(TableRecord).order_by(TableRecord.created_at, TableRecord.id).all()
            rows_by_table: dict[str, list[Row]] = {}
            for record in db.query(RowRecord).order_by(RowRecord.table_id, RowRecord.position, RowRecord.created_at):
                payload = _load(record.data, dict)
                if payload is None:
                    logger.warning("Skipping unreadable row %s in table %s", record.id, record.table_id)
                    continue
                rows_by_table.setdefault(record.table_id, []).append(Row(id=record.id, fields=payload))

            tables = []
            for record in records:
                raw_columns = _load(record.columns, list) or []
                columns = [c for c in (_column_from_record(d) for d in raw_columns if isinstance(d, dict)) if c]
                tables.append(
                    Table(
                        id=record.id,
                        name=record.name,
                        columns=tuple(columns),
                        rows=tuple(rows_by_table.get(record.id, [])),
                    )
                )
            return tables

        return self._run("load_tables", work)

    # ---------- WRITES ----------

    def _upsert_meta(self, db: Session, table: Table) -> None:
        record = db.get(TableRecord, table.id)
        if record is None:
            db.add(TableRecord(id=table.id, name=table.name, columns=_columns_blob(table)))
        else:
            record.name = table.name
            record.columns = _columns_blob(table)
        db.flush()

    def save_table(self, table: Table) -> None:
        """Write a full snapshot: metadata plus every row, replacing what is stored."""

        def work(db: Session) -> None:
            self._upsert_meta(db, table)
            db.query(RowRecord).filter(RowRecord.table_id == table.id).delete(synchronize_session=False)
            db.add_all(
                [
                    RowRecord(table_id=table.id, id=row.id, position=idx, data=_dump(dict(row.fields)))
                    for idx, row in enumerate(table.rows)
                ]
            )

        self._run("save_table", work)

    def apply_changes(self, before: Table | None, after: Table) -> None:
        """Persist only what differs between two snapshots of the same table."""

        def work(db: Session) -> None:
            if before is None or before.name != after.name or before.columns != after.columns:
                self._upsert_meta(db, after)

            old_rows = {row.id: row for row in before.rows} if before is not None else {}
            old_index = {row.id: idx for idx, row in enumerate(before.rows)} if before is not None else {}
            new_ids = {row.id for row in after.rows}

            # Once a surviving row appears out of its stored order (deleted and
            # re-created in the same change), it and every row after it get fresh positions.
            relocated: set[str] = set()
            last_kept = -1
            for row in after.rows:
                idx = old_index.get(row.id)
                if idx is None:
                    continue
                if relocated or idx < last_kept:
                    relocated.add(row.id)
                else:
                    last_kept = idx

            stale = [row_id for row_id in old_rows if row_id not in new_ids or row_id in relocated]
            if stale:
                (
                    db.query(RowRecord)
                    .filter(RowRecord.table_id == after.id)
                    .filter(RowRecord.id.in_(stale))
                    .delete(synchronize_session=False)
                )

            positions = iter(())
            max_position = None
            for row in after.rows:
                previous = old_rows.get(row.id) if row.id not in relocated else None
                if previous is not None and previous.fields == row.fields:
                    continue

                record = db.get(RowRecord, (after.id, row.id)) if previous is not None else None
                if record is not None:
                    record.data = _dump(dict(row.fields))
                    continue

                if max_position is None:
                    current_max = (
                        db.query(func.max(RowRecord.position))
                        .filter(RowRecord.table_id == after.id)
                        .scalar()
                    )
                    max_position = -1 if current_max is None else int(current_max)
                    positions = itertools.count(max_position + 1)
                db.add(RowRecord(table_id=after.id, id=row.id, position=next(positions), data=_dump(dict(row.fields))))

        self._run("apply_changes", work)

    def delete_table(self, table_id: str) -> bool:
        def work(db: Session) -> bool:
            db.query(RowRecord).filter(RowRecord.table_id == table_id).delete(synchronize_session=False)
            deleted = db.query(TableRecord).filter(TableRecord.id == table_id).delete(synchronize_session=False)
            return bool(deleted)

        return self._run("delete_table", work)
