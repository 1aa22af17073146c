# models/table_records.py

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TableRecord(Base):
    __tablename__ = "tables"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    columns = Column(Text, nullable=False, default="[]")  # column list as JSON text
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class RowRecord(Base):
    __tablename__ = "table_rows"

    table_id = Column(String, ForeignKey("tables.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # creation order within the table
    data = Column(Text, nullable=False, default="{}")  # field map as JSON text
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
