"""
Row store abstraction for submissions: SQLAlchemy-backed and in-memory.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol

from sqlalchemy import Column, Float, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from wishwall.errors import UpstreamStoreError


@dataclass
class SubmissionRecord:
    name: str
    wish: str
    avatar_id: str
    photo_path: Optional[str] = None
    ip_plain: Optional[str] = None
    ip_truncated: Optional[str] = None
    ip_hash: Optional[str] = None
    ua: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[float] = None


class RowStore(Protocol):
    """Interface for submission row access."""

    def insert(self, record: SubmissionRecord) -> str:
        """Persist a new row and return its generated id."""
        ...

    def query(self, *, ip_plain: str, since: float) -> List[SubmissionRecord]:
        """Rows from ``ip_plain`` created at or after ``since``."""
        ...

    def list_recent(self, limit: int = 200) -> List[SubmissionRecord]:
        """Newest rows first."""
        ...


class _Clock:
    """Hands out strictly increasing timestamps so ordering by time is total."""

    def __init__(self):
        self._last = 0.0
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            current = time.time()
            if current <= self._last:
                current = self._last + 1e-6
            self._last = current
            return current


class InMemoryRowStore:
    """Simple in-memory row store for development and tests."""

    def __init__(self):
        self.rows: Dict[str, SubmissionRecord] = {}
        self._clock = _Clock()
        # Sync routes run on a threadpool; guards every access to `rows`.
        self._lock = threading.Lock()

    def insert(self, record: SubmissionRecord) -> str:
        row_id = uuid.uuid4().hex
        with self._lock:
            self.rows[row_id] = replace(record, id=row_id, created_at=self._clock.now())
        return row_id

    def query(self, *, ip_plain: str, since: float) -> List[SubmissionRecord]:
        with self._lock:
            return [
                replace(row)
                for row in self.rows.values()
                if row.ip_plain == ip_plain and row.created_at >= since
            ]

    def list_recent(self, limit: int = 200) -> List[SubmissionRecord]:
        with self._lock:
            ordered = sorted(self.rows.values(), key=lambda r: r.created_at, reverse=True)
            return [replace(row) for row in ordered[:limit]]

    def reset(self) -> None:
        """Clear all stored rows (useful in tests)."""
        with self._lock:
            self.rows.clear()
            self._clock = _Clock()


class SqlRowStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlRowStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self._clock = _Clock()
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "WishRow") -> SubmissionRecord:
        return SubmissionRecord(
            id=row.id,
            name=row.name,
            wish=row.wish,
            avatar_id=row.avatar_id,
            photo_path=row.photo_path,
            ip_plain=row.ip_plain,
            ip_truncated=row.ip_truncated,
            ip_hash=row.ip_hash,
            ua=row.ua,
            created_at=row.created_at,
        )

    def insert(self, record: SubmissionRecord) -> str:
        try:
            with self.Session() as session:
                row = WishRow(
                    id=uuid.uuid4().hex,
                    name=record.name,
                    wish=record.wish,
                    avatar_id=record.avatar_id,
                    photo_path=record.photo_path,
                    ip_plain=record.ip_plain,
                    ip_truncated=record.ip_truncated,
                    ip_hash=record.ip_hash,
                    ua=record.ua,
                    created_at=self._clock.now(),
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return row.id
        except SQLAlchemyError as exc:
            raise UpstreamStoreError(str(exc)) from exc

    def query(self, *, ip_plain: str, since: float) -> List[SubmissionRecord]:
        stmt = (
            select(WishRow)
            .where(WishRow.ip_plain == ip_plain)
            .where(WishRow.created_at >= since)
        )
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise UpstreamStoreError(str(exc)) from exc

    def list_recent(self, limit: int = 200) -> List[SubmissionRecord]:
        stmt = select(WishRow).order_by(WishRow.created_at.desc()).limit(limit)
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise UpstreamStoreError(str(exc)) from exc


Base = declarative_base()


class WishRow(Base):
    __tablename__ = "wishes"

    id = Column(String, primary_key=True)
    name = Column(String(60), nullable=False)
    wish = Column(Text, nullable=False)
    avatar_id = Column(String, nullable=False)
    photo_path = Column(String, nullable=True)
    ip_plain = Column(String, nullable=True, index=True)
    ip_truncated = Column(String, nullable=True)
    ip_hash = Column(String, nullable=True)
    ua = Column(String, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
