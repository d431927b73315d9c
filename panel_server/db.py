"""
Panel metadata store backed by SQLAlchemy, and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from sqlalchemy import BigInteger, Column, String, create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def now_millis() -> int:
    return int(time.time() * 1000)


class PanelStore(Protocol):
    """Interface for panel metadata access. Insert is the only mutation."""

    def insert_panel(self, record: "PanelRecord") -> None:
        ...

    def list_recent(
        self, limit: int = DEFAULT_LIST_LIMIT, chain_id: Optional[str] = None
    ) -> list["PanelRecord"]:
        ...

    def get_panel(self, panel_id: str) -> Optional["PanelRecord"]:
        ...

    def list_ids(self) -> set[str]:
        ...


@dataclass
class PanelRecord:
    id: str
    chain_id: str
    author_id: str
    image_path: str
    thumb_path: str
    created_at: int = field(default_factory=now_millis)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "chainId": self.chain_id,
            "authorId": self.author_id,
            "imagePath": self.image_path,
            "thumbPath": self.thumb_path,
            "createdAt": self.created_at,
        }


def _newest_first(record: PanelRecord) -> tuple[int, str]:
    return record.created_at, record.id


class InMemoryPanelStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.panels: dict[str, PanelRecord] = {}
        self._lock = threading.Lock()

    def insert_panel(self, record: PanelRecord) -> None:
        with self._lock:
            if record.id in self.panels:
                raise ValueError(f"Duplicate panel id: {record.id}")
            self.panels[record.id] = record

    def list_recent(
        self, limit: int = DEFAULT_LIST_LIMIT, chain_id: Optional[str] = None
    ) -> list[PanelRecord]:
        with self._lock:
            rows = [
                r
                for r in self.panels.values()
                if chain_id is None or r.chain_id == chain_id
            ]
        rows.sort(key=_newest_first, reverse=True)
        return rows[:limit]

    def get_panel(self, panel_id: str) -> Optional[PanelRecord]:
        with self._lock:
            return self.panels.get(panel_id)

    def list_ids(self) -> set[str]:
        with self._lock:
            return set(self.panels)


Base = declarative_base()


class PanelRow(Base):
    __tablename__ = "panels"

    id = Column(String, primary_key=True)
    chain_id = Column("chainId", String, nullable=True, index=True)
    author_id = Column("authorId", String, nullable=True)
    image_path = Column("imagePath", String, nullable=True)
    thumb_path = Column("thumbPath", String, nullable=True)
    created_at = Column("createdAt", BigInteger, nullable=True, index=True)


def _engine_options(database_url: str) -> dict:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True, "pool_recycle": 1800}
    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every thread sees an empty database.
        options["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return options


class SqlPanelStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL; SQLite is the default.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlPanelStore")
        self.engine = create_engine(
            database_url, future=True, **_engine_options(database_url)
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        # Safe against an existing store: only missing tables and indexes are created.
        Base.metadata.create_all(self.engine)
        logger.info("Metadata store ready: %s", self.engine.url.render_as_string(hide_password=True))

    def _to_record(self, row: PanelRow) -> PanelRecord:
        return PanelRecord(
            id=row.id,
            chain_id=row.chain_id,
            author_id=row.author_id,
            image_path=row.image_path,
            thumb_path=row.thumb_path,
            created_at=row.created_at,
        )

    def insert_panel(self, record: PanelRecord) -> None:
        with self.Session() as session:
            session.add(
                PanelRow(
                    id=record.id,
                    chain_id=record.chain_id,
                    author_id=record.author_id,
                    image_path=record.image_path,
                    thumb_path=record.thumb_path,
                    created_at=record.created_at,
                )
            )
            session.commit()

    def list_recent(
        self, limit: int = DEFAULT_LIST_LIMIT, chain_id: Optional[str] = None
    ) -> list[PanelRecord]:
        stmt = select(PanelRow)
        if chain_id is not None:
            stmt = stmt.where(PanelRow.chain_id == chain_id)
        stmt = stmt.order_by(PanelRow.created_at.desc(), PanelRow.id.desc()).limit(limit)
        with self.Session() as session:
            return [self._to_record(row) for row in session.scalars(stmt)]

    def get_panel(self, panel_id: str) -> Optional[PanelRecord]:
        with self.Session() as session:
            row = session.get(PanelRow, panel_id)
            if not row:
                return None
            return self._to_record(row)

    def list_ids(self) -> set[str]:
        with self.Session() as session:
            return set(session.scalars(select(PanelRow.id)))

    def dispose(self) -> None:
        self.engine.dispose()
