"""Durable on-device storage for collections, pins and small JSON blobs.

The store is a SQLite database accessed through the SQLAlchemy ORM. Records
cross the store boundary as the plain dataclasses from
:mod:`wiserpin.client.records`; ORM rows never leak out of this module.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from wiserpin.client.errors import (
    DatabaseInitError,
    DuplicateError,
    NotFoundError,
    TransactionError,
)
from wiserpin.client.records import (
    DEFAULT_COLLECTION_COLOR,
    LocalCollection,
    LocalPin,
    PagePreview,
    Summary,
    new_id,
    parse_time,
    utcnow,
)
from wiserpin.client.schema_migrations import migrate_local_schema


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
SCHEMA_VERSION_KEY = "wiserpin_schema_version"

Base = declarative_base()


class CollectionRow(Base):
    __tablename__ = "collections"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    goal = Column(Text, nullable=False, default="")
    color = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class PinRow(Base):
    __tablename__ = "pins"

    id = Column(String(64), primary_key=True)
    collection_id = Column(String(64), nullable=False, default="", index=True)
    page_url = Column(Text, nullable=False, default="")
    page_title = Column(Text, nullable=True)
    page_og_image_url = Column(Text, nullable=True)
    page_site_name = Column(String(255), nullable=True)
    page_description = Column(Text, nullable=True)
    summary_text = Column(Text, nullable=True)
    summary_created_at = Column(DateTime(timezone=True), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_pins_page_url_lookup", "page_url"),)


class StorageItem(Base):
    __tablename__ = "storage"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=True)


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _collection_from_row(row: CollectionRow) -> LocalCollection:
    return LocalCollection(
        id=row.id,
        name=row.name,
        goal=row.goal or "",
        color=row.color,
        created_at=parse_time(row.created_at),
        updated_at=parse_time(row.updated_at),
    )


def _pin_from_row(row: PinRow) -> LocalPin:
    summary = None
    if row.summary_text:
        summary = Summary(
            text=row.summary_text,
            created_at=parse_time(row.summary_created_at) or parse_time(row.created_at),
        )
    return LocalPin(
        id=row.id,
        collection_id=row.collection_id or "",
        page=PagePreview(
            url=row.page_url or "",
            title=row.page_title,
            og_image_url=row.page_og_image_url,
            site_name=row.page_site_name,
            description=row.page_description,
        ),
        summary=summary,
        note=row.note,
        created_at=parse_time(row.created_at),
    )


def _apply_pin(row: PinRow, pin: LocalPin) -> None:
    page = pin.page or PagePreview(url="")
    row.collection_id = pin.collection_id or ""
    row.page_url = page.url or ""
    row.page_title = page.title
    row.page_og_image_url = page.og_image_url
    row.page_site_name = page.site_name
    row.page_description = page.description
    row.summary_text = pin.summary.text if pin.summary else None
    row.summary_created_at = _to_utc(pin.summary.created_at) if pin.summary else None
    row.note = pin.note


class LocalStore:
    def __init__(self, db_path: str = ":memory:"):
        try:
            if db_path == ":memory:":
                self.engine = create_engine(
                    "sqlite://",
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
                self.engine = create_engine(
                    f"sqlite:///{Path(db_path).expanduser()}",
                    connect_args={"check_same_thread": False},
                )
            self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
            self._lock = threading.RLock()

            migrate_local_schema(self)
            Base.metadata.create_all(self.engine)
            self.set_item(SCHEMA_VERSION_KEY, SCHEMA_VERSION)
        except SQLAlchemyError as exc:
            raise DatabaseInitError("Failed to initialize database", exc) from exc

    @contextmanager
    def _session(self, action: str):
        with self._lock:
            session = self._sessions()
            try:
                yield session
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            except SQLAlchemyError as exc:
                session.rollback()
                raise TransactionError(f"Failed to {action}", exc) from exc
            finally:
                session.close()

    def close(self) -> None:
        self.engine.dispose()

    # Generic access

    def list_all(self, record_type):
        if record_type is LocalCollection:
            return self.list_collections()
        if record_type is LocalPin:
            return self.list_pins()
        raise TypeError(f"unsupported record type: {record_type!r}")

    def get(self, record_type, record_id: str):
        if record_type is LocalCollection:
            return self.get_collection(record_id)
        if record_type is LocalPin:
            return self.get_pin(record_id)
        raise TypeError(f"unsupported record type: {record_type!r}")

    def insert(self, record) -> str:
        if isinstance(record, LocalCollection):
            return self.add_collection(record)
        if isinstance(record, LocalPin):
            return self.add_pin(record)
        raise TypeError(f"unsupported record: {record!r}")

    # Collections

    def add_collection(self, collection: LocalCollection) -> str:
        record_id = collection.id or new_id()
        now = utcnow()
        row = CollectionRow(
            id=record_id,
            name=collection.name,
            goal=collection.goal or "",
            color=collection.color or DEFAULT_COLLECTION_COLOR,
            created_at=_to_utc(collection.created_at) or now,
            updated_at=_to_utc(collection.updated_at or collection.created_at) or now,
        )
        try:
            with self._session("add collection") as session:
                session.add(row)
        except IntegrityError as exc:
            raise DuplicateError("Collection", "id", record_id) from exc
        collection.id = record_id
        return record_id

    def get_collection(self, collection_id: str) -> LocalCollection | None:
        with self._session("get collection") as session:
            row = session.get(CollectionRow, collection_id)
            return _collection_from_row(row) if row else None

    def list_collections(self) -> list[LocalCollection]:
        with self._session("list collections") as session:
            rows = session.scalars(select(CollectionRow)).all()
            return [_collection_from_row(row) for row in rows]

    def update_collection(self, collection_id: str, **changes) -> LocalCollection:
        with self._session("update collection") as session:
            row = session.get(CollectionRow, collection_id)
            if not row:
                raise NotFoundError("Collection", collection_id)
            for field in ("name", "goal", "color"):
                if field in changes:
                    setattr(row, field, changes[field])
            row.updated_at = utcnow()
            return _collection_from_row(row)

    def delete_collection(self, collection_id: str) -> None:
        with self._session("delete collection") as session:
            row = session.get(CollectionRow, collection_id)
            if not row:
                raise NotFoundError("Collection", collection_id)
            session.delete(row)
        self.delete_pins_by_collection(collection_id)

    # Pins

    def add_pin(self, pin: LocalPin) -> str:
        record_id = pin.id or new_id()
        row = PinRow(id=record_id, created_at=_to_utc(pin.created_at) or utcnow())
        _apply_pin(row, pin)
        try:
            with self._session("add pin") as session:
                session.add(row)
        except IntegrityError as exc:
            if self.get_pin(record_id) is not None:
                raise DuplicateError("Pin", "id", record_id) from exc
            raise DuplicateError("Pin", "url", row.page_url) from exc
        pin.id = record_id
        return record_id

    def get_pin(self, pin_id: str) -> LocalPin | None:
        with self._session("get pin") as session:
            row = session.get(PinRow, pin_id)
            return _pin_from_row(row) if row else None

    def list_pins(self) -> list[LocalPin]:
        with self._session("list pins") as session:
            rows = session.scalars(select(PinRow)).all()
            return [_pin_from_row(row) for row in rows]

    def list_pins_by_collection(self, collection_id: str) -> list[LocalPin]:
        with self._session("list pins by collection") as session:
            rows = session.scalars(
                select(PinRow).where(PinRow.collection_id == collection_id)
            ).all()
            return [_pin_from_row(row) for row in rows]

    def list_pins_by_url(self, url: str) -> list[LocalPin]:
        with self._session("list pins by url") as session:
            rows = session.scalars(select(PinRow).where(PinRow.page_url == url)).all()
            return [_pin_from_row(row) for row in rows]

    def pin_exists(self, url: str) -> bool:
        return bool(self.list_pins_by_url(url))

    def query_pins(
        self,
        collection_id: str | None = None,
        url: str | None = None,
        search: str | None = None,
    ) -> list[LocalPin]:
        if collection_id:
            pins = self.list_pins_by_collection(collection_id)
        elif url:
            pins = self.list_pins_by_url(url)
        else:
            pins = self.list_pins()

        if search:
            needle = search.lower()
            pins = [
                pin
                for pin in pins
                if needle in (pin.page.title or "").lower()
                or needle in (pin.note or "").lower()
            ]
        return pins

    def update_pin(self, pin_id: str, **changes) -> LocalPin:
        with self._session("update pin") as session:
            row = session.get(PinRow, pin_id)
            if not row:
                raise NotFoundError("Pin", pin_id)
            current = _pin_from_row(row)
            if "page" in changes:
                current.page = changes["page"]
            if "summary" in changes:
                current.summary = changes["summary"]
            if "note" in changes:
                current.note = changes["note"]
            _apply_pin(row, current)
            return current

    def delete_pin(self, pin_id: str) -> None:
        with self._session("delete pin") as session:
            row = session.get(PinRow, pin_id)
            if not row:
                raise NotFoundError("Pin", pin_id)
            session.delete(row)

    def delete_pins_by_collection(self, collection_id: str) -> int:
        with self._session("delete pins by collection") as session:
            rows = session.scalars(
                select(PinRow).where(PinRow.collection_id == collection_id)
            ).all()
            for row in rows:
                session.delete(row)
            return len(rows)

    def count_pins(self, collection_id: str | None = None) -> int:
        with self._session("count pins") as session:
            query = select(func.count()).select_from(PinRow)
            if collection_id:
                query = query.where(PinRow.collection_id == collection_id)
            return session.scalar(query) or 0

    # Key/value storage

    def get_item(self, key: str, default=None):
        with self._session("read storage") as session:
            row = session.get(StorageItem, key)
            if row is None or row.value is None:
                return default
            return row.value

    def set_item(self, key: str, value) -> None:
        with self._session("write storage") as session:
            row = session.get(StorageItem, key)
            if row is None:
                session.add(StorageItem(key=key, value=value))
            else:
                row.value = value

    def remove_item(self, key: str) -> None:
        with self._session("remove storage") as session:
            row = session.get(StorageItem, key)
            if row is not None:
                session.delete(row)
