"""
SQLAlchemy-backed object store.

Objects are kept as JSON documents in one table keyed by (kind, name).
Updates are a compare-and-swap on the integer resource version, so a
write that observed a stale version affects no rows and is rejected.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pkgplane.apis.common import Object, utcnow
from pkgplane.config import Settings, get_settings
from pkgplane.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from pkgplane.store.base import Broadcaster, T, WatchEvent, WatchEventType, matches

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class StoredObject(Base):
    __tablename__ = "objects"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(253), nullable=False)
    resource_version: Mapped[int] = mapped_column(Integer, nullable=False)
    labels: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (UniqueConstraint("kind", "name", name="uq_object_kind_name"),)


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    cfg = settings or get_settings()
    return create_async_engine(cfg.database_url, echo=cfg.debug, future=True)


class SQLObjectStore:
    """Object store persisted through an async SQLAlchemy engine.

    Watch events are delivered to subscribers in this process only.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._events = Broadcaster()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SQLObjectStore:
        return cls(create_engine(settings))

    async def create_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    def _publish(self, event_type: WatchEventType, obj: Object) -> None:
        self._events.publish(
            WatchEvent(
                type=event_type,
                kind=obj.kind,
                name=obj.name,
                labels=dict(obj.metadata.labels),
            )
        )

    async def _fetch_row(self, session: AsyncSession, kind: str, name: str) -> StoredObject | None:
        stmt = select(StoredObject).where(StoredObject.kind == kind, StoredObject.name == name)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _load(kind: type[T], row: StoredObject) -> T:
        obj = kind.model_validate(row.body)
        obj.metadata.resource_version = str(row.resource_version)
        return obj

    async def create(self, obj: T) -> T:
        stored = obj.model_copy(deep=True)
        stored.metadata.uid = stored.metadata.uid or uuid.uuid4().hex
        stored.metadata.resource_version = "1"
        stored.metadata.generation = 1
        stored.metadata.creation_timestamp = utcnow()
        stored.metadata.deletion_timestamp = None

        async with self._sessions() as session:
            if await self._fetch_row(session, obj.kind, obj.name) is not None:
                raise AlreadyExistsError(
                    f"{obj.kind} {obj.name} already exists",
                    details={"kind": obj.kind, "name": obj.name},
                )
            session.add(
                StoredObject(
                    kind=stored.kind,
                    name=stored.name,
                    resource_version=1,
                    labels=dict(stored.metadata.labels),
                    body=stored.to_wire(),
                )
            )
            try:
                await session.commit()
            except IntegrityError as exc:
                raise AlreadyExistsError(
                    f"{obj.kind} {obj.name} already exists",
                    details={"kind": obj.kind, "name": obj.name},
                ) from exc

        self._publish(WatchEventType.ADDED, stored)
        logger.debug("object_created", kind=obj.kind, name=obj.name)
        return stored

    async def get(self, kind: type[T], name: str) -> T:
        async with self._sessions() as session:
            row = await self._fetch_row(session, kind.kind_name(), name)
        if row is None:
            raise NotFoundError(
                f"{kind.kind_name()} {name} not found",
                details={"kind": kind.kind_name(), "name": name},
            )
        return self._load(kind, row)

    async def list(self, kind: type[T], labels: Mapping[str, str] | None = None) -> list[T]:
        stmt = (
            select(StoredObject)
            .where(StoredObject.kind == kind.kind_name())
            .order_by(StoredObject.name)
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [self._load(kind, row) for row in rows if matches(row.labels, labels)]

    async def update(self, obj: T) -> T:
        async with self._sessions() as session:
            row = await self._fetch_row(session, obj.kind, obj.name)
            if row is None:
                raise NotFoundError(
                    f"{obj.kind} {obj.name} not found",
                    details={"kind": obj.kind, "name": obj.name},
                )
            expected = int(obj.metadata.resource_version or 0)
            if row.resource_version != expected:
                raise ConflictError(
                    f"{obj.kind} {obj.name} was modified concurrently",
                    details={"kind": obj.kind, "name": obj.name},
                )
            current = self._load(type(obj), row)
            obj.validate_update(current)

            stored = obj.model_copy(deep=True)
            stored.metadata.uid = current.metadata.uid
            stored.metadata.creation_timestamp = current.metadata.creation_timestamp
            stored.metadata.deletion_timestamp = current.metadata.deletion_timestamp
            stored.metadata.generation = current.metadata.generation
            if _spec_of(stored) != _spec_of(current):
                stored.metadata.generation += 1
            stored.metadata.resource_version = str(expected + 1)
            finalized = stored.deleting and not stored.metadata.finalizers

            if finalized:
                stmt: Any = delete(StoredObject).where(
                    StoredObject.id == row.id,
                    StoredObject.resource_version == expected,
                )
            else:
                stmt = (
                    update(StoredObject)
                    .where(
                        StoredObject.id == row.id,
                        StoredObject.resource_version == expected,
                    )
                    .values(
                        resource_version=expected + 1,
                        labels=dict(stored.metadata.labels),
                        body=stored.to_wire(),
                        updated_at=utcnow(),
                    )
                )
            result = await session.execute(stmt)
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await session.rollback()
                raise ConflictError(
                    f"{obj.kind} {obj.name} was modified concurrently",
                    details={"kind": obj.kind, "name": obj.name},
                )
            await session.commit()

        self._publish(WatchEventType.DELETED if finalized else WatchEventType.MODIFIED, stored)
        return stored

    async def delete(self, obj: Object) -> None:
        async with self._sessions() as session:
            row = await self._fetch_row(session, obj.kind, obj.name)
            if row is None:
                raise NotFoundError(
                    f"{obj.kind} {obj.name} not found",
                    details={"kind": obj.kind, "name": obj.name},
                )
            current = self._load(type(obj), row)
            if current.metadata.finalizers:
                if current.deleting:
                    return
                current.metadata.deletion_timestamp = utcnow()
                current.metadata.resource_version = str(row.resource_version + 1)
                row.resource_version += 1
                row.body = current.to_wire()
                await session.commit()
                self._publish(WatchEventType.MODIFIED, current)
                return
            await session.delete(row)
            await session.commit()

        self._publish(WatchEventType.DELETED, current)
        logger.debug("object_deleted", kind=obj.kind, name=obj.name)

    def watch(self) -> AsyncIterator[WatchEvent]:
        return self._events.subscribe()


def _spec_of(obj: Object) -> object:
    spec = getattr(obj, "spec", None)
    return spec.model_dump() if spec is not None else None
