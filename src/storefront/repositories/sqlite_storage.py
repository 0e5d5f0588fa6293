from __future__ import annotations

from sqlalchemy import Integer, String, Text, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from storefront.domain.ports import (
    SessionStoragePort,
    StorageError,
    StorageQuotaExceededError,
)


class Base(DeclarativeBase):
    pass


class SessionEntryORM(Base):
    __tablename__ = "session_entries"

    session_id: Mapped[str] = mapped_column(String, primary_key=True)
    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    # Byte-Größe von key + value, für das Kontingent pro Session
    size: Mapped[int] = mapped_column(Integer, nullable=False)


class SQLiteStorageDatabase:
    """Shared engine for all on-disk session stores."""

    def __init__(self, database_url: str) -> None:
        self.engine = create_async_engine(database_url)
        self.async_session_maker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def initialize(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


class SQLiteSessionStorage(SessionStoragePort):
    def __init__(
        self, database: SQLiteStorageDatabase, session_id: str, capacity_bytes: int
    ) -> None:
        self._db = database
        self._session_id = session_id
        self._capacity = capacity_bytes

    async def get(self, key: str) -> str | None:
        try:
            async with self._db.async_session_maker() as session:
                result = await session.execute(
                    select(SessionEntryORM.value).where(
                        SessionEntryORM.session_id == self._session_id,
                        SessionEntryORM.key == key,
                    )
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Reading '{key}' failed: {e}") from e

    async def set(self, key: str, value: str) -> None:
        required = len(key.encode("utf-8")) + len(value.encode("utf-8"))
        try:
            async with self._db.async_session_maker() as session, session.begin():
                result = await session.execute(
                    select(func.coalesce(func.sum(SessionEntryORM.size), 0)).where(
                        SessionEntryORM.session_id == self._session_id,
                        SessionEntryORM.key != key,
                    )
                )
                used_by_others = int(result.scalar_one())
                if used_by_others + required > self._capacity:
                    raise StorageQuotaExceededError(key, required, self._capacity)

                orm_entry = await session.get(SessionEntryORM, (self._session_id, key))
                if orm_entry:
                    orm_entry.value = value
                    orm_entry.size = required
                else:
                    session.add(
                        SessionEntryORM(
                            session_id=self._session_id, key=key, value=value, size=required
                        )
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"Writing '{key}' failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            async with self._db.async_session_maker() as session, session.begin():
                await session.execute(
                    delete(SessionEntryORM).where(
                        SessionEntryORM.session_id == self._session_id,
                        SessionEntryORM.key == key,
                    )
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Deleting '{key}' failed: {e}") from e

    async def keys(self) -> list[str]:
        try:
            async with self._db.async_session_maker() as session:
                result = await session.execute(
                    select(SessionEntryORM.key).where(
                        SessionEntryORM.session_id == self._session_id
                    )
                )
                return list(result.scalars())
        except SQLAlchemyError as e:
            raise StorageError(f"Listing keys failed: {e}") from e

    async def clear(self) -> None:
        try:
            async with self._db.async_session_maker() as session, session.begin():
                await session.execute(
                    delete(SessionEntryORM).where(
                        SessionEntryORM.session_id == self._session_id
                    )
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Clearing session '{self._session_id}' failed: {e}") from e
