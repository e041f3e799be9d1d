import contextlib
from typing import Any, AsyncIterator
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from weather_web.exceptions import StorageError
from .base import Base


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # SQLite ships with foreign key enforcement off for every connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseSessionManager:
    """
    Manages the lifecycle of the SQLAlchemy async engine and session
    factory.

    Use `init()` to initialise the engine and sessionmaker. Use
    `session()` to get an async session context manager. Use `connect()`
    if you need direct access to a lower-level connection.

    Any SQLAlchemy error raised inside `session()` is rolled back and
    re-raised as a `StorageError`.
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    async def init(self, db_uri: str) -> None:
        self._engine = create_async_engine(db_uri)
        if self._engine.dialect.name == "sqlite":
            event.listen(
                self._engine.sync_engine,
                "connect",
                _enable_sqlite_foreign_keys,
            )
        self._sessionmaker = async_sessionmaker(
            autocommit=False, bind=self._engine, expire_on_commit=False
        )

    @property
    def initialised(self) -> bool:
        return self._engine is not None

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._sessionmaker = None

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        if self._engine is None:
            raise Exception("DatabaseSessionManager is not initialised")

        async with self._engine.begin() as connection:
            try:
                yield connection
            except Exception:
                await connection.rollback()
                raise

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessionmaker is None:
            raise Exception("DatabaseSessionManager is not initialised")

        session = self._sessionmaker()

        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self, connection: AsyncConnection) -> None:
        await connection.run_sync(Base.metadata.create_all)

    async def drop_all(self, connection: AsyncConnection) -> None:
        await connection.run_sync(Base.metadata.drop_all)
