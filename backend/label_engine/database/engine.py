"""
Async database access using SQLAlchemy 2.0.
A Database owns one engine and its session factory; the composition root
creates exactly one and stores it on app.state.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from label_engine.config import Settings
from label_engine.core.errors import StorageError
from label_engine.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    kwargs = {"echo": settings.DEBUG}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    return create_async_engine(settings.DATABASE_URL, **kwargs)


class Database:
    """Engine + session factory with an all-or-nothing transaction scope."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.sessionmaker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        # Model modules must be imported so their tables are registered on Base.
        from label_engine.labels import models as _labels  # noqa: F401
        from label_engine.versioning import models as _versioning  # noqa: F401
        from label_engine.compliance import models as _compliance  # noqa: F401
        from label_engine.timeline import models as _timeline  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, roll back everything on any error.
        Store failures surface as StorageError."""
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(
                    "Transaction rolled back after storage failure",
                    extra={"event": "storage_error", "error": str(exc)},
                )
                raise StorageError("Storage operation failed; nothing was committed") from exc
            except Exception:
                await session.rollback()
                raise


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency injection for request-scoped transactional sessions."""
    async with get_database(request).transaction() as session:
        yield session
