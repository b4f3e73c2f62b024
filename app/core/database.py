"""Async SQLAlchemy engine, declarative base and transaction scopes."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, MetaData
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.core.config import get_settings
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)

AfterCommitCallback = Callable[[], Awaitable[None]]
_AFTER_COMMIT_KEY = "after_commit_callbacks"

# Constraint names match the ones spelled out in alembic revisions.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(AsyncAttrs, DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModelMixin:
    """UUID primary key plus aware UTC created/updated stamps."""

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )


settings = get_settings()
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.database_pool_size,
)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def after_commit(session: AsyncSession, callback: AfterCommitCallback) -> None:
    """Run `callback` once the session's transaction has committed; dropped on rollback."""
    session.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


async def _run_after_commit(callbacks: list[AfterCommitCallback]) -> None:
    for callback in callbacks:
        try:
            await callback()
        except Exception:
            logger.exception("After-commit callback %r failed", callback)


@asynccontextmanager
async def transaction() -> AsyncIterator[AsyncSession]:
    """Session whose work commits on clean exit and rolls back on any error.

    Row locks taken inside (slot capacity, reservation status) are held until
    the scope ends. Callbacks queued with `after_commit` run after the session
    is closed, so they never hold those locks.
    """
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop(_AFTER_COMMIT_KEY, None)
            await session.rollback()
            raise
        callbacks = session.info.pop(_AFTER_COMMIT_KEY, [])
    await _run_after_commit(callbacks)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one transaction per request."""
    async with transaction() as session:
        yield session


async def close_engine() -> None:
    await engine.dispose()
