"""Async database engine and session management."""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from cloudvideo.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models."""

    pass


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


def create_worker_engine() -> AsyncEngine:
    """Engine for a single Celery task.

    Each task runs its own event loop, so connections must not outlive the
    task. The caller disposes the engine when the task is done.
    """
    return create_async_engine(settings.DATABASE_URL, poolclass=NullPool)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a database session."""
    async with async_session_maker() as session:
        yield session
