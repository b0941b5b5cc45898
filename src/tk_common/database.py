"""Async SQLAlchemy engine and session factory shared by every module.

Transaction ownership stays with the application services: each mutating
service method commits or rolls back the session it was handed. The
admission saga commits the debit and the proposal separately, so one request
may run several short transactions on the same session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the ORM mirrors of the tables; queries use raw SQL."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
    # asyncpg server settings: visible in pg_stat_activity
    connect_args={"server_settings": {"application_name": settings.APP_NAME}},
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed (and rolled back) afterwards."""
    async with async_session_factory() as session:
        yield session
