"""
Database engine, session factory and the FastAPI session dependency.

SQLite (aiosqlite) is the default store; any SQLAlchemy async URL such
as postgresql+asyncpg works as well.
"""

import logging
import os
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from reportes.core.config import settings
from reportes.models.base import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    # Messages and processed tickets cascade with their reporte
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_async_engine(database_url: str = None) -> AsyncEngine:
    """
    Build the async engine for a database URL (settings.database_url by default).

    SQLite gets a StaticPool, check_same_thread=False and foreign key
    enforcement on every connection.
    """
    url = database_url or settings.database_url

    if "sqlite" not in url:
        return create_async_engine(url, echo=False, pool_pre_ping=True)

    engine = create_async_engine(
        url,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = get_async_engine()

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db() -> None:
    """
    Create the tables when ENABLE_DB_CREATE_ALL is set.

    Deployments that manage the schema with migrations leave it unset.
    """
    from reportes import models  # noqa: F401 - registers the tables

    if os.getenv("ENABLE_DB_CREATE_ALL", "").lower() not in {"1", "true", "yes"}:
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created", extra={"tables": sorted(Base.metadata.tables)})


async def close_db() -> None:
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Routes commit explicitly; anything left pending when the handler
    returns is committed, and an exception rolls the session back.

    Example:
        @router.get("/reportes/{reporte_id}")
        async def get_reporte(reporte_id: str, db: DatabaseSession):
            return await ReporteRepository(db).get_by_id(reporte_id)
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
