"""
Ledgerline - Database Configuration

Async SQLAlchemy engine and sessions. PostgreSQL (asyncpg) in
production; SQLite (aiosqlite) is accepted for local runs and tests.

A request owns exactly one session and therefore one transaction.
Number allocation and fiscal-year switching take row locks inside that
transaction, so ``lock_timeout`` bounds how long a request queues
behind another one working on the same scope.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# Constraint names used by the migrations
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Base class for all ledger tables."""
    metadata = MetaData(naming_convention=convention)


def engine_options(url: str) -> Dict[str, Any]:
    """Pool and driver options for the configured backend."""
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "connect_args": {
            "server_settings": {
                "lock_timeout": f"{settings.database_lock_timeout_ms}ms",
                "application_name": settings.app_name.lower(),
            },
        },
    }


engine = create_async_engine(
    settings.database_url_async,
    echo=settings.debug,
    **engine_options(settings.database_url_async),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session, used with FastAPI's Depends().

    Routers commit after the service call; anything raised before that
    rolls back every write of the request.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """
    Create all tables.

    Development only; deployed databases are built by the Alembic
    revisions in alembic/versions.
    """
    import app.models  # noqa: F401  (register mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose of pooled connections."""
    await engine.dispose()
