"""
Database configuration.

Async SQLAlchemy engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool


def create_engine(
    database_url: str, echo: bool = False, use_null_pool: bool = False
) -> AsyncEngine:
    """
    Create async engine.

    Args:
        database_url: SQLAlchemy URL (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        echo: Log SQL statements
        use_null_pool: Disable pooling (dramatiq workers, one-shot scripts)

    Returns:
        Async engine
    """
    if use_null_pool:
        return create_async_engine(database_url, echo=echo, poolclass=NullPool)
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create session factory bound to engine.

    Sessions do not expire objects on commit so that records read inside
    a unit of work stay usable after it is closed.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
