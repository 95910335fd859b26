"""
Async engine and session management.

The engine is built lazily from settings so importing models never opens a
connection. Connection pooling and transactions stay with SQLAlchemy.
"""

from functools import lru_cache
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from dbgateway.config import get_settings

Base = declarative_base()


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=get_engine(), expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and close it when the caller is done."""
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        await session.close()


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables known to ``Base`` (dev/test only; use migrations in production)."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
