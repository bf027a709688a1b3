"""
Async SQLAlchemy setup for the journal session store.

``get_db`` hands a request-scoped session to routes; ``session_scope`` is the
same unit of work for code running outside a request (the lifespan opens the
first journal session with it).
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from app.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    poolclass=NullPool,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    One committed-or-rolled-back unit of work.

    Example:
        async with session_scope() as db:
            await SessionStore(db).create({"title": "Monday"})
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error("Journal store transaction rolled back: %s", exc)
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency wrapping ``session_scope``.

    Example:
        @router.get("/sessions")
        async def list_sessions(db: AsyncSession = Depends(get_db)):
            return await SessionStore(db).list_all()
    """
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Create the journal_sessions table if it does not exist yet."""
    # Registers JournalSession on Base.metadata
    from app.models import database_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Journal tables created/verified")


async def close_db() -> None:
    """Dispose of the engine's connections."""
    await engine.dispose()
    logger.info("Database connections closed")
