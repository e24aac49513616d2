from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import Settings
from app.core.resilience import db_retrying


def build_engine(settings: Settings) -> AsyncEngine:
    # Bounded pool: the store is the only shared resource between requests
    return create_async_engine(
        settings.POSTGRES_DSN,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ping_database(engine: AsyncEngine, attempts: int) -> None:
    async for attempt in db_retrying(attempts):
        with attempt:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for FastAPI.
    Yields an AsyncSession bound to the app's pool and closes it after the request.
    The first connection checkout is retried on transient errors.
    """
    session_factory = request.app.state.session_factory
    attempts = request.app.state.settings.DB_RETRY_ATTEMPTS

    async with session_factory() as session:
        async for attempt in db_retrying(attempts):
            with attempt:
                await session.connection()
        try:
            yield session
        finally:
            await session.close()
