"""Database configuration and connection setup"""
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.config.settings import get_settings


@lru_cache()
def get_engine() -> AsyncEngine:
    """Create the async engine on first use"""
    settings = get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=False,
    )


@lru_cache()
def get_session_factory() -> async_sessionmaker:
    return async_sessionmaker(
        bind=get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


async def get_db():
    """Database dependency for FastAPI"""
    session_factory = get_session_factory()
    async with session_factory() as db:
        yield db


async def create_tables():
    """Create all tables that do not exist yet"""
    from app.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
