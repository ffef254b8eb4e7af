"""Async SQLAlchemy engine and session factory for the service store."""

from __future__ import annotations

from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from helpr.config import get_settings

_settings = get_settings()

_SQLITE_PREFIX = "sqlite+aiosqlite:///"

if _settings.database_url.startswith(_SQLITE_PREFIX) and ":memory:" not in _settings.database_url:
    Path(_settings.database_url.replace(_SQLITE_PREFIX, "")).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(_settings.database_url, echo=False)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        yield session


async def create_schema(eng=None):
    """Create the service and service_fill_request tables if missing."""
    from helpr.models import Base

    async with (eng or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
