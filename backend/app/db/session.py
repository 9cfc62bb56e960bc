"""Database session and engine management."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings

_settings = get_settings()
_engine_options: dict[str, Any] = {"future": True, "echo": False}
if _settings.database_url.startswith("sqlite"):
    # aiosqlite connections must not outlive the event loop that opened them.
    _engine_options["poolclass"] = NullPool
else:
    _engine_options["pool_pre_ping"] = True

engine = create_async_engine(_settings.database_url, **_engine_options)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope around a series of operations."""

    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
