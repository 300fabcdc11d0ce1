from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings


_SETTINGS = get_settings()
_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        _ENGINE = create_async_engine(
            _SETTINGS.async_database_url,
            echo=_SETTINGS.SQL_ECHO,
            pool_pre_ping=True,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = async_sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False, autocommit=False
        )


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory, used by jobs that run outside a request."""
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    return _SESSION_MAKER


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.

    Sessions are not wrapped in a transaction here; services own their
    transaction boundaries.
    """
    async with get_session_maker()() as session:
        yield session


# PUBLIC_INTERFACE
async def dispose_engine() -> None:
    """Dispose the global engine and forget the session factory."""
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is not None:
        await _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None
