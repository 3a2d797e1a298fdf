from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings, get_settings


_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized(settings: Optional[Settings] = None) -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = settings or get_settings()
        connect_args = {}
        if settings.SQL_COMMAND_TIMEOUT is not None:
            connect_args["command_timeout"] = settings.SQL_COMMAND_TIMEOUT
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_size=settings.SQL_POOL_SIZE,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = async_sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False, autocommit=False
        )


# PUBLIC_INTERFACE
def get_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized(settings)
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
def get_session_maker(settings: Optional[Settings] = None) -> async_sessionmaker[AsyncSession]:
    """Return the global session factory used by the SQL storage backend."""
    _ensure_engine_initialized(settings)
    assert _SESSION_MAKER is not None
    return _SESSION_MAKER


# PUBLIC_INTERFACE
async def dispose_engine() -> None:
    """Close pooled connections and forget the engine (used on application shutdown)."""
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is not None:
        await _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None
