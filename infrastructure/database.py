"""
Database engine and session management.

The engine is built on first use so importing this module never opens a
connection; tests and the Celery worker can point it elsewhere first.
"""
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _build_async_url(database_url: str) -> str:
    """Make sure the URL uses an async driver."""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"Unsupported database driver: {drivername}. Use an async driver in DATABASE__URL")

    return str(url.set(drivername=driver_map[drivername]))


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _build_async_url(settings.database.url),
            echo=settings.database.echo,
            future=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def AsyncSessionLocal() -> AsyncSession:
    return get_session_factory()()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session without auto-commit; the caller owns the transaction."""
    async with get_session_factory()() as session:
        yield session


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Drop every table. Tests only."""
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
