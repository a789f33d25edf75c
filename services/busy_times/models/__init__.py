from contextlib import asynccontextmanager
from threading import Lock
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from services.busy_times.models.base import Base as Base
from services.busy_times.models.booking_entities import Attendee as Attendee
from services.busy_times.models.booking_entities import Booking as Booking
from services.busy_times.models.booking_entities import BookingStatus as BookingStatus
from services.busy_times.models.booking_entities import EventType as EventType
from services.busy_times.models.booking_entities import User as User
from services.busy_times.settings import get_settings
from services.common import get_async_database_url

# Global engines and session factories - created once and reused
_engine: Engine | None = None
_async_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker | None = None

# Thread-safe initialization locks
_engine_lock = Lock()
_async_engine_lock = Lock()
_async_session_maker_lock = Lock()


def _engine_options(db_url: str) -> Dict[str, Any]:
    """Pool and driver options for the given URL."""
    if db_url.startswith("sqlite"):
        # No pooled connections, each session opens and closes its own file handle
        return {"poolclass": NullPool}
    options: Dict[str, Any] = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgresql+asyncpg"):
        # command_timeout bounds each statement, timeout bounds connecting
        options["connect_args"] = {"command_timeout": 10.0, "timeout": 30.0}
    return options


def get_engine() -> Engine:
    """Get or create the shared sync engine. Only schema setup uses it."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                db_url = get_settings().db_url_busy_times
                _engine = create_engine(
                    db_url, echo=False, future=True, **_engine_options(db_url)
                )
    return _engine


def get_async_engine() -> AsyncEngine:
    """Get or create the shared async database engine in a thread-safe manner."""
    global _async_engine
    if _async_engine is None:
        with _async_engine_lock:
            if _async_engine is None:
                async_db_url = get_async_database_url(get_settings().db_url_busy_times)
                _async_engine = create_async_engine(
                    async_db_url,
                    echo=False,
                    future=True,
                    **_engine_options(async_db_url),
                )
    return _async_engine


def get_async_sessionmaker() -> async_sessionmaker:
    """Get or create the shared async session maker.

    Acquire locks in sessionmaker -> engine order to avoid races with reset/close.
    """
    global _async_session_maker
    if _async_session_maker is None:
        with _async_session_maker_lock:
            if _async_session_maker is None:
                _async_session_maker = async_sessionmaker(
                    bind=get_async_engine(),
                    autoflush=False,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
    return _async_session_maker


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session for async operations."""
    async_session_factory = get_async_sessionmaker()
    async with async_session_factory() as session:
        yield session


def create_all_tables_for_testing() -> None:
    """Create all database tables for testing only. Production uses the Alembic migrations."""
    Base.metadata.create_all(get_engine())


async def close_db() -> None:
    """Dispose engines and clear the cached factories."""
    global _engine, _async_engine, _async_session_maker
    async_engine_to_dispose: Optional[AsyncEngine] = None
    engine_to_dispose: Optional[Engine] = None

    with _async_session_maker_lock:
        _async_session_maker = None
        with _async_engine_lock:
            async_engine_to_dispose, _async_engine = _async_engine, None

    with _engine_lock:
        engine_to_dispose, _engine = _engine, None

    # Dispose outside of locks
    if async_engine_to_dispose is not None:
        await async_engine_to_dispose.dispose()
    if engine_to_dispose is not None:
        engine_to_dispose.dispose()


def reset_db() -> None:
    """Forget engines without disposing them (useful for testing)."""
    global _engine, _async_engine, _async_session_maker
    with _async_session_maker_lock:
        with _async_engine_lock:
            _async_session_maker = None
            _async_engine = None
    with _engine_lock:
        _engine = None
