"""Async SQLAlchemy helpers for the store services."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import ServiceSettings
from .errors import StoreError, translate_database_error

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, async_sessionmaker[AsyncSession]] = {}


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(
    database_url: str,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    **kwargs: Any,
) -> AsyncEngine:
    """Create or reuse a cached AsyncEngine for the given URL.

    SQLite connections get a busy timeout of ``timeout_seconds`` and enforce
    foreign keys.
    """

    if database_url in _ENGINE_CACHE:
        return _ENGINE_CACHE[database_url]

    is_sqlite = make_url(database_url).get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("timeout", timeout_seconds)
        kwargs["connect_args"] = connect_args

    engine = create_async_engine(database_url, pool_pre_ping=True, **kwargs)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    _ENGINE_CACHE[database_url] = engine
    return engine


def get_session_factory(
    database_url: str,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> async_sessionmaker[AsyncSession]:
    """Return an async_sessionmaker bound to the cached engine."""

    if database_url in _SESSION_FACTORY_CACHE:
        return _SESSION_FACTORY_CACHE[database_url]

    engine = create_engine(database_url, timeout_seconds=timeout_seconds)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    _SESSION_FACTORY_CACHE[database_url] = session_factory
    return session_factory


@asynccontextmanager
async def lifespan_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Provide an AsyncSession context for FastAPI dependencies."""

    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


@asynccontextmanager
async def transaction_scope(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Run a block as one all-or-nothing transaction.

    Commits when the block exits normally and rolls back on every other exit
    path. Store errors propagate unchanged; raw SQLAlchemy failures are
    translated into ``PersistenceError`` / ``OperationTimedOut``.
    """

    session = session_factory()
    try:
        async with session.begin():
            yield session
    except StoreError:
        _LOGGER.debug("Transaction rolled back")
        raise
    except SQLAlchemyError as exc:
        _LOGGER.warning("Transaction rolled back after database error", exc_info=True)
        raise translate_database_error(exc) from exc
    finally:
        await session.close()


def resolve_database_url(settings: ServiceSettings, fallback: str) -> str:
    """Pick database URL from settings or fallback."""

    return settings.database_url or fallback


async def dispose_engines() -> None:
    """Dispose all cached engines (used on shutdown or tests)."""

    for engine in _ENGINE_CACHE.values():
        await engine.dispose()
    _ENGINE_CACHE.clear()
    _SESSION_FACTORY_CACHE.clear()
