"""
Process-wide async session factory for the relationships database.

init_db() is called once from the app factory; storage classes receive the
factory explicitly rather than importing it.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError

from app.exceptions import StorageUnavailable
from shared.database.postgres import AsyncSessionFactory, get_async_session_factory

logger = logging.getLogger(__name__)

_session_factory: AsyncSessionFactory | None = None


def init_db(database_url: str) -> AsyncSessionFactory:
    global _session_factory
    if _session_factory is None:
        _session_factory = get_async_session_factory(database_url)
    return _session_factory


def get_session_factory() -> AsyncSessionFactory:
    if _session_factory is None:
        raise RuntimeError("Database not initialised; call init_db() first")
    return _session_factory


async def dispose_db() -> None:
    global _session_factory
    if _session_factory is not None:
        await _session_factory.kw["bind"].dispose()
        _session_factory = None


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate driver / connection failures into StorageUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as exc:
        logger.error("Relationship storage failure: %s", exc)
        raise StorageUnavailable() from exc
