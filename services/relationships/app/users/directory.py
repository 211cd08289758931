"""
Target-identity lookup used before any relationship mutation.

Authentication of the *actor* happens upstream; the directory only answers
whether a *target* refers to a live account so mutations can fail with
UserNotFound instead of writing dangling edges.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Protocol

import sqlalchemy as sa

from app.database import storage_errors
from app.exceptions import UserNotFound
from app.users.models import User
from shared.database.postgres import AsyncSessionFactory


class UserDirectory(Protocol):
    async def exists(self, user_id: uuid.UUID) -> bool: ...


async def ensure_user_exists(directory: UserDirectory, user_id: uuid.UUID) -> None:
    if not await directory.exists(user_id):
        raise UserNotFound()


class InMemoryUserDirectory:
    def __init__(self, user_ids: Iterable[uuid.UUID] = ()) -> None:
        self._active: set[uuid.UUID] = set(user_ids)

    def register(self, user_id: uuid.UUID) -> None:
        self._active.add(user_id)

    def deactivate(self, user_id: uuid.UUID) -> None:
        self._active.discard(user_id)

    async def exists(self, user_id: uuid.UUID) -> bool:
        return user_id in self._active


class SqlUserDirectory:
    def __init__(self, session_factory: AsyncSessionFactory) -> None:
        self._session_factory = session_factory

    async def exists(self, user_id: uuid.UUID) -> bool:
        with storage_errors():
            async with self._session_factory() as session:
                result = await session.execute(
                    sa.select(sa.exists().where(User.id == user_id, User.is_active.is_(True)))
                )
                return bool(result.scalar_one())
