"""
Relationships service — auth dependencies.

Routes import from here, not from shared directly, so that service-specific
checks can be layered on without touching every router.
"""
from __future__ import annotations

from fastapi import Depends, Request

from app.users.directory import InMemoryUserDirectory
from shared.auth.dependencies import get_current_user_required
from shared.models.user import CurrentUser


async def get_current_user(
    request: Request,
    user: CurrentUser = Depends(get_current_user_required),
) -> CurrentUser:
    users = request.app.state.container.users
    # The memory backend has no identity projection; a verified token is the account record.
    if isinstance(users, InMemoryUserDirectory):
        users.register(user.id)
    return user
