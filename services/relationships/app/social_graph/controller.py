"""
Social graph domain — request orchestration.
"""
from __future__ import annotations

import uuid

from app.exceptions import UserNotFound
from app.social_graph.constants import PermissionSet
from app.social_graph.graph import RelationshipGraph
from app.social_graph.policy import PolicyEngine
from app.social_graph.schemas import MutationResponse, RelationshipResponse, UserIdListResponse
from app.social_graph.service import MutationResult, RelationshipService
from app.users.directory import UserDirectory, ensure_user_exists
from shared.models.pagination import PageParams


def _sorted(permissions: PermissionSet) -> list:
    return sorted(permissions, key=lambda p: p.value)


def _mutation_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        action=result.action,
        changed=result.changed,
        permissions=_sorted(result.permissions),
    )


async def get_relationship(
    policy: PolicyEngine,
    viewer_id: uuid.UUID,
    user_id: uuid.UUID,
) -> RelationshipResponse:
    snapshot, permissions = await policy.describe(viewer_id, user_id)
    return RelationshipResponse(
        user_id=user_id,
        is_following=snapshot.actor_follows_target,
        is_followed_by=snapshot.target_follows_actor,
        is_blocking=snapshot.actor_blocks_target,
        is_blocked_by=snapshot.target_blocks_actor,
        has_conversation=snapshot.conversation_exists,
        permissions=_sorted(permissions),
    )


async def follow_user(
    service: RelationshipService, follower_id: uuid.UUID, following_id: uuid.UUID
) -> MutationResponse:
    return _mutation_response(await service.request_follow(follower_id, following_id))


async def unfollow_user(
    service: RelationshipService, follower_id: uuid.UUID, following_id: uuid.UUID
) -> MutationResponse:
    return _mutation_response(await service.request_unfollow(follower_id, following_id))


async def toggle_follow(
    service: RelationshipService, follower_id: uuid.UUID, following_id: uuid.UUID
) -> MutationResponse:
    return _mutation_response(await service.toggle_follow(follower_id, following_id))


async def block_user(
    service: RelationshipService,
    blocker_id: uuid.UUID,
    blocked_id: uuid.UUID,
    reason: str | None,
) -> MutationResponse:
    return _mutation_response(await service.request_block(blocker_id, blocked_id, reason=reason))


async def unblock_user(
    service: RelationshipService, blocker_id: uuid.UUID, blocked_id: uuid.UUID
) -> MutationResponse:
    return _mutation_response(await service.request_unblock(blocker_id, blocked_id))


async def list_following(
    graph: RelationshipGraph, user_id: uuid.UUID, params: PageParams
) -> UserIdListResponse:
    ids, total = await graph.list_following(user_id, offset=params.offset, limit=params.size)
    return UserIdListResponse(items=ids, total=total, page=params.page, size=params.size)


async def list_followers(
    graph: RelationshipGraph, user_id: uuid.UUID, params: PageParams
) -> UserIdListResponse:
    ids, total = await graph.list_followers(user_id, offset=params.offset, limit=params.size)
    return UserIdListResponse(items=ids, total=total, page=params.page, size=params.size)


async def list_blocked(
    graph: RelationshipGraph, user_id: uuid.UUID, params: PageParams
) -> UserIdListResponse:
    ids, total = await graph.list_blocked(user_id, offset=params.offset, limit=params.size)
    return UserIdListResponse(items=ids, total=total, page=params.page, size=params.size)


async def _ensure_lists_visible(
    graph: RelationshipGraph,
    users: UserDirectory,
    viewer_id: uuid.UUID,
    owner_id: uuid.UUID,
) -> None:
    """A block in either direction hides the owner's lists as if they didn't exist."""
    await ensure_user_exists(users, owner_id)
    if viewer_id != owner_id and (await graph.pair_state(viewer_id, owner_id)).blocked:
        raise UserNotFound()


async def list_user_following(
    graph: RelationshipGraph,
    users: UserDirectory,
    viewer_id: uuid.UUID,
    owner_id: uuid.UUID,
    params: PageParams,
) -> UserIdListResponse:
    await _ensure_lists_visible(graph, users, viewer_id, owner_id)
    return await list_following(graph, owner_id, params)


async def list_user_followers(
    graph: RelationshipGraph,
    users: UserDirectory,
    viewer_id: uuid.UUID,
    owner_id: uuid.UUID,
    params: PageParams,
) -> UserIdListResponse:
    await _ensure_lists_visible(graph, users, viewer_id, owner_id)
    return await list_followers(graph, owner_id, params)
