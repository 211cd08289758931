"""
Social graph domain — user-facing routes.

All routes prefixed /api/v1/users.

Routes:
  GET    /me/following              Who I follow (paginated)
  GET    /me/followers              Who follows me (paginated)
  GET    /me/blocked                My block list (paginated)
  GET    /{user_id}/following       View a user's following (404 across a block)
  GET    /{user_id}/followers       View a user's followers (404 across a block)
  GET    /{user_id}/relationship    Relationship flags + permission set
  POST   /{user_id}/follow          Follow a user  (50/hour rate limit)
  DELETE /{user_id}/follow          Unfollow
  POST   /{user_id}/follow/toggle   Follow if not following, else unfollow
  POST   /{user_id}/block           Block (removes follow edges both ways)
  DELETE /{user_id}/block           Unblock

Note: /me/... routes must be registered before /{user_id}/... routes of the same
shape so Starlette's literal-path matching takes precedence.
"""
import uuid

from fastapi import APIRouter, Body, Depends, Query, Request, status

from app.auth.dependencies import get_current_user
from app.dependencies import (
    get_graph,
    get_policy,
    get_relationship_service,
    get_user_directory,
)
from app.rate_limit import FOLLOW_RATE_LIMIT, limiter
from app.social_graph import controller as ctrl
from app.social_graph.graph import RelationshipGraph
from app.social_graph.policy import PolicyEngine
from app.social_graph.schemas import (
    BlockRequest,
    MutationResponse,
    RelationshipResponse,
    UserIdListResponse,
)
from app.social_graph.service import RelationshipService
from app.users.directory import UserDirectory
from shared.models.pagination import PageParams
from shared.models.user import CurrentUser

router = APIRouter(prefix="/users", tags=["social-graph"])


# ── My lists ───────────────────────────────────────────────────────────────────

@router.get(
    "/me/following",
    response_model=UserIdListResponse,
    summary="List users I follow",
)
async def my_following(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    graph: RelationshipGraph = Depends(get_graph),
) -> UserIdListResponse:
    return await ctrl.list_following(graph, current_user.id, PageParams(page=page, size=size))


@router.get(
    "/me/followers",
    response_model=UserIdListResponse,
    summary="List users who follow me",
)
async def my_followers(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    graph: RelationshipGraph = Depends(get_graph),
) -> UserIdListResponse:
    return await ctrl.list_followers(graph, current_user.id, PageParams(page=page, size=size))


@router.get(
    "/me/blocked",
    response_model=UserIdListResponse,
    summary="List users I have blocked",
)
async def my_blocked(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    graph: RelationshipGraph = Depends(get_graph),
) -> UserIdListResponse:
    return await ctrl.list_blocked(graph, current_user.id, PageParams(page=page, size=size))


# ── Other users' lists ─────────────────────────────────────────────────────────

@router.get(
    "/{user_id}/following",
    response_model=UserIdListResponse,
    summary="List users a user follows",
    description="Returns 404 if either of you has blocked the other.",
)
async def user_following(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    graph: RelationshipGraph = Depends(get_graph),
    users: UserDirectory = Depends(get_user_directory),
) -> UserIdListResponse:
    return await ctrl.list_user_following(
        graph, users, current_user.id, user_id, PageParams(page=page, size=size)
    )


@router.get(
    "/{user_id}/followers",
    response_model=UserIdListResponse,
    summary="List a user's followers",
    description="Returns 404 if either of you has blocked the other.",
)
async def user_followers(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    graph: RelationshipGraph = Depends(get_graph),
    users: UserDirectory = Depends(get_user_directory),
) -> UserIdListResponse:
    return await ctrl.list_user_followers(
        graph, users, current_user.id, user_id, PageParams(page=page, size=size)
    )


# ── Relationship ───────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}/relationship",
    response_model=RelationshipResponse,
    summary="Relationship with a user",
    description=(
        "Returns the follow/block flags between you and the user and the set of "
        "actions you may take toward them right now."
    ),
)
async def get_relationship(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    policy: PolicyEngine = Depends(get_policy),
) -> RelationshipResponse:
    return await ctrl.get_relationship(policy, current_user.id, user_id)


# ── Follow ─────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/follow",
    response_model=MutationResponse,
    status_code=status.HTTP_200_OK,
    summary="Follow a user",
    description="Rate-limited to 50 follow actions per hour.",
)
@limiter.limit(FOLLOW_RATE_LIMIT)
async def follow_user(
    request: Request,
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
) -> MutationResponse:
    return await ctrl.follow_user(service, current_user.id, user_id)


@router.delete(
    "/{user_id}/follow",
    response_model=MutationResponse,
    summary="Unfollow a user",
)
async def unfollow_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
) -> MutationResponse:
    return await ctrl.unfollow_user(service, current_user.id, user_id)


@router.post(
    "/{user_id}/follow/toggle",
    response_model=MutationResponse,
    summary="Toggle following a user",
    description="Shares the follow rate limit.",
)
@limiter.limit(FOLLOW_RATE_LIMIT)
async def toggle_follow(
    request: Request,
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
) -> MutationResponse:
    return await ctrl.toggle_follow(service, current_user.id, user_id)


# ── Block ──────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/block",
    response_model=MutationResponse,
    summary="Block a user",
    description=(
        "Removes follow edges in both directions. While the block stands neither "
        "user can follow or message the other."
    ),
)
async def block_user(
    user_id: uuid.UUID,
    body: BlockRequest | None = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
) -> MutationResponse:
    reason = body.reason if body is not None else None
    return await ctrl.block_user(service, current_user.id, user_id, reason)


@router.delete(
    "/{user_id}/block",
    response_model=MutationResponse,
    summary="Unblock a user",
    description="Follows removed by the block are not restored.",
)
async def unblock_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
) -> MutationResponse:
    return await ctrl.unblock_user(service, current_user.id, user_id)
