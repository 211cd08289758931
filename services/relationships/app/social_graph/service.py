"""
Social graph domain — relationship mutations (zero FastAPI routing).

Every request_* call:
  1. rejects self-targeting and unknown targets
  2. re-evaluates policy itself; a decision cached by the caller is never trusted
  3. mutates the graph (which re-checks blocks under the pair lock)
  4. queues an event once the mutation has committed, only if state changed
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from app.events.publishers import EventNotifier
from app.exceptions import (
    Blocked,
    CannotBlockSelf,
    CannotFollowSelf,
    InvalidOperation,
    InvariantViolation,
)
from app.social_graph.constants import Permission, PermissionSet
from app.social_graph.graph import RelationshipGraph
from app.social_graph.policy import PolicyEngine
from app.users.directory import UserDirectory, ensure_user_exists
from shared.events.schemas import UserBlocked, UserFollowed, UserUnblocked, UserUnfollowed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MutationResult:
    action: str
    changed: bool
    permissions: PermissionSet


class RelationshipService:
    def __init__(
        self,
        graph: RelationshipGraph,
        policy: PolicyEngine,
        notifier: EventNotifier,
        users: UserDirectory,
    ) -> None:
        self._graph = graph
        self._policy = policy
        self._notifier = notifier
        self._users = users

    async def _prepare(
        self, actor: uuid.UUID, target: uuid.UUID, self_error: type[InvalidOperation]
    ) -> PermissionSet:
        if actor == target:
            raise self_error()
        await ensure_user_exists(self._users, target)
        return await self._policy.evaluate(actor, target)

    async def _result(self, action: str, changed: bool, actor: uuid.UUID, target: uuid.UUID) -> MutationResult:
        return MutationResult(
            action=action,
            changed=changed,
            permissions=await self._policy.evaluate(actor, target),
        )

    # ── Follow ─────────────────────────────────────────────────────────────────

    async def request_follow(self, actor: uuid.UUID, target: uuid.UUID) -> MutationResult:
        permissions = await self._prepare(actor, target, CannotFollowSelf)
        if Permission.CAN_UNFOLLOW in permissions:
            return MutationResult(action="follow", changed=False, permissions=permissions)
        if Permission.CAN_FOLLOW not in permissions:
            raise Blocked()
        created = await self._graph.follow(actor, target)
        if created:
            logger.info("User %s followed %s", actor, target)
            self._notifier.publish(UserFollowed(actor_id=actor, target_id=target))
        return await self._result("follow", created, actor, target)

    async def request_unfollow(self, actor: uuid.UUID, target: uuid.UUID) -> MutationResult:
        permissions = await self._prepare(actor, target, CannotFollowSelf)
        if Permission.CAN_UNFOLLOW not in permissions:
            return MutationResult(action="unfollow", changed=False, permissions=permissions)
        removed = await self._graph.unfollow(actor, target)
        if removed:
            logger.info("User %s unfollowed %s", actor, target)
            self._notifier.publish(UserUnfollowed(actor_id=actor, target_id=target))
        return await self._result("unfollow", removed, actor, target)

    async def toggle_follow(self, actor: uuid.UUID, target: uuid.UUID) -> MutationResult:
        """Single-button follow: unfollow when already following, follow otherwise."""
        if actor != target and await self._graph.is_following(actor, target):
            return await self.request_unfollow(actor, target)
        return await self.request_follow(actor, target)

    # ── Block ──────────────────────────────────────────────────────────────────

    async def request_block(
        self, actor: uuid.UUID, target: uuid.UUID, *, reason: str | None = None
    ) -> MutationResult:
        permissions = await self._prepare(actor, target, CannotBlockSelf)
        if Permission.CAN_UNBLOCK in permissions:
            return MutationResult(action="block", changed=False, permissions=permissions)
        outcome = await self._graph.block(actor, target, reason=reason)
        await self._assert_no_follow_alongside_block(actor, target)
        if outcome.created:
            logger.info(
                "User %s blocked %s (%d follow edge(s) severed)",
                actor, target, outcome.severed_follows,
            )
            self._notifier.publish(UserBlocked(actor_id=actor, target_id=target))
        return await self._result("block", outcome.created, actor, target)

    async def request_unblock(self, actor: uuid.UUID, target: uuid.UUID) -> MutationResult:
        permissions = await self._prepare(actor, target, CannotBlockSelf)
        if Permission.CAN_UNBLOCK not in permissions:
            return MutationResult(action="unblock", changed=False, permissions=permissions)
        removed = await self._graph.unblock(actor, target)
        if removed:
            logger.info("User %s unblocked %s", actor, target)
            self._notifier.publish(UserUnblocked(actor_id=actor, target_id=target))
        return await self._result("unblock", removed, actor, target)

    async def _assert_no_follow_alongside_block(self, actor: uuid.UUID, target: uuid.UUID) -> None:
        state = await self._graph.pair_state(actor, target)
        if state.blocked and state.any_follow:
            logger.critical(
                "Invariant violated: follow edge coexists with block between %s and %s (%r)",
                actor, target, state,
            )
            raise InvariantViolation(
                f"follow edge coexists with block between {actor} and {target}"
            )
