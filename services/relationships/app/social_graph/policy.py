"""
Relationship policy — which social actions one user may take towards another.

The decision is a pure function of a RelationshipSnapshot.  PolicyEngine only
gathers the snapshot from storage; it holds no state and caches nothing, so
it must be asked again after every mutation.

Rules, in precedence order:
  1. self            → nothing
  2. block (either)  → no messaging, no follow/unfollow, no full profile;
                       can_unblock if the actor is the blocker, else can_block
  3. conversation    → can_continue_existing_conversation, whatever the
                       current follow state (grandfathered)
  4. mutual follow   → can_send_new_message, unless a conversation exists
  5. follow state    → can_follow / can_unfollow
  6. profile         → delegated to the visibility collaborator
"""
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.social_graph.constants import Permission, PermissionSet
from app.social_graph.graph import RelationshipGraph

if TYPE_CHECKING:
    from app.messaging.registry import ConversationRegistry

# (viewer_id, profile_owner_id) -> is the owner's full profile visible to the viewer?
ProfileVisibility = Callable[[uuid.UUID, uuid.UUID], Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class RelationshipSnapshot:
    actor_follows_target: bool = False
    target_follows_actor: bool = False
    actor_blocks_target: bool = False
    target_blocks_actor: bool = False
    conversation_exists: bool = False

    @property
    def blocked(self) -> bool:
        return self.actor_blocks_target or self.target_blocks_actor

    @property
    def mutual_follow(self) -> bool:
        return self.actor_follows_target and self.target_follows_actor


def decide(snapshot: RelationshipSnapshot, *, profile_visible: bool = False) -> PermissionSet:
    if snapshot.blocked:
        if snapshot.actor_blocks_target:
            return frozenset({Permission.CAN_UNBLOCK})
        return frozenset({Permission.CAN_BLOCK})

    granted = {Permission.CAN_BLOCK}
    if snapshot.conversation_exists:
        granted.add(Permission.CAN_CONTINUE_EXISTING_CONVERSATION)
    elif snapshot.mutual_follow:
        granted.add(Permission.CAN_SEND_NEW_MESSAGE)

    if snapshot.actor_follows_target:
        granted.add(Permission.CAN_UNFOLLOW)
    else:
        granted.add(Permission.CAN_FOLLOW)

    if profile_visible:
        granted.add(Permission.CAN_VIEW_FULL_PROFILE)
    return frozenset(granted)


def static_profile_visibility(visible: bool) -> ProfileVisibility:
    """Visibility collaborator that gives the same answer for every profile."""

    async def _resolve(viewer_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        return visible

    return _resolve


class PolicyEngine:
    def __init__(
        self,
        graph: RelationshipGraph,
        conversations: ConversationRegistry,
        *,
        profile_visibility: ProfileVisibility | None = None,
    ) -> None:
        self._graph = graph
        self._conversations = conversations
        self._profile_visibility = profile_visibility

    async def snapshot(self, actor: uuid.UUID, target: uuid.UUID) -> RelationshipSnapshot:
        state = await self._graph.pair_state(actor, target)
        conversation = await self._conversations.find_existing(actor, target)
        return RelationshipSnapshot(
            actor_follows_target=state.a_follows_b,
            target_follows_actor=state.b_follows_a,
            actor_blocks_target=state.a_blocks_b,
            target_blocks_actor=state.b_blocks_a,
            conversation_exists=conversation is not None,
        )

    async def evaluate(self, actor: uuid.UUID, target: uuid.UUID) -> PermissionSet:
        """Permissions ``actor`` currently holds towards ``target``.

        Side-effect free.  Storage failures propagate as StorageUnavailable
        rather than degrading to an empty set.
        """
        _, permissions = await self.describe(actor, target)
        return permissions

    async def describe(
        self, actor: uuid.UUID, target: uuid.UUID
    ) -> tuple[RelationshipSnapshot, PermissionSet]:
        """The snapshot and the permissions decided from that same snapshot."""
        if actor == target:
            return RelationshipSnapshot(), frozenset()
        snapshot = await self.snapshot(actor, target)
        visible = False
        if not snapshot.blocked and self._profile_visibility is not None:
            visible = await self._profile_visibility(actor, target)
        return snapshot, decide(snapshot, profile_visible=visible)
