import itertools
import uuid

import pytest

from app.messaging.registry import InMemoryConversationRegistry
from app.social_graph.constants import MESSAGING_PERMISSIONS, Permission
from app.social_graph.graph import InMemoryRelationshipGraph
from app.social_graph.policy import (
    PolicyEngine,
    RelationshipSnapshot,
    decide,
    static_profile_visibility,
)

P = Permission


# ── decide() ───────────────────────────────────────────────────────────────────

def test_strangers_may_follow_and_block_only() -> None:
    assert decide(RelationshipSnapshot()) == {P.CAN_FOLLOW, P.CAN_BLOCK}


def test_mutual_follow_allows_new_message() -> None:
    snapshot = RelationshipSnapshot(actor_follows_target=True, target_follows_actor=True)
    assert decide(snapshot) == {P.CAN_UNFOLLOW, P.CAN_BLOCK, P.CAN_SEND_NEW_MESSAGE}


def test_one_way_follow_does_not_allow_messaging() -> None:
    assert decide(RelationshipSnapshot(actor_follows_target=True)) == {P.CAN_UNFOLLOW, P.CAN_BLOCK}
    assert decide(RelationshipSnapshot(target_follows_actor=True)) == {P.CAN_FOLLOW, P.CAN_BLOCK}


def test_existing_conversation_is_grandfathered() -> None:
    snapshot = RelationshipSnapshot(conversation_exists=True)
    assert decide(snapshot) == {
        P.CAN_FOLLOW,
        P.CAN_BLOCK,
        P.CAN_CONTINUE_EXISTING_CONVERSATION,
    }


def test_existing_conversation_replaces_new_message_for_mutuals() -> None:
    snapshot = RelationshipSnapshot(
        actor_follows_target=True, target_follows_actor=True, conversation_exists=True
    )
    granted = decide(snapshot)
    assert P.CAN_CONTINUE_EXISTING_CONVERSATION in granted
    assert P.CAN_SEND_NEW_MESSAGE not in granted


def test_blocker_may_only_unblock() -> None:
    snapshot = RelationshipSnapshot(actor_blocks_target=True, conversation_exists=True)
    assert decide(snapshot, profile_visible=True) == {P.CAN_UNBLOCK}


def test_blocked_user_may_only_block_back() -> None:
    snapshot = RelationshipSnapshot(target_blocks_actor=True, conversation_exists=True)
    assert decide(snapshot, profile_visible=True) == {P.CAN_BLOCK}


def test_mutual_blocks_leave_unblock() -> None:
    snapshot = RelationshipSnapshot(actor_blocks_target=True, target_blocks_actor=True)
    assert decide(snapshot) == {P.CAN_UNBLOCK}


def test_profile_visibility_is_passed_through() -> None:
    assert P.CAN_VIEW_FULL_PROFILE in decide(RelationshipSnapshot(), profile_visible=True)
    assert P.CAN_VIEW_FULL_PROFILE not in decide(RelationshipSnapshot())


@pytest.mark.parametrize("flags", list(itertools.product([False, True], repeat=5)))
def test_decision_is_never_contradictory(flags) -> None:
    snapshot = RelationshipSnapshot(*flags)
    granted = decide(snapshot, profile_visible=True)

    assert not {P.CAN_FOLLOW, P.CAN_UNFOLLOW} <= granted
    assert not {P.CAN_BLOCK, P.CAN_UNBLOCK} <= granted
    assert not MESSAGING_PERMISSIONS <= granted
    if snapshot.blocked:
        assert not granted & MESSAGING_PERMISSIONS
        assert P.CAN_FOLLOW not in granted
        assert P.CAN_VIEW_FULL_PROFILE not in granted


# ── PolicyEngine ───────────────────────────────────────────────────────────────

@pytest.fixture
def graph() -> InMemoryRelationshipGraph:
    return InMemoryRelationshipGraph()


@pytest.fixture
def conversations() -> InMemoryConversationRegistry:
    return InMemoryConversationRegistry()


@pytest.fixture
def policy(graph, conversations) -> PolicyEngine:
    return PolicyEngine(graph, conversations)


@pytest.mark.asyncio
async def test_evaluate_self_is_empty(policy) -> None:
    user = uuid.uuid4()
    assert await policy.evaluate(user, user) == frozenset()


@pytest.mark.asyncio
async def test_mutual_follow_then_conversation(policy, graph, conversations) -> None:
    a, b = uuid.uuid4(), uuid.uuid4()
    await graph.follow(a, b)
    await graph.follow(b, a)

    granted = await policy.evaluate(a, b)
    assert {P.CAN_SEND_NEW_MESSAGE, P.CAN_UNFOLLOW} <= granted

    conversation, created = await conversations.get_or_create(a, b)
    assert created

    # B unfollows A: the conversation persists and stays usable
    await graph.unfollow(b, a)
    granted = await policy.evaluate(a, b)
    assert P.CAN_SEND_NEW_MESSAGE not in granted
    assert P.CAN_CONTINUE_EXISTING_CONVERSATION in granted

    # A blocks B: messaging and following shut down in both directions
    await graph.block(a, b)
    assert not await graph.is_following(a, b)
    assert not await graph.is_following(b, a)
    a_to_b = await policy.evaluate(a, b)
    b_to_a = await policy.evaluate(b, a)
    for granted in (a_to_b, b_to_a):
        assert not granted & MESSAGING_PERMISSIONS
        assert P.CAN_FOLLOW not in granted
    assert P.CAN_UNBLOCK in a_to_b
    assert await conversations.find_existing(b, a) == conversation


@pytest.mark.asyncio
async def test_strangers_without_visibility_collaborator(policy) -> None:
    assert await policy.evaluate(uuid.uuid4(), uuid.uuid4()) == {P.CAN_FOLLOW, P.CAN_BLOCK}


@pytest.mark.asyncio
async def test_visibility_not_consulted_under_block(graph, conversations) -> None:
    asked: list[tuple[uuid.UUID, uuid.UUID]] = []

    async def visibility(viewer: uuid.UUID, owner: uuid.UUID) -> bool:
        asked.append((viewer, owner))
        return True

    policy = PolicyEngine(graph, conversations, profile_visibility=visibility)
    a, b = uuid.uuid4(), uuid.uuid4()

    assert P.CAN_VIEW_FULL_PROFILE in await policy.evaluate(a, b)
    assert asked == [(a, b)]

    await graph.block(b, a)
    assert await policy.evaluate(a, b) == {P.CAN_BLOCK}
    assert asked == [(a, b)]


@pytest.mark.asyncio
async def test_static_profile_visibility(graph, conversations) -> None:
    private = PolicyEngine(graph, conversations, profile_visibility=static_profile_visibility(False))
    assert P.CAN_VIEW_FULL_PROFILE not in await private.evaluate(uuid.uuid4(), uuid.uuid4())


class _CountingGraph(InMemoryRelationshipGraph):
    def __init__(self) -> None:
        super().__init__()
        self.reads = 0

    async def pair_state(self, a, b):
        self.reads += 1
        return await super().pair_state(a, b)


@pytest.mark.asyncio
async def test_describe_decides_from_one_read(conversations) -> None:
    graph = _CountingGraph()
    policy = PolicyEngine(graph, conversations)
    a, b = uuid.uuid4(), uuid.uuid4()
    await graph.follow(a, b)
    await graph.follow(b, a)

    snapshot, granted = await policy.describe(a, b)

    assert graph.reads == 1
    assert snapshot.mutual_follow and not snapshot.blocked
    assert granted == decide(snapshot)


@pytest.mark.asyncio
async def test_describe_self(policy) -> None:
    user = uuid.uuid4()
    assert await policy.describe(user, user) == (RelationshipSnapshot(), frozenset())
