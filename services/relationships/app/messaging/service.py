"""
Messaging domain — conversation access for the messaging store.

get_or_create_conversation is the only way a conversation comes into
existence: it re-validates messaging permission on every call, so a stale
"Message" button can't open a thread with someone who has since blocked you.
"""
from __future__ import annotations

import logging
import uuid

from app.events.publishers import EventNotifier
from app.exceptions import Blocked, CannotMessageSelf, MessagingNotAllowed
from app.messaging.registry import ConversationRecord, ConversationRegistry
from app.social_graph.constants import FOLLOW_PERMISSIONS, MESSAGING_PERMISSIONS
from app.social_graph.graph import PairState, RelationshipGraph
from app.social_graph.policy import PolicyEngine
from app.users.directory import UserDirectory, ensure_user_exists
from shared.events.schemas import ConversationCreated

logger = logging.getLogger(__name__)


def _admit_new_conversation(state: PairState) -> None:
    if state.blocked:
        raise Blocked()
    if not (state.a_follows_b and state.b_follows_a):
        raise MessagingNotAllowed()


class MessagingService:
    def __init__(
        self,
        conversations: ConversationRegistry,
        graph: RelationshipGraph,
        policy: PolicyEngine,
        notifier: EventNotifier,
        users: UserDirectory,
    ) -> None:
        self._conversations = conversations
        self._graph = graph
        self._policy = policy
        self._notifier = notifier
        self._users = users

    async def get_or_create_conversation(
        self, actor: uuid.UUID, target: uuid.UUID
    ) -> tuple[ConversationRecord, bool]:
        if actor == target:
            raise CannotMessageSelf()
        await ensure_user_exists(self._users, target)

        permissions = await self._policy.evaluate(actor, target)
        if not permissions & MESSAGING_PERMISSIONS:
            # follow actions vanish only under a block
            if not permissions & FOLLOW_PERMISSIONS:
                raise Blocked()
            raise MessagingNotAllowed()

        # New rows are admitted under the pair lock, against the pair as it is then.
        record, created = await self._conversations.get_or_create(
            actor, target, admit=_admit_new_conversation
        )

        # An existing row is only returned; a block may have landed since the policy check.
        if not created and (await self._graph.pair_state(actor, target)).blocked:
            logger.info("Block raced conversation access between %s and %s", actor, target)
            raise Blocked()

        if created:
            logger.info("Conversation %s created between %s and %s", record.id, actor, target)
            self._notifier.publish(
                ConversationCreated(actor_id=actor, target_id=target, conversation_id=record.id)
            )
        return record, created

    async def list_conversations(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[ConversationRecord], int]:
        return await self._conversations.list_for(user_id, offset=offset, limit=limit)
