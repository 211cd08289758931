"""
Messaging domain — registry of one-to-one conversations.

At most one conversation exists per unordered pair.  Conversations are never
removed by follow / unfollow / block; only an explicit archive (owned by the
messaging store) may do that.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from app.database import storage_errors
from app.exceptions import CannotMessageSelf, UserNotFound
from app.messaging.models import Conversation
from app.social_graph.graph import (
    InMemoryRelationshipGraph,
    PairState,
    pair_transaction,
    read_pair_state,
)
from app.social_graph.locks import Pair, PairLocks, canonical_pair
from shared.database.postgres import AsyncSessionFactory

logger = logging.getLogger(__name__)

# Raises to refuse creating a new conversation; sees the pair as it is under its lock.
Admission = Callable[[PairState], None]


@dataclass(frozen=True, slots=True)
class ConversationRecord:
    id: uuid.UUID
    participant_low: uuid.UUID
    participant_high: uuid.UUID
    created_at: datetime

    @property
    def participants(self) -> Pair:
        return (self.participant_low, self.participant_high)

    def other_participant(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.participant_high if user_id == self.participant_low else self.participant_low

    @classmethod
    def from_row(cls, row: Conversation) -> ConversationRecord:
        return cls(
            id=row.conversation_id,
            participant_low=row.participant_low,
            participant_high=row.participant_high,
            created_at=row.created_at,
        )


class ConversationRegistry(Protocol):
    async def find_existing(self, a: uuid.UUID, b: uuid.UUID) -> ConversationRecord | None: ...

    async def get_or_create(
        self, a: uuid.UUID, b: uuid.UUID, *, admit: Admission | None = None
    ) -> tuple[ConversationRecord, bool]: ...

    async def list_for(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[ConversationRecord], int]: ...


def _reject_self(a: uuid.UUID, b: uuid.UUID) -> None:
    if a == b:
        raise CannotMessageSelf()


class InMemoryConversationRegistry:
    """Shares the graph's pair locks, so no block or unfollow can land between
    the admission check and the insert.  Without a graph the pair is seen empty.
    """

    def __init__(self, graph: InMemoryRelationshipGraph | None = None) -> None:
        self._by_pair: dict[Pair, ConversationRecord] = {}
        self._graph = graph
        self._locks = graph.locks if graph is not None else PairLocks()

    async def find_existing(self, a: uuid.UUID, b: uuid.UUID) -> ConversationRecord | None:
        return self._by_pair.get(canonical_pair(a, b))

    async def get_or_create(
        self, a: uuid.UUID, b: uuid.UUID, *, admit: Admission | None = None
    ) -> tuple[ConversationRecord, bool]:
        _reject_self(a, b)
        async with self._locks.hold(a, b) as key:
            existing = self._by_pair.get(key)
            if existing is not None:
                return existing, False
            if admit is not None:
                state = await self._graph.pair_state(a, b) if self._graph else PairState()
                admit(state)
            record = ConversationRecord(
                id=uuid.uuid4(),
                participant_low=key[0],
                participant_high=key[1],
                created_at=datetime.now(timezone.utc),
            )
            self._by_pair[key] = record
            return record, True

    async def list_for(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[ConversationRecord], int]:
        records = [r for r in reversed(self._by_pair.values()) if user_id in r.participants]
        return records[offset:offset + limit], len(records)


def _pair_clause(low: uuid.UUID, high: uuid.UUID) -> sa.ColumnElement:
    return sa.and_(
        Conversation.participant_low == low,
        Conversation.participant_high == high,
    )


class SqlConversationRegistry:
    """Admission and insert share one transaction under the pair's advisory lock;
    uq_conversations_pair backs it up on other dialects.
    """

    def __init__(self, session_factory: AsyncSessionFactory) -> None:
        self._session_factory = session_factory

    async def find_existing(self, a: uuid.UUID, b: uuid.UUID) -> ConversationRecord | None:
        low, high = canonical_pair(a, b)
        with storage_errors():
            async with self._session_factory() as session:
                row = (await session.execute(
                    sa.select(Conversation).where(_pair_clause(low, high))
                )).scalar_one_or_none()
        return ConversationRecord.from_row(row) if row is not None else None

    async def get_or_create(
        self, a: uuid.UUID, b: uuid.UUID, *, admit: Admission | None = None
    ) -> tuple[ConversationRecord, bool]:
        _reject_self(a, b)
        existing = await self.find_existing(a, b)
        if existing is not None:
            return existing, False

        low, high = canonical_pair(a, b)
        try:
            async with pair_transaction(self._session_factory, a, b) as session:
                row = (await session.execute(
                    sa.select(Conversation).where(_pair_clause(low, high))
                )).scalar_one_or_none()
                if row is not None:
                    return ConversationRecord.from_row(row), False
                if admit is not None:
                    admit(await read_pair_state(session, a, b))
                row = Conversation(participant_low=low, participant_high=high)
                session.add(row)
                await session.flush()
                record = ConversationRecord.from_row(row)
        except IntegrityError as exc:
            winner = await self.find_existing(a, b)
            if winner is None:
                # not the pair race: a participant row is missing
                logger.warning("Conversation insert for %s/%s rejected: %s", low, high, exc.orig)
                raise UserNotFound() from exc
            logger.info("Conversation race on %s/%s resolved to %s", low, high, winner.id)
            return winner, False
        return record, True

    async def list_for(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[ConversationRecord], int]:
        condition = sa.or_(
            Conversation.participant_low == user_id,
            Conversation.participant_high == user_id,
        )
        with storage_errors():
            async with self._session_factory() as session:
                total = (await session.execute(
                    sa.select(sa.func.count()).select_from(Conversation).where(condition)
                )).scalar_one()
                rows = await session.execute(
                    sa.select(Conversation)
                    .where(condition)
                    .order_by(Conversation.created_at.desc())
                    .offset(offset)
                    .limit(limit)
                )
                return [ConversationRecord.from_row(r) for r in rows.scalars().all()], total
