"""
Social graph domain — follow / block edge storage.

State rules (enforced by every RelationshipGraph implementation):
  follow:   cannot follow self, cannot follow while a block exists either way
  block:    cannot block self; removes follow edges in both directions in the
            same atomic step that records the block
  unblock:  removes the block only; severed follows stay severed
  all mutations are idempotent and serialized per unordered pair
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import storage_errors
from app.exceptions import Blocked, CannotBlockSelf, CannotFollowSelf
from app.social_graph.locks import PairLocks, pair_lock_key
from app.social_graph.models import Block, Follow
from shared.database.postgres import AsyncSessionFactory, session_scope


@dataclass(frozen=True, slots=True)
class PairState:
    """All four directed edges between a and b, read at one point in time."""

    a_follows_b: bool = False
    b_follows_a: bool = False
    a_blocks_b: bool = False
    b_blocks_a: bool = False

    @property
    def blocked(self) -> bool:
        return self.a_blocks_b or self.b_blocks_a

    @property
    def any_follow(self) -> bool:
        return self.a_follows_b or self.b_follows_a


@dataclass(frozen=True, slots=True)
class BlockOutcome:
    created: bool
    severed_follows: int


class RelationshipGraph(Protocol):
    async def follow(self, a: uuid.UUID, b: uuid.UUID) -> bool: ...

    async def unfollow(self, a: uuid.UUID, b: uuid.UUID) -> bool: ...

    async def block(
        self, a: uuid.UUID, b: uuid.UUID, *, reason: str | None = None
    ) -> BlockOutcome: ...

    async def unblock(self, a: uuid.UUID, b: uuid.UUID) -> bool: ...

    async def is_following(self, a: uuid.UUID, b: uuid.UUID) -> bool: ...

    async def is_blocked(self, a: uuid.UUID, b: uuid.UUID) -> bool: ...

    async def pair_state(self, a: uuid.UUID, b: uuid.UUID) -> PairState: ...

    async def list_following(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]: ...

    async def list_followers(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]: ...

    async def list_blocked(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]: ...


def _reject_self_follow(a: uuid.UUID, b: uuid.UUID) -> None:
    if a == b:
        raise CannotFollowSelf()


def _reject_self_block(a: uuid.UUID, b: uuid.UUID) -> None:
    if a == b:
        raise CannotBlockSelf()


# ── In-memory ──────────────────────────────────────────────────────────────────

class InMemoryRelationshipGraph:
    """Process-local graph for tests and the ``memory`` storage backend.

    Mutations are applied without suspension points once the pair lock is
    held, so a reader can never see a block next to a follow edge and a
    cancelled caller leaves nothing half-applied.
    """

    def __init__(self) -> None:
        # insertion order doubles as recency for the list_* views
        self._follows: dict[tuple[uuid.UUID, uuid.UUID], datetime] = {}
        self._blocks: dict[tuple[uuid.UUID, uuid.UUID], tuple[datetime, str | None]] = {}
        self._locks = PairLocks()

    @property
    def locks(self) -> PairLocks:
        """Shared with the conversation registry so admission sees a settled pair."""
        return self._locks

    async def follow(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        _reject_self_follow(a, b)
        async with self._locks.hold(a, b):
            if (a, b) in self._blocks or (b, a) in self._blocks:
                raise Blocked()
            if (a, b) in self._follows:
                return False
            self._follows[(a, b)] = datetime.now(timezone.utc)
            return True

    async def unfollow(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        async with self._locks.hold(a, b):
            return self._follows.pop((a, b), None) is not None

    async def block(
        self, a: uuid.UUID, b: uuid.UUID, *, reason: str | None = None
    ) -> BlockOutcome:
        _reject_self_block(a, b)
        async with self._locks.hold(a, b):
            created = (a, b) not in self._blocks
            if created:
                self._blocks[(a, b)] = (datetime.now(timezone.utc), reason)
            severed = sum(
                self._follows.pop(edge, None) is not None for edge in ((a, b), (b, a))
            )
            return BlockOutcome(created=created, severed_follows=severed)

    async def unblock(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        async with self._locks.hold(a, b):
            return self._blocks.pop((a, b), None) is not None

    async def is_following(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        return (a, b) in self._follows

    async def is_blocked(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        return (a, b) in self._blocks

    async def pair_state(self, a: uuid.UUID, b: uuid.UUID) -> PairState:
        return PairState(
            a_follows_b=(a, b) in self._follows,
            b_follows_a=(b, a) in self._follows,
            a_blocks_b=(a, b) in self._blocks,
            b_blocks_a=(b, a) in self._blocks,
        )

    def block_reason(self, a: uuid.UUID, b: uuid.UUID) -> str | None:
        entry = self._blocks.get((a, b))
        return entry[1] if entry else None

    async def list_following(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        ids = [dst for src, dst in reversed(self._follows) if src == user_id]
        return ids[offset:offset + limit], len(ids)

    async def list_followers(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        ids = [src for src, dst in reversed(self._follows) if dst == user_id]
        return ids[offset:offset + limit], len(ids)

    async def list_blocked(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        ids = [dst for src, dst in reversed(self._blocks) if src == user_id]
        return ids[offset:offset + limit], len(ids)


# ── SQL ────────────────────────────────────────────────────────────────────────

def _pair_filter(source: sa.ColumnElement, target: sa.ColumnElement, a: uuid.UUID, b: uuid.UUID):
    return sa.or_(
        sa.and_(source == a, target == b),
        sa.and_(source == b, target == a),
    )


async def read_pair_state(session: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> PairState:
    # One statement, one snapshot: follows and blocks can't be read torn.
    stmt = sa.union_all(
        sa.select(
            sa.literal("follow").label("kind"),
            Follow.follower_id.label("source_id"),
        ).where(_pair_filter(Follow.follower_id, Follow.following_id, a, b)),
        sa.select(
            sa.literal("block").label("kind"),
            Block.blocker_id.label("source_id"),
        ).where(_pair_filter(Block.blocker_id, Block.blocked_id, a, b)),
    )
    edges = {(row.kind, row.source_id) for row in (await session.execute(stmt)).all()}
    return PairState(
        a_follows_b=("follow", a) in edges,
        b_follows_a=("follow", b) in edges,
        a_blocks_b=("block", a) in edges,
        b_blocks_a=("block", b) in edges,
    )


@asynccontextmanager
async def pair_transaction(
    session_factory: AsyncSessionFactory, a: uuid.UUID, b: uuid.UUID
) -> AsyncIterator[AsyncSession]:
    """One transaction holding the pair's advisory lock until commit or rollback."""
    with storage_errors():
        async with session_scope(session_factory) as session:
            if session.bind.dialect.name == "postgresql":
                await session.execute(
                    sa.select(sa.func.pg_advisory_xact_lock(pair_lock_key(a, b)))
                )
            yield session


class SqlRelationshipGraph:
    """PostgreSQL-backed graph.

    Each mutation is one transaction holding ``pg_advisory_xact_lock`` on the
    canonical pair, released automatically at commit or rollback.
    """

    def __init__(self, session_factory: AsyncSessionFactory) -> None:
        self._session_factory = session_factory

    async def follow(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        _reject_self_follow(a, b)
        async with pair_transaction(self._session_factory, a, b) as session:
            state = await read_pair_state(session, a, b)
            if state.blocked:
                raise Blocked()
            if state.a_follows_b:
                return False
            session.add(Follow(follower_id=a, following_id=b))
            await session.flush()
        return True

    async def unfollow(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        async with pair_transaction(self._session_factory, a, b) as session:
            result = await session.execute(
                sa.delete(Follow).where(Follow.follower_id == a, Follow.following_id == b)
            )
        return result.rowcount > 0

    async def block(
        self, a: uuid.UUID, b: uuid.UUID, *, reason: str | None = None
    ) -> BlockOutcome:
        _reject_self_block(a, b)
        async with pair_transaction(self._session_factory, a, b) as session:
            state = await read_pair_state(session, a, b)
            if not state.a_blocks_b:
                session.add(Block(blocker_id=a, blocked_id=b, reason=reason))
            result = await session.execute(
                sa.delete(Follow).where(_pair_filter(Follow.follower_id, Follow.following_id, a, b))
            )
            await session.flush()
        return BlockOutcome(created=not state.a_blocks_b, severed_follows=result.rowcount)

    async def unblock(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        async with pair_transaction(self._session_factory, a, b) as session:
            result = await session.execute(
                sa.delete(Block).where(Block.blocker_id == a, Block.blocked_id == b)
            )
        return result.rowcount > 0

    async def _scalar(self, stmt) -> object:
        with storage_errors():
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one()

    async def is_following(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        return bool(await self._scalar(
            sa.select(sa.exists().where(Follow.follower_id == a, Follow.following_id == b))
        ))

    async def is_blocked(self, a: uuid.UUID, b: uuid.UUID) -> bool:
        return bool(await self._scalar(
            sa.select(sa.exists().where(Block.blocker_id == a, Block.blocked_id == b))
        ))

    async def pair_state(self, a: uuid.UUID, b: uuid.UUID) -> PairState:
        with storage_errors():
            async with self._session_factory() as session:
                return await read_pair_state(session, a, b)

    async def _page(
        self,
        model: type[Follow] | type[Block],
        column: sa.ColumnElement,
        condition: sa.ColumnElement,
        created_at: sa.ColumnElement,
        offset: int,
        limit: int,
    ) -> tuple[list[uuid.UUID], int]:
        with storage_errors():
            async with self._session_factory() as session:
                total = (await session.execute(
                    sa.select(sa.func.count()).select_from(model).where(condition)
                )).scalar_one()
                rows = await session.execute(
                    sa.select(column).where(condition)
                    .order_by(created_at.desc())
                    .offset(offset)
                    .limit(limit)
                )
                return list(rows.scalars().all()), total

    async def list_following(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        return await self._page(
            Follow, Follow.following_id, Follow.follower_id == user_id, Follow.created_at, offset, limit
        )

    async def list_followers(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        return await self._page(
            Follow, Follow.follower_id, Follow.following_id == user_id, Follow.created_at, offset, limit
        )

    async def list_blocked(
        self, user_id: uuid.UUID, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[uuid.UUID], int]:
        return await self._page(
            Block, Block.blocked_id, Block.blocker_id == user_id, Block.created_at, offset, limit
        )
