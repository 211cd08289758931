"""
Canonical unordered pairs and per-pair mutual exclusion.

Every mutation touching the edges or the conversation between two users runs
under the lock of their canonical pair, so {a, b} and {b, a} serialize
against each other.
"""
from __future__ import annotations

import asyncio
import hashlib
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

Pair = tuple[uuid.UUID, uuid.UUID]


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> Pair:
    """Order-independent key: the smaller UUID always comes first."""
    return (a, b) if a <= b else (b, a)


def pair_lock_key(a: uuid.UUID, b: uuid.UUID) -> int:
    """Signed 64-bit key for pg_advisory_xact_lock derived from the canonical pair."""
    low, high = canonical_pair(a, b)
    digest = hashlib.blake2b(low.bytes + high.bytes, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class PairLocks:
    """asyncio.Lock per canonical pair, dropped again once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[Pair, asyncio.Lock] = {}
        self._users: dict[Pair, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, a: uuid.UUID, b: uuid.UUID) -> AsyncIterator[Pair]:
        key = canonical_pair(a, b)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield key
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
