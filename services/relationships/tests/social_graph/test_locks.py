import asyncio
import uuid

import pytest

from app.social_graph.locks import PairLocks, canonical_pair, pair_lock_key


def test_canonical_pair_is_order_independent() -> None:
    a, b = uuid.uuid4(), uuid.uuid4()
    assert canonical_pair(a, b) == canonical_pair(b, a)
    low, high = canonical_pair(a, b)
    assert low <= high


def test_pair_lock_key_is_symmetric_signed_64_bit() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    key = pair_lock_key(a, b)
    assert key == pair_lock_key(b, a)
    assert -(2**63) <= key < 2**63
    assert key != pair_lock_key(a, c)


@pytest.mark.asyncio
async def test_reversed_pairs_share_one_lock() -> None:
    locks = PairLocks()
    a, b = uuid.uuid4(), uuid.uuid4()
    order: list[str] = []
    first_inside = asyncio.Event()

    async def first() -> None:
        async with locks.hold(a, b):
            order.append("first-in")
            first_inside.set()
            await asyncio.sleep(0.01)
            order.append("first-out")

    async def second() -> None:
        await first_inside.wait()
        async with locks.hold(b, a):
            order.append("second-in")

    await asyncio.gather(first(), second())
    assert order == ["first-in", "first-out", "second-in"]


@pytest.mark.asyncio
async def test_locks_are_released_after_use() -> None:
    locks = PairLocks()
    a, b = uuid.uuid4(), uuid.uuid4()
    async with locks.hold(a, b) as key:
        assert key == canonical_pair(a, b)
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_when_body_raises() -> None:
    locks = PairLocks()
    a, b = uuid.uuid4(), uuid.uuid4()
    with pytest.raises(ValueError):
        async with locks.hold(a, b):
            raise ValueError("boom")
    assert len(locks) == 0
    async with locks.hold(a, b):
        pass
