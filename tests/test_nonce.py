from __future__ import annotations

import asyncio

import pytest

from erps.errors import ChainError, TransientChainError
from erps.service.house.nonce import NonceSequencer, SignerPool


class NonceSource:
    def __init__(self, value: int = 5):
        self.value = value
        self.calls = 0
        self.error = None

    async def __call__(self, address: str) -> int:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


def test_sequential_nonces_from_single_fetch():
    source = NonceSource(5)
    sequencer = NonceSequencer("0xb1", source, refresh_seconds=10, clock=lambda: 100.0)

    async def scenario():
        return [await sequencer.next_nonce() for _ in range(3)]

    assert asyncio.run(scenario()) == [5, 6, 7]
    assert source.calls == 1


def test_concurrent_callers_get_distinct_nonces():
    sequencer = NonceSequencer("0xb1", NonceSource(0))

    async def scenario():
        return await asyncio.gather(*(sequencer.next_nonce() for _ in range(20)))

    assert sorted(asyncio.run(scenario())) == list(range(20))


def test_refresh_never_goes_backwards():
    now = [0.0]
    source = NonceSource(5)
    sequencer = NonceSequencer("0xb1", source, refresh_seconds=10, clock=lambda: now[0])

    async def scenario():
        await sequencer.next_nonce()
        await sequencer.next_nonce()
        now[0] = 20.0
        # Pending count lags behind what was already issued
        stale = await sequencer.next_nonce()
        source.value = 12
        now[0] = 40.0
        jumped = await sequencer.next_nonce()
        return stale, jumped

    assert asyncio.run(scenario()) == (7, 12)


def test_invalidate_refetches():
    source = NonceSource(3)
    sequencer = NonceSequencer("0xb1", source, clock=lambda: 0.0)

    async def scenario():
        await sequencer.next_nonce()
        await sequencer.next_nonce()
        await sequencer.invalidate()
        return await sequencer.next_nonce()

    assert asyncio.run(scenario()) == 3
    assert source.calls == 2


def test_refresh_failure_keeps_local_nonce():
    now = [0.0]
    source = NonceSource(1)
    sequencer = NonceSequencer("0xb1", source, refresh_seconds=1, clock=lambda: now[0])

    async def scenario():
        await sequencer.next_nonce()
        source.error = TransientChainError("connection refused")
        now[0] = 5.0
        return await sequencer.next_nonce()

    assert asyncio.run(scenario()) == 2


def test_initial_fetch_failure_raises():
    source = NonceSource()
    source.error = TransientChainError("connection refused")
    sequencer = NonceSequencer("0xb1", source)
    with pytest.raises(ChainError):
        asyncio.run(sequencer.next_nonce())


def test_signer_pool_round_robin():
    pool = SignerPool(["0xb1", "0xb2", "0xb3"], NonceSource())
    assert [pool.next_signer().address for _ in range(4)] == ["0xb1", "0xb2", "0xb3", "0xb1"]
    assert pool.signers[0].sequencer is not pool.signers[1].sequencer


def test_signer_pool_requires_signers():
    with pytest.raises(ValueError):
        SignerPool([], NonceSource())
