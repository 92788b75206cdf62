"""
Transaction nonce sequencing for the house signing accounts.

Each signer owns a NonceSequencer that hands out strictly increasing nonces
under an asyncio lock. The local counter is refreshed from the chain's pending
transaction count every `refresh_seconds`, and discarded on a nonce conflict so
the next submission re-derives it.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from erps.errors import ChainError

logger = logging.getLogger(__name__)

NonceFetcher = Callable[[str], Awaitable[int]]


class NonceSequencer:
    def __init__(
        self,
        address: str,
        fetch_nonce: NonceFetcher,
        refresh_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.address = address
        self._fetch_nonce = fetch_nonce
        self.refresh_seconds = refresh_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._next: Optional[int] = None
        self._last_refresh = 0.0

    @property
    def current(self) -> Optional[int]:
        return self._next

    async def next_nonce(self) -> int:
        async with self._lock:
            now = self._clock()
            if self._next is None or now - self._last_refresh > self.refresh_seconds:
                try:
                    chain_nonce = await self._fetch_nonce(self.address)
                    # Never hand out a nonce below one already issued locally
                    if self._next is None or chain_nonce > self._next:
                        self._next = chain_nonce
                    self._last_refresh = now
                    logger.debug(f"Refreshed nonce for {self.address}: {self._next}")
                except ChainError as e:
                    if self._next is None:
                        raise ChainError(f"Failed to get initial nonce for {self.address}: {e}") from e
                    logger.warning(f"⚠️  Failed to refresh nonce for {self.address}, using local {self._next}: {e}")
            nonce = self._next
            self._next += 1
            return nonce

    async def invalidate(self):
        async with self._lock:
            self._next = None
            self._last_refresh = 0.0
        logger.info(f"🔄 Nonce state reset for {self.address}")


class HouseSigner:
    """A house signing identity with its own nonce sequence"""

    def __init__(self, address: str, sequencer: NonceSequencer):
        self.address = address
        self.sequencer = sequencer

    def __repr__(self) -> str:
        return f"HouseSigner({self.address})"


class SignerPool:
    """Round-robin over the house signers"""

    def __init__(
        self,
        addresses: List[str],
        fetch_nonce: NonceFetcher,
        refresh_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not addresses:
            raise ValueError("SignerPool needs at least one signer address")
        self.signers = [
            HouseSigner(address, NonceSequencer(address, fetch_nonce, refresh_seconds, clock))
            for address in addresses
        ]
        self._index = 0

    def next_signer(self) -> HouseSigner:
        signer = self.signers[self._index]
        self._index = (self._index + 1) % len(self.signers)
        return signer
