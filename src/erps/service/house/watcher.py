"""
Contract event watcher that lets the house play without a client driving it.

GameCreated -> join as player B; GameJoined / MovesSubmitted / DifferenceComputed
-> push the game through resolve_game.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from erps.errors import ChainError
from erps.model import ChainEvent
from erps.service.house.chain import ChainClient
from erps.service.house.orchestrator import HouseOrchestrator

logger = logging.getLogger(__name__)

RESOLVE_EVENTS = ("GameJoined", "MovesSubmitted", "DifferenceComputed")


class HouseWatcher:
    def __init__(
        self,
        chain: ChainClient,
        orchestrator: HouseOrchestrator,
        house_addresses: Iterable[str] = (),
        poll_interval: float = 2.0,
        from_block: int = 0,
    ):
        self.chain = chain
        self.orchestrator = orchestrator
        self.house_addresses = {address.lower() for address in house_addresses}
        self.poll_interval = poll_interval
        self.from_block = from_block
        # Events handled in blocks at or above from_block, keyed to their block
        self._seen: Dict[Tuple[str, int, Optional[str]], int] = {}

    async def poll_once(self) -> List[ChainEvent]:
        """Handles new events since the last poll and returns them.

        from_block only moves past a block once every event in it was handled,
        so an event whose handler raised is picked up again by the next poll.
        """
        events = sorted(await self.chain.get_events(self.from_block), key=lambda e: e.block_number)
        handled = []
        for event in events:
            key = (event.name, event.game_id, event.tx_hash)
            if event.block_number < self.from_block or key in self._seen:
                continue
            self.from_block = event.block_number
            await self._handle(event)
            self._seen[key] = event.block_number
            handled.append(event)
        if events:
            self.from_block = max(self.from_block, events[-1].block_number + 1)
        self._seen = {key: block for key, block in self._seen.items() if block >= self.from_block}
        return handled

    def _bet_amount(self, event: ChainEvent) -> Optional[int]:
        bet = event.data.get("bet_amount")
        if bet is None:
            return None
        try:
            return int(bet)
        except (TypeError, ValueError):
            logger.warning(f"⚠️  Unreadable bet amount {bet!r} for game {event.game_id}, using the default bet")
            return None

    async def _handle(self, event: ChainEvent):
        if event.name == "GameCreated":
            creator = str(event.data.get("player_a", "")).lower()
            if creator in self.house_addresses:
                logger.debug(f"Skipping house-created game {event.game_id}")
                return
            result = await self.orchestrator.play_house_move(event.game_id, self._bet_amount(event))
            if result.success:
                logger.info(f"🎮 Joined game {event.game_id} with tx {result.hash}")
            else:
                logger.warning(f"⚠️  Could not join game {event.game_id}: {result.error}")
        elif event.name in RESOLVE_EVENTS:
            result = await self.orchestrator.resolve_game(event.game_id)
            logger.info(f"Game {event.game_id} after {event.name}: status={result.status} success={result.success}")
        elif event.name == "GameResolved":
            logger.info(f"🏁 Game {event.game_id} resolved on chain")

    async def run(self, stop_event: asyncio.Event):
        logger.info(f"👀 Watching contract events from block {self.from_block}")
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except ChainError as e:
                logger.warning(f"⚠️  Event poll failed: {e}")
            except Exception as e:
                logger.error(f"❌ Event handling failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Event watcher stopped")
