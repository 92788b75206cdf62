"""
Processing-state cache.

GameStateCache is the key/value collaborator (whole JSON records with a TTL).
GameProcessingCache layers the "game:{id}" processing record on top of it: it
is only a hint for the orchestrator, the chain stays authoritative.
"""
import asyncio
import json
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from erps.model import GameProcessingState, GameStep, ProcessingStatus

logger = logging.getLogger(__name__)


class GameStateCache(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def set(self, key: str, value: dict, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    def close(self):
        """Releases the backing store"""


class InMemoryGameCache(GameStateCache):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[dict]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: dict, ttl_seconds: float) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, json.dumps(value))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class SqliteGameCache(GameStateCache):
    """Cache persisted in SQLite so in-flight games survive a restart"""

    def __init__(self, db_path: str = "house_cache.db", clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self._clock = clock
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = asyncio.Lock()
        self._init_tables()

    def _init_tables(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS game_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_game_state_expiry
            ON game_state(expires_at)
        """)
        self.conn.commit()

    async def get(self, key: str) -> Optional[dict]:
        async with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value, expires_at FROM game_state WHERE key = ?", (key,))
            row = cursor.fetchone()
            if row is None:
                return None
            value, expires_at = row
            if self._clock() >= expires_at:
                cursor.execute("DELETE FROM game_state WHERE key = ?", (key,))
                self.conn.commit()
                return None
            return json.loads(value)

    async def set(self, key: str, value: dict, ttl_seconds: float) -> None:
        async with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO game_state (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), self._clock() + ttl_seconds),
            )
            self.conn.commit()

    async def delete(self, key: str) -> None:
        async with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM game_state WHERE key = ?", (key,))
            self.conn.commit()

    def purge_expired(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM game_state WHERE expires_at <= ?", (self._clock(),))
        self.conn.commit()
        return cursor.rowcount

    def close(self):
        self.conn.close()


def game_key(game_id: int) -> str:
    return f"game:{game_id}"


class GameProcessingCache:
    def __init__(
        self,
        store: GameStateCache,
        ttl_seconds: float = 300.0,
        stale_after_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock

    async def get_state(self, game_id: int) -> Optional[GameProcessingState]:
        data = await self.store.get(game_key(game_id))
        if data is None:
            return None
        return GameProcessingState(**data)

    async def _save(self, game_id: int, state: GameProcessingState):
        state.timestamp = self._clock()
        await self.store.set(game_key(game_id), state.model_dump(mode="json"), self.ttl_seconds)

    async def get_processing_status(self, game_id: int) -> ProcessingStatus:
        """Returns the cached record, evicting in-flight records older than stale_after_seconds"""
        state = await self.get_state(game_id)
        if state is None:
            return ProcessingStatus(is_processed=False)
        if state.status == "processing" and state.waiting_for_confirmation and state.tx_hash:
            # A broadcast transaction is resolved by its receipt; only the store TTL drops it
            return ProcessingStatus(is_processed=True, state=state)
        if state.status == "processing" and self._clock() - state.timestamp > self.stale_after_seconds:
            logger.warning(f"⚠️  Stale processing state for game {game_id} at step {state.step.value}, evicting")
            await self.remove(game_id)
            return ProcessingStatus(is_processed=False)
        return ProcessingStatus(is_processed=True, state=state)

    async def update_step(
        self,
        game_id: int,
        step: GameStep,
        tx_hash: Optional[str] = None,
        waiting_for_confirmation: bool = True,
    ) -> GameProcessingState:
        state = await self.get_state(game_id) or GameProcessingState()
        state.status = "processing"
        state.step = step
        state.tx_hash = tx_hash
        state.waiting_for_confirmation = waiting_for_confirmation
        await self._save(game_id, state)
        return state

    async def mark_waiting_for_join(self, game_id: int, tx_hash: str) -> GameProcessingState:
        state = await self.get_state(game_id) or GameProcessingState()
        state.status = "processing"
        state.step = GameStep.JOINING
        state.tx_hash = tx_hash
        state.waiting_for_confirmation = True
        state.retry_count += 1
        await self._save(game_id, state)
        return state

    async def mark_step_submitted(self, game_id: int, next_step: GameStep, tx_hash: str) -> GameProcessingState:
        """Records a broadcast transaction; next_step is the step it leads to"""
        return await self.update_step(game_id, next_step, tx_hash, waiting_for_confirmation=True)

    async def mark_completed(self, game_id: int, result: int, tx_hash: Optional[str] = None) -> GameProcessingState:
        state = await self.get_state(game_id) or GameProcessingState()
        state.status = "completed"
        state.step = GameStep.DONE
        state.result = result
        state.waiting_for_confirmation = False
        if tx_hash is not None:
            state.tx_hash = tx_hash
        await self._save(game_id, state)
        logger.info(f"✅ Game {game_id} cached as completed with result {result}")
        return state

    async def remove(self, game_id: int):
        await self.store.delete(game_key(game_id))
