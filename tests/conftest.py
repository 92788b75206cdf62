from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

import pytest

from erps.config import Settings
from erps.errors import ConfirmationTimeoutError, ContractStateError, classify_chain_error
from erps.model import ChainEvent, GameInfo, TransactionReceipt
from erps.service.crypto import elgamal, paillier
from erps.service.crypto.resolution import ElGamalResolver, PaillierResolver
from erps.service.house.cache import GameProcessingCache, InMemoryGameCache
from erps.service.house.chain import ChainClient
from erps.service.house.nonce import SignerPool
from erps.service.house.orchestrator import HouseOrchestrator
from erps.service.house.transactions import TransactionExecutor

PLAYER_A = "0x00000000000000000000000000000000000000aa"
HOUSE_1 = "0x00000000000000000000000000000000000000b1"
HOUSE_2 = "0x00000000000000000000000000000000000000b2"


async def no_sleep(_delay: float) -> None:
    return None


class FakeChain(ChainClient):
    """In-memory contract with the game's state rules, nonce checks and injectable failures"""

    def __init__(self, resolver):
        self.resolver = resolver
        self.games: Dict[int, GameInfo] = {}
        self.nonces: Dict[str, int] = {}
        self.sent: List[Dict[str, Any]] = []
        self.receipts: Dict[str, TransactionReceipt] = {}
        self.pending: set = set()
        self.events: List[ChainEvent] = []
        self.hold_receipts = False
        self.simulate_errors: Dict[str, List[Exception]] = {}
        self.read_errors: List[Exception] = []
        self.nonce_reads = 0
        self._hashes = itertools.count(1)
        self._block = 0

    # --- test helpers ---

    def seed_game(self, enc_choice_a: str, player_a: str = PLAYER_A, bet_amount: int = 10 ** 16) -> int:
        game_id = len(self.games)
        self.games[game_id] = GameInfo(
            game_id=game_id, player_a=player_a, enc_choice_a=enc_choice_a, bet_amount=bet_amount
        )
        self._emit("GameCreated", game_id, {"player_a": player_a, "bet_amount": bet_amount})
        return game_id

    def fail_simulation(self, function_name: str, *errors: Exception):
        self.simulate_errors.setdefault(function_name, []).extend(errors)

    def confirm_all(self):
        for tx_hash in list(self.pending):
            self.receipts[tx_hash] = TransactionReceipt(tx_hash=tx_hash, status="success", block_number=self._block)
        self.pending.clear()

    def calls(self, function_name: str) -> List[Dict[str, Any]]:
        return [request for request in self.sent if request["function"] == function_name]

    def _emit(self, name: str, game_id: int, data: Optional[dict] = None, tx_hash: Optional[str] = None):
        self._block += 1
        self.events.append(ChainEvent(name=name, game_id=game_id, block_number=self._block, tx_hash=tx_hash, data=data or {}))

    # --- ChainClient ---

    async def get_game_info(self, game_id: int) -> GameInfo:
        if self.read_errors:
            raise self.read_errors.pop(0)
        game = self.games.get(game_id)
        return game.model_copy() if game is not None else GameInfo(game_id=game_id)

    async def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        self.nonce_reads += 1
        return self.nonces.get(address, 0)

    async def simulate_contract(self, function_name, args, sender, nonce, value=None):
        queued = self.simulate_errors.get(function_name)
        if queued:
            raise queued.pop(0)
        expected = self.nonces.get(sender, 0)
        if nonce != expected:
            raise classify_chain_error(f"nonce too {'low' if nonce < expected else 'high'}: expected {expected}")
        self._check_state(function_name, args)
        return {"function": function_name, "args": list(args), "from": sender, "nonce": nonce, "value": value, "gas": 100000}

    def _check_state(self, function_name, args):
        if function_name == "createGame":
            return
        game = self.games.get(args[0])
        if game is None:
            raise classify_chain_error("execution reverted: Game does not exist")
        if function_name == "joinGame" and game.joined:
            raise classify_chain_error("execution reverted: Game already joined")
        if function_name == "submitMoves" and game.both_committed:
            raise ContractStateError("Moves already submitted")
        if function_name == "computeDifference":
            if game.has_difference:
                raise ContractStateError("Difference already computed")
            if not game.both_committed:
                raise classify_chain_error("execution reverted: Moves not submitted")
        if function_name == "finalizeGame":
            if game.finished:
                raise ContractStateError("Game already finalized")
            if not game.has_difference:
                raise classify_chain_error("execution reverted: Difference not computed")

    async def send_transaction(self, request: Dict[str, Any]) -> str:
        sender = request["from"]
        self.nonces[sender] = self.nonces.get(sender, 0) + 1
        tx_hash = "0x%064x" % next(self._hashes)
        self.sent.append(dict(request, hash=tx_hash))
        self._apply(request["function"], request["args"], sender, request.get("value"), tx_hash)
        if self.hold_receipts:
            self.pending.add(tx_hash)
        else:
            self.receipts[tx_hash] = TransactionReceipt(tx_hash=tx_hash, status="success", block_number=self._block)
        return tx_hash

    def _apply(self, function_name, args, sender, value, tx_hash):
        if function_name == "createGame":
            game_id = len(self.games)
            self.games[game_id] = GameInfo(game_id=game_id, player_a=sender, enc_choice_a=args[0], bet_amount=value or 0)
            self._emit("GameCreated", game_id, {"player_a": sender, "bet_amount": value}, tx_hash)
            return
        game = self.games[args[0]]
        if function_name == "joinGame":
            game.player_b = sender
            game.enc_choice_b = args[1]
            self._emit("GameJoined", game.game_id, {"player_b": sender}, tx_hash)
        elif function_name == "submitMoves":
            game.both_committed = True
            self._emit("MovesSubmitted", game.game_id, tx_hash=tx_hash)
        elif function_name == "computeDifference":
            game.difference_cipher = self.resolver.compute_difference(game.enc_choice_a, game.enc_choice_b)
            self._emit("DifferenceComputed", game.game_id, tx_hash=tx_hash)
        elif function_name == "finalizeGame":
            game.finished = True
            game.revealed_diff = args[1]
            self._emit("GameResolved", game.game_id, {"diff": args[1]}, tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        receipt = self.receipts.get(tx_hash)
        if receipt is None:
            raise ConfirmationTimeoutError(f"Transaction {tx_hash} still pending after {timeout}s", tx_hash)
        return receipt

    async def get_events(self, from_block: int = 0) -> List[ChainEvent]:
        return [event for event in self.events if event.block_number >= from_block]


@pytest.fixture(scope="session")
def paillier_keys():
    # Small modulus keeps key generation fast; the arithmetic is identical at 2048 bits
    return paillier.generate_keypair(512)


@pytest.fixture(scope="session")
def elgamal_keys():
    return elgamal.generate_keypair()


@pytest.fixture
def paillier_resolver(paillier_keys) -> PaillierResolver:
    public_key, private_key = paillier_keys
    return PaillierResolver(public_key, private_key)


@pytest.fixture
def elgamal_resolver(elgamal_keys) -> ElGamalResolver:
    public_key, private_key = elgamal_keys
    return ElGamalResolver(public_key, private_key)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        house_signers=[HOUSE_1, HOUSE_2],
        backoff_seconds=0.0,
        confirmation_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_chain(paillier_resolver) -> FakeChain:
    return FakeChain(paillier_resolver)


def build_orchestrator(chain: FakeChain, resolver, settings: Settings, clock=None) -> HouseOrchestrator:
    store = InMemoryGameCache(clock) if clock else InMemoryGameCache()
    cache_kwargs = {"clock": clock} if clock else {}
    cache = GameProcessingCache(store, settings.cache_ttl_seconds, settings.stale_after_seconds, **cache_kwargs)
    signers = SignerPool(settings.house_signers, chain.get_transaction_count, settings.nonce_refresh_seconds)
    executor = TransactionExecutor(chain, signers, settings.write_retries, settings.backoff_seconds, sleep=no_sleep)
    return HouseOrchestrator(chain, cache, executor, resolver, settings, sleep=no_sleep)


@pytest.fixture
def house(fake_chain, paillier_resolver, settings) -> HouseOrchestrator:
    return build_orchestrator(fake_chain, paillier_resolver, settings)
