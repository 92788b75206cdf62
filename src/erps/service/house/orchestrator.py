"""
House orchestration.

Drives a game through joining -> submitting_moves -> computing_difference ->
finalizing -> done. Every call re-derives where the game stands from the chain
read; the processing cache only memoizes completed results, marks steps that
are in flight and remembers transaction hashes that are still unconfirmed, so
a retried call resumes instead of resubmitting.

Public operations never raise: failures come back as result models with
success=False, an error message and an error code.
"""
import asyncio
import logging
from typing import Optional

from erps.config import Settings
from erps.errors import (
    ChainError,
    ConfirmationTimeoutError,
    ContractStateError,
    GameError,
    TransactionError,
    handle_game_error,
)
from erps.model import (
    CreateGameResult,
    FinishedCheck,
    GameInfo,
    GameProcessingState,
    GameResultResponse,
    GameStep,
    Move,
    OptimisticResult,
    PlayHouseMoveResult,
    ResolveGameResult,
    TransactionStatus,
    map_step_to_status,
)
from erps.service.crypto.resolution import HomomorphicResolver
from erps.service.house.cache import GameProcessingCache
from erps.service.house.chain import ChainClient, is_tx_hash
from erps.service.house.moves import generate_house_move
from erps.service.house.retry import retry
from erps.service.house.transactions import TransactionExecutor

logger = logging.getLogger(__name__)

# Contract functions per step; finalizing carries the decrypted difference as a second argument
STEP_FUNCTIONS = {
    GameStep.SUBMITTING_MOVES: "submitMoves",
    GameStep.COMPUTING_DIFFERENCE: "computeDifference",
    GameStep.FINALIZING: "finalizeGame",
}


def derive_step(game: GameInfo) -> GameStep:
    """Next step required by the on-chain state"""
    if game.finished:
        return GameStep.DONE
    if game.has_difference:
        return GameStep.FINALIZING
    if game.both_committed:
        return GameStep.COMPUTING_DIFFERENCE
    if game.joined:
        return GameStep.SUBMITTING_MOVES
    return GameStep.JOINING


def validate_game_id(game_id) -> int:
    if isinstance(game_id, bool) or not isinstance(game_id, int) or game_id < 0:
        raise GameError(f"Invalid game ID: {game_id!r}", "INVALID_GAME_ID", False)
    return game_id


class HouseOrchestrator:
    def __init__(
        self,
        chain: ChainClient,
        cache: GameProcessingCache,
        executor: TransactionExecutor,
        resolver: HomomorphicResolver,
        settings: Optional[Settings] = None,
        sleep=asyncio.sleep,
    ):
        self.chain = chain
        self.cache = cache
        self.executor = executor
        self.resolver = resolver
        self.settings = settings or Settings()
        self._sleep = sleep

    # ========================================================================
    # Chain reads
    # ========================================================================

    async def get_game_state(self, game_id: int) -> GameInfo:
        return await retry(
            lambda: self.chain.get_game_info(game_id),
            retries=self.settings.read_retries,
            backoff_seconds=self.settings.backoff_seconds,
            on_retry=lambda e, n: logger.info(f"Retry attempt {n} for reading game {game_id}: {e}"),
            sleep=self._sleep,
        )

    async def quick_check_game_finished(self, game_id: int) -> FinishedCheck:
        try:
            game = await self.chain.get_game_info(game_id)
        except ChainError as e:
            logger.warning(f"⚠️  Quick check for game {game_id} failed: {e}")
            return FinishedCheck(exists=False, finished=False)
        result = game.revealed_diff % 3 if game.finished and game.revealed_diff is not None else None
        return FinishedCheck(exists=game.exists, finished=game.finished, result=result)

    async def get_game_result(self, game_id: int) -> GameResultResponse:
        """Cached result first, chain second"""
        try:
            validate_game_id(game_id)
            status = await self.cache.get_processing_status(game_id)
            if status.is_processed and status.state.status == "completed" and status.state.result is not None:
                return GameResultResponse(success=True, result=status.state.result, finished=True)

            game = await self.get_game_state(game_id)
            if game.finished and game.revealed_diff is not None:
                result = game.revealed_diff % 3
                await self.cache.mark_completed(game_id, result)
                return GameResultResponse(success=True, result=result, finished=True)
            return GameResultResponse(success=True, finished=False)
        except GameError as e:
            logger.error(f"❌ Failed to get result for game {game_id}: {e}")
            return GameResultResponse(success=False, error=e.message)

    async def check_transaction_status(self, tx_hash: str) -> TransactionStatus:
        if not is_tx_hash(tx_hash):
            return TransactionStatus(confirmed=False, error="Invalid transaction hash")
        try:
            receipt = await self.chain.wait_for_receipt(tx_hash, self.settings.confirmation_timeout_seconds)
        except ConfirmationTimeoutError:
            return TransactionStatus(confirmed=False, error="Transaction not confirmed yet")
        except ChainError as e:
            return TransactionStatus(confirmed=False, error=e.message)
        if not receipt.succeeded:
            return TransactionStatus(confirmed=False, error="Transaction reverted")
        return TransactionStatus(confirmed=True)

    # ========================================================================
    # House actions
    # ========================================================================

    async def play_house_move(self, game_id: int, bet_amount: Optional[int] = None) -> PlayHouseMoveResult:
        """Joins game_id as player B with a freshly drawn, encrypted move"""
        try:
            validate_game_id(game_id)
            bet = bet_amount if bet_amount and bet_amount > 0 else self.settings.default_bet_wei
            logger.info(f"🎮 Starting house move for game {game_id} with bet {bet}")

            try:
                game = await self.get_game_state(game_id)
            except ChainError as e:
                raise ChainError(f"Failed to fetch game data: Game ID {game_id} may not exist") from e

            if not game.exists:
                raise GameError(f"Game ID {game_id} has not been properly created", "INVALID_GAME", False)
            if game.joined:
                raise GameError(
                    f"Game ID {game_id} has already been joined by another player ({game.player_b})",
                    "ALREADY_JOINED",
                    False,
                )
            if game.finished:
                raise GameError(f"Game ID {game_id} is already finished", "GAME_FINISHED", False)
            if game.both_committed:
                raise GameError(f"Game ID {game_id} has already submitted moves", "ALREADY_COMMITTED", False)

            move = generate_house_move()
            encrypted_move = self.resolver.encrypt_move(move)

            tx_hash = await self.executor.execute(
                "joinGame",
                [game_id, encrypted_move],
                value=bet,
                retries=self.settings.write_retries,
                log_prefix=f"JoinGame for game {game_id}",
            )
            await self.cache.mark_waiting_for_join(game_id, tx_hash)
            logger.info(f"✅ House move for game {game_id} sent with tx {tx_hash}")
            return PlayHouseMoveResult(success=True, hash=tx_hash, move=move)
        except Exception as e:
            error = self._report(f"House move for game {game_id} failed", e)
            return PlayHouseMoveResult(success=False, error=error.message, error_code=error.code)

    async def create_game(self, move: Move, bet_amount: Optional[int] = None) -> CreateGameResult:
        try:
            bet = bet_amount if bet_amount and bet_amount > 0 else self.settings.default_bet_wei
            encrypted_move = self.resolver.encrypt_move(move)
            tx_hash = await self.executor.execute(
                "createGame",
                [encrypted_move],
                value=bet,
                retries=self.settings.write_retries,
                log_prefix="CreateGame",
            )
            return CreateGameResult(success=True, hash=tx_hash, encrypted_move=encrypted_move)
        except Exception as e:
            error = self._report("Create game failed", e)
            return CreateGameResult(success=False, error=error.message, error_code=error.code)

    async def compute_optimistic_result(self, game_id: int, game: Optional[GameInfo] = None) -> OptimisticResult:
        """Decrypts the difference of the committed moves ahead of finalization"""
        try:
            if not self.resolver.can_decrypt:
                return OptimisticResult(success=False, error="Resolver has no private key")
            game = game or await self.get_game_state(game_id)
            if not (game.joined and game.has_both_moves):
                return OptimisticResult(success=False, error="Both moves are not committed yet")
            if game.has_difference:
                diff = self.resolver.decrypt_difference(game.difference_cipher)
            else:
                diff = self.resolver.decrypt_difference(
                    self.resolver.compute_difference(game.enc_choice_a, game.enc_choice_b)
                )
            logger.info(f"🔮 Optimistic result for game {game_id}: {diff}")
            return OptimisticResult(success=True, calculated_diff=diff)
        except GameError as e:
            logger.warning(f"⚠️  Could not precompute result for game {game_id}: {e}")
            return OptimisticResult(success=False, error=e.message)

    # ========================================================================
    # Resolution state machine
    # ========================================================================

    async def resolve_game(self, game_id: int) -> ResolveGameResult:
        try:
            validate_game_id(game_id)
            return await self._resolve(game_id)
        except Exception as e:
            error = self._report(f"Resolving game {game_id} failed", e)
            if isinstance(game_id, int):
                await self.cache.remove(game_id)
            return ResolveGameResult(success=False, error=error.message, error_code=error.code)

    async def _resolve(self, game_id: int) -> ResolveGameResult:
        logger.info(f"🎮 Resolving game {game_id}")
        status = await self.cache.get_processing_status(game_id)
        cached: Optional[GameProcessingState] = status.state if status.is_processed else None

        if cached is not None and cached.status == "completed" and cached.result is not None:
            logger.info(f"Using cached result for game {game_id}: {cached.result}")
            return ResolveGameResult(
                success=True,
                status="completed",
                pending_result=cached.result,
                tx_hash=cached.tx_hash if is_tx_hash(cached.tx_hash) else None,
            )

        game = await self.get_game_state(game_id)
        if not game.exists:
            raise GameError(f"Game ID {game_id} does not exist", "INVALID_GAME", False)

        pending_result: Optional[int] = None
        last_tx: Optional[str] = cached.tx_hash if cached is not None else None

        # Every step moves the game forward at least once, so this bounds the loop
        for _ in range(2 * len(STEP_FUNCTIONS) + 2):
            step = derive_step(game)

            if step is GameStep.DONE:
                return await self._completed(game_id, game, pending_result, last_tx)

            if pending_result is None and game.has_both_moves and self.resolver.can_decrypt:
                pending_result = (await self.compute_optimistic_result(game_id, game)).calculated_diff

            if (
                cached is not None
                and cached.status == "processing"
                and cached.waiting_for_confirmation
                and cached.step.order >= step.order
            ):
                if not cached.tx_hash:
                    logger.info(f"Game {game_id} is already being processed at step {cached.step.value}")
                    return self._snapshot(step, None, pending_result, "Game is being processed, continue polling")
                receipt_error = await self._await_confirmation(cached.tx_hash)
                if receipt_error is not None:
                    return self._snapshot(step, cached.tx_hash, pending_result, receipt_error)
                cached = await self.cache.update_step(game_id, cached.step, cached.tx_hash, waiting_for_confirmation=False)
                last_tx = cached.tx_hash
                game = await self.get_game_state(game_id)
                continue

            if step is GameStep.JOINING:
                return self._snapshot(step, None, pending_result, "Waiting for player B to join")

            cached = await self.cache.update_step(game_id, step, None, waiting_for_confirmation=True)
            args = [game_id]
            if step is GameStep.FINALIZING:
                diff = self.resolver.decrypt_difference(game.difference_cipher)
                pending_result = diff
                args.append(diff)

            function_name = STEP_FUNCTIONS[step]
            try:
                tx_hash = await self.executor.execute(
                    function_name,
                    args,
                    retries=self.settings.write_retries,
                    log_prefix=f"{function_name}:{game_id}",
                )
            except ContractStateError as e:
                logger.info(f"Step {step.value} already done for game {game_id}: {e}")
                cached = await self.cache.update_step(game_id, step.next(), None, waiting_for_confirmation=False)
                game = await self.get_game_state(game_id)
                continue

            cached = await self.cache.mark_step_submitted(game_id, step.next(), tx_hash)
            last_tx = tx_hash
            receipt_error = await self._await_confirmation(tx_hash)
            if receipt_error is not None:
                return self._snapshot(step, tx_hash, pending_result, receipt_error)

            if step is GameStep.FINALIZING:
                await self.cache.mark_completed(game_id, pending_result, tx_hash)
                logger.info(f"✅ Game {game_id} finalized with result {pending_result}")
                return ResolveGameResult(success=True, status="completed", tx_hash=tx_hash, pending_result=pending_result)

            cached = await self.cache.update_step(game_id, step.next(), tx_hash, waiting_for_confirmation=False)
            game = await self.get_game_state(game_id)

        return self._snapshot(derive_step(game), last_tx, pending_result, "Chain state not yet updated, continue polling")

    async def _await_confirmation(self, tx_hash: str) -> Optional[str]:
        """None once confirmed; the pending message on timeout. Reverts raise."""
        try:
            receipt = await self.chain.wait_for_receipt(tx_hash, self.settings.confirmation_timeout_seconds)
        except ConfirmationTimeoutError:
            logger.info(f"⏳ Transaction {tx_hash} still pending")
            return "Transaction pending confirmation, continue polling"
        if not receipt.succeeded:
            raise TransactionError(f"Transaction {tx_hash} reverted", tx_hash)
        return None

    async def _completed(self, game_id, game: GameInfo, pending_result, tx_hash) -> ResolveGameResult:
        result = game.revealed_diff % 3 if game.revealed_diff is not None else pending_result
        if result is not None:
            await self.cache.mark_completed(game_id, result, tx_hash if is_tx_hash(tx_hash) else None)
        else:
            await self.cache.remove(game_id)
        logger.info(f"Game {game_id} is already finalized on chain with result: {result}")
        return ResolveGameResult(
            success=True,
            status="completed",
            pending_result=result,
            tx_hash=tx_hash if is_tx_hash(tx_hash) else None,
        )

    def _snapshot(self, step: GameStep, tx_hash, pending_result, info: str) -> ResolveGameResult:
        return ResolveGameResult(
            success=True,
            status=map_step_to_status(step),
            tx_hash=tx_hash,
            pending_result=pending_result,
            info=info,
        )

    async def aclose(self):
        """Closes the chain client and the cache store"""
        await self.chain.aclose()
        self.cache.store.close()
        logger.info("House orchestrator closed")

    def _report(self, context: str, error: BaseException) -> GameError:
        game_error = handle_game_error(error)
        if isinstance(error, GameError):
            logger.error(f"❌ {context}: [{game_error.code}] {game_error.message}")
        else:
            logger.error(f"❌ {context}: {error}", exc_info=True)
        return game_error
