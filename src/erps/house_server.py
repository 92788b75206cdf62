"""
House Service - the automated player B for encrypted rock-paper-scissors

Joins games with an encrypted random move and drives them to finalization.
Exposes the orchestrator over HTTP for the game frontend and, optionally, runs
the contract event watcher in the background.
"""
import argparse
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request

from erps.config import Settings, build_resolver, load_settings
from erps.errors import RateLimitExceededError
from erps.model import (
    FinishedCheck,
    GameResultResponse,
    HouseMoveRequest,
    PlayHouseMoveResult,
    ResolveGameResult,
    TransactionStatus,
)
from erps.service.crypto.resolution import HomomorphicResolver
from erps.service.house.cache import GameProcessingCache, InMemoryGameCache, SqliteGameCache
from erps.service.house.chain import HttpChainGateway
from erps.service.house.nonce import SignerPool
from erps.service.house.orchestrator import HouseOrchestrator
from erps.service.house.rate_limiter import RateLimiter
from erps.service.house.transactions import TransactionExecutor
from erps.service.house.watcher import HouseWatcher

logger = logging.getLogger(__name__)


# ============================================================================
# App factory
# ============================================================================

def create_app(
    orchestrator: HouseOrchestrator,
    resolver: HomomorphicResolver,
    rate_limiter: Optional[RateLimiter] = None,
    watcher: Optional[HouseWatcher] = None,
) -> FastAPI:
    rate_limiter = rate_limiter or RateLimiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        task = None
        if watcher is not None:
            task = asyncio.create_task(watcher.run(stop_event))
        yield
        stop_event.set()
        if task is not None:
            await task
        await orchestrator.aclose()

    app = FastAPI(title="Encrypted RPS House", lifespan=lifespan)

    def limit(request: Request):
        client = request.client.host if request.client else "unknown"
        try:
            rate_limiter.check(client)
        except RateLimitExceededError as e:
            logger.warning(f"⚠️  Rate limit hit for {client}")
            raise HTTPException(status_code=429, detail=e.message)

    @app.get("/health")
    async def health():
        return {"status": "ok", "cryptosystem": resolver.name, "can_decrypt": resolver.can_decrypt}

    @app.get("/public_key")
    async def public_key():
        """Public encryption parameters players use to encrypt their moves"""
        return resolver.public_parameters()

    @app.post("/games/{game_id}/house_move", response_model=PlayHouseMoveResult)
    async def house_move(game_id: int, body: HouseMoveRequest, request: Request):
        limit(request)
        try:
            return await orchestrator.play_house_move(game_id, body.bet_amount)
        except Exception as e:
            logger.error(f"❌ House move error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/games/{game_id}/resolve", response_model=ResolveGameResult)
    async def resolve(game_id: int, request: Request):
        limit(request)
        try:
            return await orchestrator.resolve_game(game_id)
        except Exception as e:
            logger.error(f"❌ Resolve error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/games/{game_id}/result", response_model=GameResultResponse)
    async def game_result(game_id: int):
        try:
            return await orchestrator.get_game_result(game_id)
        except Exception as e:
            logger.error(f"❌ Result lookup error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/games/{game_id}/status", response_model=FinishedCheck)
    async def game_status(game_id: int):
        try:
            return await orchestrator.quick_check_game_finished(game_id)
        except Exception as e:
            logger.error(f"❌ Status check error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/transactions/{tx_hash}", response_model=TransactionStatus)
    async def transaction_status(tx_hash: str):
        try:
            return await orchestrator.check_transaction_status(tx_hash)
        except Exception as e:
            logger.error(f"❌ Transaction status error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return app


def build_house(settings: Settings):
    """Wires the orchestrator and watcher against the configured chain gateway"""
    if not settings.house_signers:
        raise ValueError("HOUSE_SIGNERS is not set")
    resolver = build_resolver(settings)
    if not resolver.can_decrypt:
        logger.warning("⚠️  No private key configured, games cannot be finalized")

    gateway = HttpChainGateway(settings.chain_gateway_url, settings.contract_address)
    store = SqliteGameCache(settings.cache_path) if settings.cache_path else InMemoryGameCache()
    cache = GameProcessingCache(store, settings.cache_ttl_seconds, settings.stale_after_seconds)
    signers = SignerPool(settings.house_signers, gateway.get_transaction_count, settings.nonce_refresh_seconds)
    executor = TransactionExecutor(gateway, signers, settings.write_retries, settings.backoff_seconds)
    orchestrator = HouseOrchestrator(gateway, cache, executor, resolver, settings)
    watcher = HouseWatcher(gateway, orchestrator, settings.house_signers)
    return orchestrator, resolver, watcher


# ============================================================================
# Logging Setup
# ============================================================================

def setup_logging(port: int):
    """Sets up file-based logging for the house service."""
    logs_dir = "logs"
    if not os.path.exists(logs_dir):
        os.makedirs(logs_dir)

    house_handler = logging.FileHandler(os.path.join(logs_dir, f"house_{port}.log"), mode='a')
    house_handler.setLevel(logging.INFO)
    house_handler.setFormatter(logging.Formatter('%(asctime)s | %(message)s', datefmt='%H:%M:%S'))

    debug_handler = logging.FileHandler(os.path.join(logs_dir, f"debug_{port}.log"), mode='a')
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(asctime)s | %(message)s', datefmt='%H:%M:%S'))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(house_handler)
    root_logger.addHandler(debug_handler)
    root_logger.addHandler(console_handler)

    for logger_name in ['uvicorn', 'uvicorn.access', 'uvicorn.error']:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = False
        uvicorn_logger.addHandler(debug_handler)
        uvicorn_logger.setLevel(logging.INFO)

    for logger_name in ['httpx', 'httpcore']:
        client_logger = logging.getLogger(logger_name)
        client_logger.handlers.clear()
        client_logger.propagate = False
        client_logger.addHandler(debug_handler)
        client_logger.setLevel(logging.DEBUG)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Encrypted RPS House Service")
    parser.add_argument("--port", type=int, default=8100, help="Port to run on")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Interface to bind")
    parser.add_argument("--watch", action="store_true", help="Join and resolve games from contract events")

    args = parser.parse_args()

    setup_logging(args.port)

    settings = load_settings()
    orchestrator, resolver, watcher = build_house(settings)
    app = create_app(orchestrator, resolver, RateLimiter(settings.rate_limit, settings.rate_window_seconds),
                     watcher if args.watch else None)

    logger.info("=" * 60)
    logger.info(f"🚀 House service | {resolver.name} | Port {args.port}")
    logger.info("=" * 60)

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_config=None,
        access_log=True
    )
