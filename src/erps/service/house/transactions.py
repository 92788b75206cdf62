"""
Contract transaction submission for the house accounts.

Every write picks a signer from the pool, takes the next nonce from that
signer's sequencer, simulates the call, pads the gas estimate and broadcasts.
Failures are classified: nonce conflicts reset the sequencer and are retried,
transient infrastructure errors are retried with backoff, "already done"
contract errors and user rejections are raised immediately.
"""
import asyncio
import logging
from typing import Any, List, Optional

from erps.errors import (
    ChainError,
    ContractStateError,
    NonceConflictError,
    TransientChainError,
    UserRejectedError,
    classify_chain_error,
)
from erps.service.house.chain import ChainClient
from erps.service.house.nonce import SignerPool
from erps.service.house.retry import retry

logger = logging.getLogger(__name__)

GAS_BUFFER = 1.1


def should_retry_write(error: BaseException) -> bool:
    if isinstance(error, (ContractStateError, UserRejectedError)):
        return False
    return isinstance(error, TransientChainError)


class TransactionExecutor:
    def __init__(
        self,
        chain: ChainClient,
        signers: SignerPool,
        retries: int = 5,
        backoff_seconds: float = 1.0,
        sleep=asyncio.sleep,
    ):
        self.chain = chain
        self.signers = signers
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def execute(
        self,
        function_name: str,
        args: List[Any],
        value: Optional[int] = None,
        retries: Optional[int] = None,
        log_prefix: Optional[str] = None,
    ) -> str:
        """Submits a contract call and returns its tx hash"""
        log_prefix = log_prefix or f"Contract call: {function_name}"

        async def attempt() -> str:
            signer = self.signers.next_signer()
            nonce = await signer.sequencer.next_nonce()
            logger.info(f"{log_prefix}: using house account {signer.address} with nonce {nonce}")
            try:
                request = await self.chain.simulate_contract(function_name, args, signer.address, nonce, value)
                if request.get("gas"):
                    request["gas"] = int(int(request["gas"]) * GAS_BUFFER)
                tx_hash = await self.chain.send_transaction(request)
            except ChainError as e:
                error = classify_chain_error(str(e)) if type(e) is ChainError else e
                if isinstance(error, NonceConflictError):
                    logger.warning(f"{log_prefix}: nonce error detected, resetting nonce state")
                elif isinstance(error, ContractStateError):
                    logger.info(f"{log_prefix}: contract state error: {error}")
                # The issued nonce was not used; re-derive it from chain state next time
                await signer.sequencer.invalidate()
                if error is e:
                    raise
                raise error from e
            logger.info(f"✅ {log_prefix}: transaction {tx_hash} sent successfully")
            return tx_hash

        return await retry(
            attempt,
            retries=retries or self.retries,
            backoff_seconds=self.backoff_seconds,
            should_retry=should_retry_write,
            on_retry=lambda e, n: logger.info(f"{log_prefix}: retry attempt {n} due to: {e}"),
            sleep=self._sleep,
        )
