"""
Chain RPC collaborator.

ChainClient is the boundary the orchestrator talks to. HttpChainGateway is the
production implementation: an httpx client for the chain gateway service, which
owns ABI encoding and signing for the house accounts.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from erps.errors import (
    ConfirmationTimeoutError,
    ContractStateError,
    NonceConflictError,
    TransientChainError,
    UserRejectedError,
    classify_chain_error,
)
from erps.model import ChainEvent, GameInfo, TransactionReceipt

logger = logging.getLogger(__name__)


class ChainClient(ABC):
    @abstractmethod
    async def get_game_info(self, game_id: int) -> GameInfo:
        """Reads getGameInfo(game_id)"""

    @abstractmethod
    async def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        ...

    @abstractmethod
    async def simulate_contract(
        self,
        function_name: str,
        args: List[Any],
        sender: str,
        nonce: int,
        value: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Dry-runs a contract call and returns the prepared request (gas estimate included)"""

    @abstractmethod
    async def send_transaction(self, request: Dict[str, Any]) -> str:
        """Signs and broadcasts a prepared request; returns the tx hash"""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        """Raises ConfirmationTimeoutError when no receipt arrives within timeout"""

    @abstractmethod
    async def get_events(self, from_block: int = 0) -> List[ChainEvent]:
        ...

    async def aclose(self):
        """Releases network resources"""


def is_tx_hash(value: Optional[str]) -> bool:
    if not value or not value.startswith("0x") or len(value) < 3:
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


class HttpChainGateway(ChainClient):
    """ChainClient over the gateway's JSON API"""

    def __init__(self, base_url: str, contract_address: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.contract_address = contract_address
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientChainError(f"timeout calling chain gateway {path}: {e}") from e
        except httpx.TransportError as e:
            raise TransientChainError(f"network error calling chain gateway {path}: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error", response.text)
            except ValueError:
                message = response.text
            message = str(message) or f"gateway error ({response.status_code})"
            error = classify_chain_error(message)
            if response.status_code >= 500 and not isinstance(
                error, (ContractStateError, NonceConflictError, UserRejectedError, TransientChainError)
            ):
                raise TransientChainError(f"gateway returned {response.status_code}: {message}")
            raise error
        return response.json()

    async def get_game_info(self, game_id: int) -> GameInfo:
        data = await self._request("GET", f"/contracts/{self.contract_address}/games/{game_id}")
        return GameInfo(game_id=game_id, **data)

    async def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        data = await self._request("GET", f"/accounts/{address}/nonce", params={"block": block_tag})
        return int(data["nonce"])

    async def simulate_contract(self, function_name, args, sender, nonce, value=None):
        payload = {
            "contract": self.contract_address,
            "function": function_name,
            "args": [str(a) if isinstance(a, int) else a for a in args],
            "from": sender,
            "nonce": nonce,
            "value": str(value) if value is not None else None,
        }
        data = await self._request("POST", "/simulate", json=payload)
        return data["request"]

    async def send_transaction(self, request: Dict[str, Any]) -> str:
        data = await self._request("POST", "/transactions", json=request)
        logger.debug(f"📤 Gateway accepted {request.get('function')} as {data['hash']}")
        return data["hash"]

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TransactionReceipt:
        try:
            data = await self._request(
                "GET",
                f"/transactions/{tx_hash}/receipt",
                params={"timeout": timeout},
                timeout=timeout + 5.0,
            )
        except TransientChainError as e:
            raise ConfirmationTimeoutError(f"Transaction {tx_hash} not confirmed: {e}", tx_hash) from e
        if data is None or data.get("pending"):
            raise ConfirmationTimeoutError(f"Transaction {tx_hash} still pending after {timeout}s", tx_hash)
        return TransactionReceipt(tx_hash=tx_hash, status=data.get("status", "success"), block_number=data.get("block_number"))

    async def get_events(self, from_block: int = 0) -> List[ChainEvent]:
        data = await self._request(
            "GET", f"/contracts/{self.contract_address}/events", params={"from_block": from_block}
        )
        return [ChainEvent(**event) for event in data.get("events", [])]
