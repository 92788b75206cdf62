"""
Error taxonomy for the house engine.

Crypto errors are fatal to the current operation. Chain errors are split into
transient ones (retried with backoff), contract state errors (a step that is
already done on-chain) and user rejections (never retried).
"""
from typing import Optional


class GameError(Exception):
    """Base error carrying a machine-readable code"""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable


# ============================================================================
# Cryptographic domain errors
# ============================================================================

class CryptoError(GameError):
    def __init__(self, message: str):
        super().__init__(message, "CRYPTO_ERROR", False)


class ModularInverseError(CryptoError):
    """gcd(a, m) != 1, so a has no inverse modulo m"""


class DiscreteLogNotFoundError(CryptoError):
    """No candidate plaintext matches the decrypted point (tampered or out-of-domain ciphertext)"""


class PlaintextOutOfRangeError(CryptoError):
    """Plaintext outside [0, n) for Paillier"""


class MalformedCiphertextError(CryptoError):
    """Ciphertext outside its group or badly encoded"""


class DegenerateCurveOperationError(CryptoError):
    """Zero denominator outside the defined exceptional cases of point addition"""


class MissingPrivateKeyError(CryptoError):
    """Decryption requested on a resolver holding only public parameters"""


# ============================================================================
# Chain / transaction errors
# ============================================================================

class ChainError(GameError):
    def __init__(self, message: str, code: str = "CONTRACT_ERROR", recoverable: bool = False):
        super().__init__(message, code, recoverable)


class TransientChainError(ChainError):
    """Network, timeout, connection or gas estimation failure"""

    def __init__(self, message: str, code: str = "NETWORK_ERROR"):
        super().__init__(message, code, True)


class NonceConflictError(TransientChainError):
    def __init__(self, message: str):
        super().__init__(message, "NONCE_ERROR")


class ConfirmationTimeoutError(TransientChainError):
    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message, "CONFIRMATION_TIMEOUT")
        self.tx_hash = tx_hash


class ContractStateError(ChainError):
    """The contract reports the step as already completed"""

    def __init__(self, message: str):
        super().__init__(message, "CONTRACT_STATE", False)


class UserRejectedError(ChainError):
    def __init__(self, message: str = "Transaction rejected by user"):
        super().__init__(message, "USER_REJECTED", True)


class InsufficientFundsError(ChainError):
    def __init__(self, message: str = "Insufficient funds for transaction"):
        super().__init__(message, "INSUFFICIENT_FUNDS", True)


class TransactionError(ChainError):
    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message, "TRANSACTION_ERROR", True)
        self.tx_hash = tx_hash


class RateLimitExceededError(GameError):
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, "RATE_LIMITED", True)


# Messages the contract uses when a step has already happened
ALREADY_DONE_MARKERS = (
    "Moves already submitted",
    "Difference already computed",
    "Game already finalized",
    "Game is already finished",
)

NONCE_MARKERS = ("nonce too low", "nonce too high")

TRANSIENT_MARKERS = ("network", "timeout", "timed out", "connection", "gas")


def is_already_done(message: str) -> bool:
    return any(marker in message for marker in ALREADY_DONE_MARKERS)


def classify_chain_error(message: str) -> ChainError:
    """Map a raw RPC/contract error message onto the taxonomy"""
    lowered = message.lower()
    if is_already_done(message):
        return ContractStateError(message)
    if "user rejected" in lowered:
        return UserRejectedError(message)
    if any(marker in lowered for marker in NONCE_MARKERS):
        return NonceConflictError(message)
    if "insufficient funds" in lowered:
        return InsufficientFundsError(message)
    if any(marker in lowered for marker in TRANSIENT_MARKERS):
        return TransientChainError(message)
    return TransactionError(message)


def handle_game_error(error: BaseException) -> GameError:
    if isinstance(error, GameError):
        return error
    message = str(error)
    lowered = message.lower()
    if "user rejected" in lowered:
        return UserRejectedError()
    if "insufficient funds" in lowered:
        return InsufficientFundsError()
    if "network" in lowered:
        return GameError("Network error. Please check your connection", "NETWORK_ERROR", True)
    return GameError(message or "An unknown error occurred", "UNKNOWN_ERROR", True)


def get_error_message(error: GameError) -> str:
    """User-facing text for an error code"""
    messages = {
        "USER_REJECTED": "Transaction cancelled. Try again when ready.",
        "INSUFFICIENT_FUNDS": "Not enough funds to complete the transaction.",
        "NETWORK_ERROR": "Connection error. Check your internet and wallet connection.",
        "CRYPTO_ERROR": "Encryption error. Please try again.",
        "CONTRACT_ERROR": "Smart contract error. Please try again later.",
        "RATE_LIMITED": "Too many requests. Please slow down.",
    }
    return messages.get(error.code, error.message)
