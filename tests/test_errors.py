from __future__ import annotations

import pytest

from erps.errors import (
    ContractStateError,
    CryptoError,
    DiscreteLogNotFoundError,
    GameError,
    InsufficientFundsError,
    NonceConflictError,
    TransactionError,
    TransientChainError,
    UserRejectedError,
    classify_chain_error,
    get_error_message,
    handle_game_error,
)


@pytest.mark.parametrize(
    "message,expected",
    [
        ("execution reverted: Moves already submitted", ContractStateError),
        ("Difference already computed", ContractStateError),
        ("Game already finalized", ContractStateError),
        ("User rejected the request", UserRejectedError),
        ("nonce too low", NonceConflictError),
        ("insufficient funds for gas * price + value", InsufficientFundsError),
        ("request timed out", TransientChainError),
        ("gas required exceeds allowance", TransientChainError),
        ("execution reverted: paused", TransactionError),
    ],
)
def test_classify_chain_error(message, expected):
    assert type(classify_chain_error(message)) is expected


def test_recoverability():
    assert classify_chain_error("connection refused").recoverable
    assert not ContractStateError("Moves already submitted").recoverable
    assert not DiscreteLogNotFoundError("Discrete logarithm not found").recoverable
    assert isinstance(DiscreteLogNotFoundError("x"), CryptoError)


def test_handle_game_error():
    original = CryptoError("bad")
    assert handle_game_error(original) is original
    assert handle_game_error(RuntimeError("User rejected")).code == "USER_REJECTED"
    assert handle_game_error(RuntimeError("network down")).code == "NETWORK_ERROR"
    unknown = handle_game_error(RuntimeError(""))
    assert unknown.code == "UNKNOWN_ERROR" and unknown.message == "An unknown error occurred"


def test_get_error_message():
    assert get_error_message(UserRejectedError()) == "Transaction cancelled. Try again when ready."
    assert get_error_message(GameError("plain", "SOMETHING_ELSE")) == "plain"
