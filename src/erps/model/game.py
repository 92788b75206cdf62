"""
Game Models

Moves, outcomes and the on-chain game record as read through the chain collaborator.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Move(str, Enum):
    ROCK = "ROCK"
    PAPER = "PAPER"
    SCISSORS = "SCISSORS"

    @property
    def number(self) -> int:
        return MOVE_TO_NUMBER[self]

    @classmethod
    def from_number(cls, value: int) -> "Move":
        return NUMBER_TO_MOVE[value % 3]


MOVE_TO_NUMBER = {Move.ROCK: 0, Move.PAPER: 1, Move.SCISSORS: 2}
NUMBER_TO_MOVE = {number: move for move, number in MOVE_TO_NUMBER.items()}


class GameResult(str, Enum):
    """Outcome from the point of view of player A (the game creator)"""
    WIN = "WIN"
    LOSE = "LOSE"
    DRAW = "DRAW"


class GameInfo(BaseModel):
    """Tuple returned by the contract's getGameInfo"""
    game_id: int
    player_a: str = ZERO_ADDRESS
    player_b: str = ZERO_ADDRESS
    winner: str = ZERO_ADDRESS
    finished: bool = False
    both_committed: bool = False
    enc_choice_a: str = "0x"
    enc_choice_b: str = "0x"
    difference_cipher: str = "0x"
    revealed_diff: Optional[int] = None
    bet_amount: int = 0

    @property
    def exists(self) -> bool:
        return self.player_a.lower() != ZERO_ADDRESS

    @property
    def joined(self) -> bool:
        return self.player_b.lower() != ZERO_ADDRESS

    @property
    def has_both_moves(self) -> bool:
        return _present(self.enc_choice_a) and _present(self.enc_choice_b)

    @property
    def has_difference(self) -> bool:
        return _present(self.difference_cipher)


def _present(value: Optional[str]) -> bool:
    return bool(value) and value not in ("0x", "0X")


class ChainEvent(BaseModel):
    """Contract event (GameCreated, GameJoined, MovesSubmitted, DifferenceComputed, GameResolved)"""
    name: str
    game_id: int
    block_number: int
    tx_hash: Optional[str] = None
    data: dict = {}


class TransactionReceipt(BaseModel):
    tx_hash: str
    status: str = "success"  # "success" | "reverted"
    block_number: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"
