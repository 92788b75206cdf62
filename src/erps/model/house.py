"""
House Action Models

Structured results returned by the orchestrator and the house service.
Failures are reported with success=False and an error message, never raised.
"""
from typing import Optional

from pydantic import BaseModel

from .game import Move
from .processing import ClientStatus


class HouseMoveRequest(BaseModel):
    """Ask the house to join a game"""
    bet_amount: Optional[int] = None  # wei, defaults to the configured bet


class PlayHouseMoveResult(BaseModel):
    success: bool
    hash: Optional[str] = None
    move: Optional[Move] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class CreateGameResult(BaseModel):
    success: bool
    hash: Optional[str] = None
    encrypted_move: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class ResolveGameResult(BaseModel):
    success: bool
    status: Optional[ClientStatus] = None
    tx_hash: Optional[str] = None
    pending_result: Optional[int] = None  # diff mod 3: 0 draw, 1 player A wins, 2 player B wins
    info: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class GameResultResponse(BaseModel):
    success: bool
    result: Optional[int] = None
    finished: Optional[bool] = None
    error: Optional[str] = None


class FinishedCheck(BaseModel):
    exists: bool
    finished: bool
    result: Optional[int] = None


class TransactionStatus(BaseModel):
    confirmed: bool
    error: Optional[str] = None


class OptimisticResult(BaseModel):
    success: bool
    calculated_diff: Optional[int] = None
    error: Optional[str] = None
