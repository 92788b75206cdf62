"""
House Models Package

Provides all Pydantic models for game state, processing state and house results.
"""

# Game Models
from .game import (
    ZERO_ADDRESS,
    Move,
    GameResult,
    GameInfo,
    ChainEvent,
    TransactionReceipt,
)

# Processing State Models
from .processing import (
    GameStep,
    GameProcessingState,
    ProcessingStatus,
    map_step_to_status,
)

# House Action Models
from .house import (
    HouseMoveRequest,
    PlayHouseMoveResult,
    CreateGameResult,
    ResolveGameResult,
    GameResultResponse,
    FinishedCheck,
    TransactionStatus,
    OptimisticResult,
)

__all__ = [
    # Game
    "ZERO_ADDRESS",
    "Move",
    "GameResult",
    "GameInfo",
    "ChainEvent",
    "TransactionReceipt",
    # Processing
    "GameStep",
    "GameProcessingState",
    "ProcessingStatus",
    "map_step_to_status",
    # House
    "HouseMoveRequest",
    "PlayHouseMoveResult",
    "CreateGameResult",
    "ResolveGameResult",
    "GameResultResponse",
    "FinishedCheck",
    "TransactionStatus",
    "OptimisticResult",
]
