"""
Game Processing State

The record kept in the cache collaborator under "game:{id}" while the house
drives a game to completion.
"""
import time
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class GameStep(str, Enum):
    JOINING = "joining"
    SUBMITTING_MOVES = "submitting_moves"
    COMPUTING_DIFFERENCE = "computing_difference"
    FINALIZING = "finalizing"
    DONE = "done"

    @property
    def order(self) -> int:
        return STEP_ORDER.index(self)

    def next(self) -> "GameStep":
        if self is GameStep.DONE:
            return self
        return STEP_ORDER[self.order + 1]


STEP_ORDER = [
    GameStep.JOINING,
    GameStep.SUBMITTING_MOVES,
    GameStep.COMPUTING_DIFFERENCE,
    GameStep.FINALIZING,
    GameStep.DONE,
]

ClientStatus = Literal["submitting_moves", "computing_difference", "finalizing", "completed"]


class GameProcessingState(BaseModel):
    status: Literal["processing", "completed"] = "processing"
    step: GameStep = GameStep.JOINING
    result: Optional[int] = None
    timestamp: float = Field(default_factory=time.time)
    tx_hash: Optional[str] = None
    waiting_for_confirmation: bool = False
    retry_count: int = 0


class ProcessingStatus(BaseModel):
    is_processed: bool
    state: Optional[GameProcessingState] = None


def map_step_to_status(step: GameStep) -> ClientStatus:
    """Client-facing status for an internal step"""
    if step is GameStep.DONE:
        return "completed"
    if step is GameStep.JOINING:
        return "submitting_moves"
    return step.value
