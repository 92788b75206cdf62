"""
House move selection.
"""
import secrets

from erps.model import Move

HOUSE_MOVES = (Move.ROCK, Move.PAPER, Move.SCISSORS)


def generate_house_move() -> Move:
    """Uniform move from a CSPRNG; nothing about the game influences the choice"""
    return secrets.choice(HOUSE_MOVES)
