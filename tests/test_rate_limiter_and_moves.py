from __future__ import annotations

import pytest

from erps.errors import RateLimitExceededError
from erps.model import Move
from erps.service.house.moves import generate_house_move
from erps.service.house.rate_limiter import RateLimiter


def test_rate_limiter_window():
    now = [0.0]
    limiter = RateLimiter(limit=2, window_seconds=30, clock=lambda: now[0])

    limiter.check("a")
    limiter.check("a")
    limiter.check("b")
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.check("a")
    assert exc.value.code == "RATE_LIMITED"
    assert limiter.remaining("a") == 0
    assert limiter.remaining("b") == 1

    now[0] = 30.0
    limiter.check("a")
    assert limiter.remaining("a") == 1


def test_rate_limiter_forgets_idle_callers():
    now = [0.0]
    limiter = RateLimiter(limit=2, window_seconds=30, clock=lambda: now[0])

    limiter.check("a")
    limiter.check("b")
    assert limiter.remaining("c") == 2
    assert set(limiter._hits) == {"a", "b"}

    now[0] = 31.0
    limiter.check("b")
    assert set(limiter._hits) == {"b"}


def test_house_moves_cover_all_options():
    seen = {generate_house_move() for _ in range(200)}
    assert seen == {Move.ROCK, Move.PAPER, Move.SCISSORS}
