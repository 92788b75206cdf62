from __future__ import annotations

import asyncio

import pytest

from conftest import HOUSE_1, HOUSE_2
from erps.errors import TransientChainError
from erps.model import Move
from erps.service.house.watcher import HouseWatcher


def test_watcher_joins_and_resolves(fake_chain, house, paillier_resolver):
    game_id = fake_chain.seed_game(paillier_resolver.encrypt_move(Move.PAPER))
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1, HOUSE_2])

    first = asyncio.run(watcher.poll_once())
    assert [e.name for e in first] == ["GameCreated"]
    assert fake_chain.games[game_id].joined

    # GameJoined triggers resolution, which emits the remaining events
    second = asyncio.run(watcher.poll_once())
    assert second[0].name == "GameJoined"
    assert fake_chain.games[game_id].finished
    assert len(fake_chain.calls("finalizeGame")) == 1


def test_watcher_skips_house_created_games(fake_chain, house, paillier_resolver):
    fake_chain.seed_game(paillier_resolver.encrypt_move(Move.ROCK), player_a=HOUSE_1)
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1, HOUSE_2])

    asyncio.run(watcher.poll_once())

    assert fake_chain.calls("joinGame") == []


def test_watcher_does_not_replay_events(fake_chain, house, paillier_resolver):
    fake_chain.seed_game(paillier_resolver.encrypt_move(Move.ROCK))
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1])
    all_events = fake_chain.events

    async def every_event(from_block=0):
        # A gateway that ignores the block cursor
        return list(all_events)

    fake_chain.get_events = every_event

    asyncio.run(watcher.poll_once())
    replay = asyncio.run(watcher.poll_once())

    assert all(event.name != "GameCreated" for event in replay)
    assert len(fake_chain.calls("joinGame")) == 1
    assert all(block >= watcher.from_block for block in watcher._seen.values())


def test_failed_event_is_retried_on_next_poll(fake_chain, house, paillier_resolver, monkeypatch):
    game_id = fake_chain.seed_game(paillier_resolver.encrypt_move(Move.SCISSORS))
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1])
    original = house.play_house_move
    failures = [RuntimeError("gateway returned garbage")]

    async def flaky_join(game_id, bet_amount=None):
        if failures:
            raise failures.pop()
        return await original(game_id, bet_amount)

    monkeypatch.setattr(house, "play_house_move", flaky_join)

    with pytest.raises(RuntimeError):
        asyncio.run(watcher.poll_once())
    assert not fake_chain.games[game_id].joined

    handled = asyncio.run(watcher.poll_once())
    assert [e.name for e in handled] == ["GameCreated"]
    assert fake_chain.games[game_id].joined


def test_unreadable_bet_amount_uses_default(fake_chain, house, paillier_resolver, settings):
    game_id = fake_chain.seed_game(paillier_resolver.encrypt_move(Move.ROCK))
    fake_chain.events[-1].data["bet_amount"] = "lots"
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1])

    asyncio.run(watcher.poll_once())

    assert fake_chain.games[game_id].joined
    assert fake_chain.calls("joinGame")[0]["value"] == settings.default_bet_wei


def test_run_survives_poll_errors_and_stops(fake_chain, house):
    watcher = HouseWatcher(fake_chain, house, poll_interval=0.01)
    calls = []

    async def flaky_events(from_block=0):
        calls.append(from_block)
        raise TransientChainError("connection reset")

    fake_chain.get_events = flaky_events

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(watcher.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(scenario())
    assert len(calls) >= 2


def test_run_keeps_polling_after_unexpected_error(fake_chain, house, paillier_resolver):
    game_id = fake_chain.seed_game(paillier_resolver.encrypt_move(Move.PAPER))
    watcher = HouseWatcher(fake_chain, house, [HOUSE_1], poll_interval=0.01)
    original = fake_chain.get_events
    failures = [ValueError("malformed gateway payload")]

    async def flaky_events(from_block=0):
        if failures:
            raise failures.pop()
        return await original(from_block)

    fake_chain.get_events = flaky_events

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(watcher.run(stop))
        for _ in range(100):
            if fake_chain.games[game_id].joined:
                break
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(scenario())
    assert not failures
    assert fake_chain.games[game_id].joined
