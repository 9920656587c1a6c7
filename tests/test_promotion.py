"""Tests for starring (pin to head) and unstarring items."""

from __future__ import annotations

import asyncio

import pytest

from board import Board
from conftest import FakeAuthority, make_items, order, positions
from models import Item
from promotion import PromotionEngine
from store import ItemStore


def _authority() -> FakeAuthority:
    return FakeAuthority(make_items("working", ["P", "Q", "R"]) + make_items("new", ["N"]))


async def _loaded(authority: FakeAuthority, rollback: str = "partial") -> Board:
    board = Board(authority, rollback=rollback)
    await board.load()
    authority.calls.clear()
    return board


def test_star_pins_item_to_head_and_persists():
    authority = _authority()

    async def scenario():
        board = await _loaded(authority)
        assert await board.toggle_important("R")
        return board

    board = asyncio.run(scenario())
    assert board.get("R").important
    assert order(board, "working") == ["R", "P", "Q"]
    assert positions(board, "working") == {"R": 0, "P": 1, "Q": 2}
    assert authority.calls == [
        ("toggle_important", "R"),
        ("reposition", [("R", 0), ("P", 1), ("Q", 2)]),
    ]
    assert authority.items["R"].important
    assert authority.server_order("working") == ["R", "P", "Q"]


@pytest.mark.parametrize("k", [0, 1, 2, 3, 4])
def test_star_at_any_position_keeps_relative_order_of_rest(k):
    ids = ["a", "b", "c", "d", "e"]
    store = ItemStore(make_items("working", ids))
    engine = PromotionEngine(store, FakeAuthority(store.all_items()))
    assert asyncio.run(engine.toggle_important(ids[k]))
    rest = [i for i in ids if i != ids[k]]
    assert store.ids("working") == [ids[k]] + rest
    assert {i.id: i.position for i in store.sequence("working")} == {
        item_id: n for n, item_id in enumerate([ids[k]] + rest)
    }


def test_star_updates_screen_before_network_answers():
    authority = _authority()

    async def scenario():
        gate = authority.hold("toggle_important")
        board = await _loaded(authority)
        task = board.spawn(board.toggle_important("Q"))
        await asyncio.sleep(0)
        snapshot = (board.get("Q").important, order(board, "working"))
        gate.set()
        await task
        return snapshot

    assert asyncio.run(scenario()) == (True, ["Q", "P", "R"])


def test_unstar_changes_only_the_flag():
    authority = FakeAuthority([
        Item(id="P", bucket="working", position=0),
        Item(id="Q", bucket="working", position=1, important=True),
        Item(id="R", bucket="working", position=2),
    ])

    async def scenario():
        board = await _loaded(authority)
        assert await board.toggle_important("Q")
        return board

    board = asyncio.run(scenario())
    assert not board.get("Q").important
    assert order(board, "working") == ["P", "Q", "R"]
    assert positions(board, "working") == {"P": 0, "Q": 1, "R": 2}
    assert authority.calls == [("toggle_important", "Q")]


def test_failed_star_reverts_flag_but_keeps_new_order():
    authority = _authority()

    async def scenario():
        board = await _loaded(authority)
        authority.fail("toggle_important")
        assert not await board.toggle_important("R")
        return board

    board = asyncio.run(scenario())
    assert not board.get("R").important
    assert order(board, "working") == ["R", "P", "Q"]
    assert positions(board, "working") == {"R": 0, "P": 1, "Q": 2}


def test_failed_reposition_after_star_reverts_flag():
    authority = _authority()

    async def scenario():
        board = await _loaded(authority)
        authority.fail("reposition")
        assert not await board.toggle_important("Q")
        return board

    board = asyncio.run(scenario())
    assert not board.get("Q").important
    assert authority.methods() == ["toggle_important", "reposition"]


def test_full_rollback_restores_previous_order():
    authority = _authority()

    async def scenario():
        board = await _loaded(authority, rollback="full")
        authority.fail("toggle_important")
        assert not await board.toggle_important("R")
        return board

    board = asyncio.run(scenario())
    assert not board.get("R").important
    assert order(board, "working") == ["P", "Q", "R"]
    assert positions(board, "working") == {"P": 0, "Q": 1, "R": 2}


def test_full_rollback_leaves_bucket_alone_if_reordered_meanwhile():
    authority = _authority()

    async def scenario():
        gate = authority.hold("toggle_important")
        board = await _loaded(authority, rollback="full")
        authority.fail("toggle_important")
        task = board.spawn(board.toggle_important("R"))
        await asyncio.sleep(0)
        board.start_drag("Q")
        board.hover_item("R")
        board.end_drag()
        gate.set()
        assert not await task
        await board.wait_idle()
        return board

    board = asyncio.run(scenario())
    assert order(board, "working") == ["Q", "R", "P"]


def test_failed_unstar_restores_flag():
    authority = FakeAuthority([Item(id="P", bucket="new", position=0, important=True)])

    async def scenario():
        board = await _loaded(authority)
        authority.fail("toggle_important")
        assert not await board.toggle_important("P")
        return board

    board = asyncio.run(scenario())
    assert board.get("P").important


def test_star_reposition_uses_bucket_state_after_toggle_returns():
    authority = _authority()

    async def scenario():
        gate = authority.hold("toggle_important")
        board = await _loaded(authority)
        task = board.spawn(board.toggle_important("R"))
        await asyncio.sleep(0)
        # a drag lands while the toggle is still in flight
        board.start_drag("N")
        board.hover_item("P")
        drag = board.end_drag()
        gate.set()
        await task
        await drag
        return board

    board = asyncio.run(scenario())
    reposition_calls = [c for c in authority.calls if c[0] == "reposition"]
    assert reposition_calls[-1][1][:4] == [("R", 0), ("N", 1), ("P", 2), ("Q", 3)]
    assert order(board, "working") == ["R", "N", "P", "Q"]
    assert authority.server_order("working") == ["R", "N", "P", "Q"]


def test_unknown_item_is_ignored():
    authority = _authority()

    async def scenario():
        board = await _loaded(authority)
        return await board.toggle_important("ghost")

    assert asyncio.run(scenario()) is False
    assert authority.calls == []


def test_invalid_rollback_mode():
    with pytest.raises(ValueError):
        PromotionEngine(ItemStore(), FakeAuthority(), rollback="sometimes")
