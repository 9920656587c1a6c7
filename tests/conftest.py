"""Shared fixtures: a scriptable in-memory authority and item builders."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pytest

from authority import Authority, ItemNotFoundError, RejectedError, TransportError
from models import Item


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_items(bucket: str, ids: Sequence[Any], start: int = 0) -> List[Item]:
    """Items in ``bucket`` at positions start.. in the given order."""
    return [
        Item(id=item_id, bucket=bucket, position=start + n, title=f"task {item_id}",
             created_at=f"2026-01-01T00:00:{n:02d}")
        for n, item_id in enumerate(ids)
    ]


def order(board_or_store: Any, bucket: str) -> List[Any]:
    store = getattr(board_or_store, "store", board_or_store)
    return store.ids(bucket)


def positions(board_or_store: Any, bucket: str) -> Dict[Any, int]:
    store = getattr(board_or_store, "store", board_or_store)
    return {i.id: i.position for i in store.sequence(bucket)}


class FakeAuthority(Authority):
    """In-memory system of record with scripted failures and held calls.

    ``fail(method)`` makes every later call of that method raise.
    ``hold(method)`` returns an Event; calls to that method wait on it.
    Must be called from inside the running loop.
    """

    def __init__(self, items: Iterable[Item] = ()):
        self.items: Dict[Any, Item] = {i.id: replace(i) for i in items}
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.next_id = 1000
        self.closed = False

    def fail(self, method: str, exc: Exception = None) -> None:
        self.failures[method] = exc or TransportError(f"{method} failed")

    def recover(self, method: str) -> None:
        self.failures.pop(method, None)

    def hold(self, method: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[method] = gate
        return gate

    def methods(self) -> List[str]:
        return [c[0] for c in self.calls]

    def server_order(self, bucket: str) -> List[Any]:
        members = [i for i in self.items.values() if i.bucket == bucket]
        members.sort(key=lambda i: (i.position, i.created_at or ""))
        return [i.id for i in members]

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method,) + args)
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        exc = self.failures.get(method)
        if exc is not None:
            raise exc

    def _get(self, item_id: Any) -> Item:
        if item_id not in self.items:
            raise ItemNotFoundError(item_id)
        return self.items[item_id]

    async def fetch_items(self) -> List[Item]:
        await self._enter("fetch_items")
        items = [replace(i) for i in self.items.values()]
        items.sort(key=lambda i: (i.position, i.created_at or ""))
        return items

    async def update_item(self, item_id: Any, changes: Mapping[str, Any]) -> Item:
        await self._enter("update_item", item_id, dict(changes))
        item = self._get(item_id)
        for field, value in changes.items():
            setattr(item, field, value)
        return replace(item)

    async def reposition(self, assignments) -> None:
        assignments = list(assignments)
        await self._enter("reposition", assignments)
        missing = [i for i, _ in assignments if i not in self.items]
        if missing:
            raise RejectedError(f"unknown ids {missing}")
        for item_id, position in assignments:
            self.items[item_id].position = position

    async def toggle_important(self, item_id: Any) -> Item:
        await self._enter("toggle_important", item_id)
        item = self._get(item_id)
        item.important = not item.important
        return replace(item)

    async def create_item(self, fields: Mapping[str, Any]) -> Item:
        await self._enter("create_item", dict(fields))
        bucket = fields.get("bucket", "new")
        end = len([i for i in self.items.values() if i.bucket == bucket])
        item = Item(id=self.next_id, bucket=bucket, position=end, title=fields.get("title", ""),
                    description=fields.get("description", ""), due_date=fields.get("due_date"))
        self.next_id += 1
        self.items[item.id] = item
        return replace(item)

    async def delete_item(self, item_id: Any) -> None:
        await self._enter("delete_item", item_id)
        self._get(item_id)
        del self.items[item_id]

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def authority():
    """Authority seeded with new=[X, Y], working=[A, B, C], complete=[]."""
    return FakeAuthority(make_items("new", ["X", "Y"]) + make_items("working", ["A", "B", "C"]))
