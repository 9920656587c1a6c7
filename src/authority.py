"""Remote authority contract and its error types.

The authority is the system of record for items. The engine talks to it
only through this interface; transports (HTTP, local JSON file) live in
remote.py and storage.py.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Sequence, Tuple

from models import Item, ItemId

Assignments = Sequence[Tuple[ItemId, int]]


class AuthorityError(Exception):
    """Base class for any failed authority round-trip."""


class TransportError(AuthorityError):
    """Network failure, timeout, server error or unreadable response."""


class UnauthorizedError(AuthorityError):
    """Credentials rejected (401/403)."""


class ItemNotFoundError(AuthorityError):
    def __init__(self, item_id: Any, message: str = "Item not found"):
        super().__init__(f"{message}: {item_id}")
        self.item_id = item_id


class RejectedError(AuthorityError):
    """The authority refused a malformed or partially invalid request."""


class Authority(ABC):
    """Async request/response contract the ordering engine depends on."""

    @abstractmethod
    async def fetch_items(self) -> List[Item]:
        """All items, ordered by (position asc, created_at asc)."""

    @abstractmethod
    async def update_item(self, item_id: ItemId, changes: Mapping[str, Any]) -> Item:
        """Partial patch of one item; keys are Item attribute names."""

    @abstractmethod
    async def reposition(self, assignments: Assignments) -> None:
        """Batch position write; all-or-nothing, raises on any failure."""

    @abstractmethod
    async def toggle_important(self, item_id: ItemId) -> Item:
        """Flip the important flag, returning the updated item."""

    @abstractmethod
    async def create_item(self, fields: Mapping[str, Any]) -> Item:
        """Create an item at the end of its bucket."""

    @abstractmethod
    async def delete_item(self, item_id: ItemId) -> None: ...

    async def close(self) -> None:
        """Release transport resources."""
