"""Authoritative write issued once a drag gesture ends.

1. bucket change for the dragged item, if it left its start bucket;
2. dense renumbering of its current bucket (plus the bucket it left).

Any failure discards local speculation through a full resync; partial
repair is never attempted because a failed batch may have half-landed.
"""
from __future__ import annotations
from typing import Awaitable, Callable, List, Tuple
import logging

from authority import Authority, AuthorityError
from drag import Gesture
from models import ItemId
from reorder import renumber_positions
from store import ItemStore

logger = logging.getLogger(__name__)


class CommitCoordinator:
    def __init__(self, store: ItemStore, authority: Authority, resync: Callable[[], Awaitable[bool]]):
        self.store = store
        self.authority = authority
        self.resync = resync

    def _renumber(self, item_id: ItemId, origin_bucket: str) -> List[Tuple[ItemId, int]]:
        """Dense positions for the item's bucket and, after a cross-bucket move, its old one.

        Applied to the store immediately; the returned pairs are the payload.
        """
        bucket = self.store.bucket_of(item_id)
        if bucket is None:
            return []
        assignments = renumber_positions(self.store.sequence(bucket))
        if origin_bucket != bucket:
            assignments += renumber_positions(self.store.sequence(origin_bucket))
        self.store.apply_positions(assignments)
        return assignments

    async def commit(self, gesture: Gesture) -> bool:
        """Persist a finished gesture; returns True when the authority accepted it."""
        if not gesture.changed:
            return True
        item_id = gesture.item_id
        bucket = self.store.bucket_of(item_id)
        if bucket is None:
            logger.warning("dragged item %r vanished before commit; resyncing", item_id)
            await self.resync()
            return False
        self._renumber(item_id, gesture.origin_bucket)
        try:
            if bucket != gesture.origin_bucket:
                await self.authority.update_item(item_id, {"bucket": bucket})
            # the store may have moved on while the bucket change was in flight
            if self.store.bucket_of(item_id) is None:
                raise AuthorityError(f"item {item_id!r} disappeared during commit")
            assignments = self._renumber(item_id, gesture.origin_bucket)
            await self.authority.reposition(assignments)
        except AuthorityError as err:
            logger.warning("failed to persist drag of %r: %s; resyncing", item_id, err)
            await self.resync()
            return False
        return True
