"""Star / unstar an item.

Starring pins the item to the head of its bucket and renumbers the rest;
unstarring only clears the flag so nothing jumps around.

On a failed star the flag is reverted. By default the new order is kept
(``rollback="partial"``); ``rollback="full"`` also restores the previous
order, provided nothing else reordered that bucket in the meantime.
"""
from __future__ import annotations
from typing import List
import logging

from authority import Authority, AuthorityError
from models import Item, ItemId
from reorder import renumber_positions
from store import ItemStore

logger = logging.getLogger(__name__)

ROLLBACK_MODES = ("partial", "full")


class PromotionEngine:
    def __init__(self, store: ItemStore, authority: Authority, rollback: str = "partial"):
        if rollback not in ROLLBACK_MODES:
            raise ValueError(f"rollback must be one of {ROLLBACK_MODES}, got {rollback!r}")
        self.store = store
        self.authority = authority
        self.rollback = rollback

    async def toggle_important(self, item_id: ItemId) -> bool:
        """Flip the flag; returns True when the authority accepted the change."""
        item = self.store.get(item_id)
        if item is None:
            logger.debug("toggle ignored: unknown item %r", item_id)
            return False
        if item.important:
            return await self._demote(item)
        return await self._promote(item)

    async def _promote(self, item: Item) -> bool:
        previous = self.store.sequence(item.bucket)
        self.store.set_important(item.id, True)
        expected = self._pin_to_head(item.id, item.bucket)
        try:
            await self.authority.toggle_important(item.id)
            # re-read: other gestures may have reshuffled the bucket meanwhile
            bucket = self.store.bucket_of(item.id)
            if bucket is not None:
                await self.authority.reposition(renumber_positions(self.store.sequence(bucket)))
        except AuthorityError as err:
            logger.warning("failed to star %r: %s; reverting flag", item.id, err)
            self.store.set_important(item.id, False)
            if self.rollback == "full":
                self._restore_order(item.bucket, previous, expected)
            return False
        return True

    async def _demote(self, item: Item) -> bool:
        self.store.set_important(item.id, False)
        try:
            await self.authority.toggle_important(item.id)
        except AuthorityError as err:
            logger.warning("failed to unstar %r: %s; reverting flag", item.id, err)
            self.store.set_important(item.id, True)
            return False
        return True

    def _pin_to_head(self, item_id: ItemId, bucket: str) -> List[ItemId]:
        """Sentinel position below every sibling, then stable sort and dense renumber."""
        seq = self.store.sequence(bucket)
        lowest = min((i.position for i in seq), default=0)
        for i in seq:
            if i.id == item_id:
                i.position = lowest - 1
        seq.sort(key=lambda i: i.position)
        ordered = [i.id for i in seq]
        self.store.reorder_bucket(bucket, ordered)
        self.store.apply_positions(renumber_positions(seq))
        return ordered

    def _restore_order(self, bucket: str, previous: List[Item], expected: List[ItemId]) -> None:
        if self.store.ids(bucket) != expected:
            logger.info("not restoring order of %s: bucket changed since the star", bucket)
            return
        self.store.reorder_bucket(bucket, [i.id for i in previous])
        self.store.apply_positions((i.id, i.position) for i in previous)
