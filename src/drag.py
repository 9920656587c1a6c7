"""Drag gesture state machine.

Idle -> Active on start, Active -> Active on every hover, Active -> Idle
on end. Hovers rewrite the store's bucket sequences synchronously and
never touch the network; positions stay as they were until the commit
renumbers them.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

from models import BUCKETS, ItemId
from reorder import move_within_sequence
from store import ItemStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Gesture:
    """What the commit needs to know about a finished drag."""
    item_id: ItemId
    origin_bucket: str
    changed: bool
    dropped: bool = True


class DragReconciler:
    def __init__(self, store: ItemStore):
        self.store = store
        self.active_id: Optional[ItemId] = None
        self.origin_bucket: Optional[str] = None
        self._changed: bool = False

    @property
    def active(self) -> bool:
        return self.active_id is not None

    def start(self, item_id: ItemId) -> bool:
        """Begin a gesture; unknown ids leave the reconciler idle."""
        bucket = self.store.bucket_of(item_id)
        if bucket is None:
            logger.debug("drag start ignored: unknown item %r", item_id)
            return False
        self.active_id = item_id
        self.origin_bucket = bucket
        self._changed = False
        return True

    # -------------------- hover --------------------
    def hover(self, over: ItemId) -> bool:
        """Hover over a bucket key or an item id (bucket keys win)."""
        if isinstance(over, str) and over in BUCKETS:
            return self.hover_bucket(over)
        return self.hover_item(over)

    def hover_bucket(self, bucket: str) -> bool:
        """Pointer is over a column's empty space: append to that bucket."""
        if self.active_id is None or bucket not in BUCKETS:
            return False
        current = self.store.bucket_of(self.active_id)
        if current is None or current == bucket:
            return False
        return self._record(self.store.move_to_bucket(self.active_id, bucket))

    def hover_item(self, over_id: ItemId) -> bool:
        """Pointer is over another card: take that card's slot."""
        dragged_id = self.active_id
        if dragged_id is None:
            return False
        current = self.store.bucket_of(dragged_id)
        target = self.store.bucket_of(over_id)
        if current is None or target is None:
            logger.debug("hover ignored: dragged=%r over=%r not in store", dragged_id, over_id)
            return False
        if target == current:
            if over_id == dragged_id:
                return False
            ids = self.store.ids(current)
            reordered = move_within_sequence(ids, ids.index(dragged_id), ids.index(over_id))
            if reordered == ids:
                return False
            return self._record(self.store.reorder_bucket(current, reordered))
        index = self.store.ids(target).index(over_id)
        return self._record(self.store.move_to_bucket(dragged_id, target, index))

    # -------------------- end --------------------
    def end(self, dropped: bool = True) -> Optional[Gesture]:
        """Finish the gesture and describe it; None when idle."""
        if self.active_id is None or self.origin_bucket is None:
            return None
        gesture = Gesture(
            item_id=self.active_id,
            origin_bucket=self.origin_bucket,
            changed=self._changed,
            dropped=dropped,
        )
        self.active_id = None
        self.origin_bucket = None
        self._changed = False
        return gesture

    def _record(self, applied: bool) -> bool:
        if applied:
            self._changed = True
        return applied
