"""In-memory mirror of the authority's items.

The store keeps one ordered list per bucket; list order is display order.
Positions are only guaranteed dense once a commit has renumbered them,
hovers reorder the lists without touching ``position``.

Every read returns copies. Async code holds the store itself and
re-reads it after each await, never a copy taken before suspending.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from models import BUCKETS, Item, ItemId, sort_key

logger = logging.getLogger(__name__)


class ItemStore:
    def __init__(self, items: Optional[Iterable[Item]] = None):
        self.columns: Dict[str, List[Item]] = {b: [] for b in BUCKETS}
        self.version: int = 0
        if items:
            self.replace_all(items)

    # -------------------- wholesale replacement --------------------
    def replace_all(self, items: Iterable[Item]) -> None:
        """Discard everything and load ``items`` ordered by (position, created_at)."""
        columns: Dict[str, List[Item]] = {b: [] for b in BUCKETS}
        for item in items:
            if item.bucket not in columns:
                logger.debug("dropping item %r with unknown bucket %r", item.id, item.bucket)
                continue
            columns[item.bucket].append(replace(item))
        for seq in columns.values():
            seq.sort(key=sort_key)
        self.columns = columns
        self._touch()

    # -------------------- queries --------------------
    def snapshot(self) -> Dict[str, List[Item]]:
        """Current contents, copied, keyed by bucket."""
        return {b: [replace(i) for i in seq] for b, seq in self.columns.items()}

    def all_items(self) -> List[Item]:
        return [replace(i) for b in BUCKETS for i in self.columns[b]]

    def get(self, item_id: ItemId) -> Optional[Item]:
        found = self._find(item_id)
        return replace(found[1]) if found else None

    def bucket_of(self, item_id: ItemId) -> Optional[str]:
        found = self._find(item_id)
        return found[0] if found else None

    def sequence(self, bucket: str) -> List[Item]:
        return [replace(i) for i in self.columns.get(bucket, [])]

    def ids(self, bucket: str) -> List[ItemId]:
        return [i.id for i in self.columns.get(bucket, [])]

    def density_violations(self) -> Dict[str, List[int]]:
        """Buckets whose positions are not exactly 0..n-1, with their positions."""
        bad: Dict[str, List[int]] = {}
        for bucket, seq in self.columns.items():
            positions = sorted(i.position for i in seq)
            if positions != list(range(len(seq))):
                bad[bucket] = positions
        return bad

    def __contains__(self, item_id: object) -> bool:
        return self._find(item_id) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return sum(len(seq) for seq in self.columns.values())

    # -------------------- ordering mutations --------------------
    def reorder_bucket(self, bucket: str, ordered_ids: Sequence[ItemId]) -> bool:
        """Replace a bucket's sequence order; ``ordered_ids`` must be a permutation."""
        seq = self.columns.get(bucket)
        if seq is None:
            return False
        by_id = {i.id: i for i in seq}
        if len(ordered_ids) != len(seq) or set(ordered_ids) != set(by_id):
            logger.debug("reorder of %s ignored: ids do not match bucket members", bucket)
            return False
        self.columns[bucket] = [by_id[i] for i in ordered_ids]
        self._touch()
        return True

    def move_to_bucket(self, item_id: ItemId, bucket: str, index: Optional[int] = None) -> bool:
        """Atomically remove the item from its bucket and insert it into ``bucket``.

        ``index`` None appends. The item is never in two sequences at once.
        """
        found = self._find(item_id)
        if not found or bucket not in self.columns:
            return False
        source, item = found
        self.columns[source].remove(item)
        item.bucket = bucket
        target = self.columns[bucket]
        if index is None or index >= len(target):
            target.append(item)
        else:
            target.insert(max(index, 0), item)
        self._touch()
        return True

    def apply_positions(self, assignments: Iterable[Tuple[ItemId, int]]) -> None:
        """Write position values; ids no longer present are skipped."""
        for item_id, position in assignments:
            found = self._find(item_id)
            if found:
                found[1].position = position
        self._touch()

    def set_important(self, item_id: ItemId, important: bool) -> bool:
        found = self._find(item_id)
        if not found:
            return False
        found[1].important = important
        self._touch()
        return True

    # -------------------- CRUD mutations --------------------
    def add(self, item: Item) -> None:
        """Append an authority-created item to the end of its bucket."""
        if item.bucket not in self.columns:
            logger.debug("not adding item %r: unknown bucket %r", item.id, item.bucket)
            return
        self.discard(item.id)
        self.columns[item.bucket].append(replace(item))
        self._touch()

    def put(self, item: Item) -> None:
        """Replace an item with the authority's version, keeping its slot.

        A changed bucket moves it to the end of the new bucket.
        """
        found = self._find(item.id)
        if not found or found[0] != item.bucket:
            self.add(item)
            return
        seq = self.columns[found[0]]
        seq[seq.index(found[1])] = replace(item)
        self._touch()

    def discard(self, item_id: ItemId) -> Optional[str]:
        """Remove an item; returns the bucket it was in."""
        found = self._find(item_id)
        if not found:
            return None
        self.columns[found[0]].remove(found[1])
        self._touch()
        return found[0]

    # -------------------- internals --------------------
    def _find(self, item_id: ItemId) -> Optional[Tuple[str, Item]]:
        for bucket, seq in self.columns.items():
            for item in seq:
                if item.id == item_id:
                    return bucket, item
        return None

    def _touch(self) -> None:
        self.version += 1

    def __str__(self) -> str:
        return ', '.join(f'{b}: {len(self.columns[b])} items' for b in BUCKETS)
