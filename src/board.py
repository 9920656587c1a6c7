"""Board facade: owns the store and wires the ordering engine to an authority.

Gesture handlers (start/hover/end) are synchronous and never wait on the
network; the commit for a finished gesture runs as a background task on
the current event loop. Rendering to the terminal also lives here.
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Tuple
import asyncio
import logging
import re
import shutil

from authority import Authority, AuthorityError, ItemNotFoundError
from commit import CommitCoordinator
from drag import DragReconciler
from models import BUCKETS, HEADER_TITLES, ORDERING_FIELDS, Item, ItemId
from promotion import PromotionEngine
from reorder import renumber_positions
from store import ItemStore
from sync import Resynchronizer
from theme import color, HEADER_COLOR, BUCKET_COLOR, ID_COLOR, EMPTY_COLOR, IMPORTANT_COLOR, BOLD

logger = logging.getLogger(__name__)

MIN_COL_WIDTH = 18
SEP = " | "
STAR = "★"
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


class Board:
    def __init__(
        self,
        authority: Authority,
        rollback: str = "partial",
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.authority = authority
        self.store = ItemStore()
        self.drag = DragReconciler(self.store)
        self.resyncer = Resynchronizer(self.store, authority, on_unauthorized)
        self.committer = CommitCoordinator(self.store, authority, self.resyncer.resync)
        self.promoter = PromotionEngine(self.store, authority, rollback=rollback)
        self._pending: Set["asyncio.Task[Any]"] = set()

    # -------------------- loading --------------------
    async def load(self) -> bool:
        return await self.resyncer.resync()

    async def resync(self) -> bool:
        return await self.resyncer.resync()

    # -------------------- queries --------------------
    def columns(self) -> Dict[str, List[Item]]:
        return self.store.snapshot()

    def get(self, item_id: ItemId) -> Optional[Item]:
        return self.store.get(item_id)

    @property
    def busy(self) -> bool:
        return bool(self._pending)

    # -------------------- gestures --------------------
    def start_drag(self, item_id: ItemId) -> bool:
        if self.drag.active:
            self.end_drag(dropped=False)
        return self.drag.start(item_id)

    def hover(self, over: ItemId) -> bool:
        return self.drag.hover(over)

    def hover_item(self, over_id: ItemId) -> bool:
        return self.drag.hover_item(over_id)

    def hover_bucket(self, bucket: str) -> bool:
        return self.drag.hover_bucket(bucket)

    def end_drag(self, dropped: bool = True) -> Optional["asyncio.Task[bool]"]:
        """End the gesture and schedule its commit; None when nothing changed."""
        gesture = self.drag.end(dropped)
        if gesture is None or not gesture.changed:
            return None
        return self.spawn(self.committer.commit(gesture))

    def move(self, item_id: ItemId, over: ItemId) -> Optional["asyncio.Task[bool]"]:
        """One-shot gesture: start, hover once, drop."""
        if not self.start_drag(item_id):
            return None
        self.hover(over)
        return self.end_drag()

    # -------------------- promotion --------------------
    async def toggle_important(self, item_id: ItemId) -> bool:
        return await self.promoter.toggle_important(item_id)

    # -------------------- CRUD --------------------
    async def add_item(self, title: str, bucket: str = "new", description: str = "", due_date: Optional[str] = None) -> Optional[Item]:
        fields: Dict[str, Any] = {"title": title, "bucket": bucket, "description": description}
        if due_date:
            fields["due_date"] = due_date
        try:
            item = await self.authority.create_item(fields)
        except AuthorityError as err:
            logger.warning("failed to add item %r: %s", title, err)
            return None
        self.store.add(item)
        return item

    async def update_item(self, item_id: ItemId, **fields: Any) -> Optional[Item]:
        """Edit descriptive fields; ordering fields belong to the engine."""
        owned = ORDERING_FIELDS.intersection(fields)
        if owned:
            raise ValueError(f"update_item cannot change ordering fields: {sorted(owned)}")
        try:
            item = await self.authority.update_item(item_id, fields)
        except AuthorityError as err:
            logger.warning("failed to update item %r: %s", item_id, err)
            return None
        # keep the local slot and ordering, take only the edited payload
        current = self.store.get(item_id)
        if current is not None:
            item.bucket, item.position, item.important = current.bucket, current.position, current.important
        self.store.put(item)
        return item

    async def delete_item(self, item_id: ItemId) -> bool:
        """Delete, then renumber the survivors so the bucket stays dense."""
        try:
            await self.authority.delete_item(item_id)
        except ItemNotFoundError as err:
            logger.warning("item %r already gone: %s; resyncing", item_id, err)
            await self.resyncer.resync()
            return False
        except AuthorityError as err:
            logger.warning("failed to delete item %r: %s", item_id, err)
            return False
        bucket = self.store.discard(item_id)
        if bucket is None:
            return True
        assignments = renumber_positions(self.store.sequence(bucket))
        self.store.apply_positions(assignments)
        if not assignments:
            return True
        try:
            await self.authority.reposition(assignments)
        except AuthorityError as err:
            logger.warning("failed to renumber %s after delete: %s; resyncing", bucket, err)
            await self.resyncer.resync()
        return True

    # -------------------- background work --------------------
    def spawn(self, coro: Awaitable[Any], recover: bool = True) -> "asyncio.Task[Any]":
        """Run ``coro`` in the background; an unexpected crash is logged
        and, when ``recover`` is set, followed by a resync.
        """
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._settle(t, recover))
        return task

    def _settle(self, task: "asyncio.Task[Any]", recover: bool) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("background task failed: %r", exc, exc_info=exc)
        if recover:
            self.spawn(self.resyncer.resync(), recover=False)

    async def wait_idle(self) -> None:
        """Wait until every scheduled commit has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_idle()
        await self.authority.close()

    # -------------------- display --------------------
    def display(self) -> None:
        for line in self.render(shutil.get_terminal_size((120, 30)).columns):
            print(line)

    def render(self, term_width: int) -> List[str]:
        columns = self.store.snapshot()
        widths = self._compute_column_widths(columns, term_width)
        wrapped = self._wrap_all_columns(columns, widths)
        return self._render(widths, wrapped)

    # ---- width calculation ----
    def _compute_column_widths(self, columns: Mapping[str, List[Item]], term_width: int) -> Dict[str, int]:
        sep_total = len(SEP) * (len(BUCKETS) - 1)
        widths: Dict[str, int] = {}
        for bucket in BUCKETS:
            longest = len(HEADER_TITLES[bucket])
            for item in columns[bucket]:
                prefix, _, title, _ = self._item_segments(item)
                longest = max(longest, len(prefix) + len(title))
            widths[bucket] = max(MIN_COL_WIDTH, longest)
        total = sum(widths.values()) + sep_total
        if total > term_width:
            target_space = max(term_width - sep_total, len(BUCKETS) * MIN_COL_WIDTH)
            while sum(widths.values()) > target_space:
                widest = max(BUCKETS, key=lambda b: widths[b])
                if widths[widest] <= MIN_COL_WIDTH:
                    break
                widths[widest] -= 1
        else:
            extra = term_width - total
            i = 0
            while extra > 0:
                widths[BUCKETS[i % len(BUCKETS)]] += 1
                extra -= 1
                i += 1
        return widths

    # ---- wrapping ----
    def _wrap_all_columns(self, columns: Mapping[str, List[Item]], widths: Mapping[str, int]) -> Dict[str, List[str]]:
        wrapped: Dict[str, List[str]] = {}
        for bucket in BUCKETS:
            if not columns[bucket]:
                wrapped[bucket] = [color('(empty)', EMPTY_COLOR)]
                continue
            acc: List[str] = []
            for item in columns[bucket]:
                acc.extend(self._wrap_item(item, widths[bucket]))
            wrapped[bucket] = acc
        return wrapped

    def _item_segments(self, item: Item) -> Tuple[str, str, str, str]:
        marker = STAR if item.important else ' '
        prefix_visible = f"{marker}{item.id}. "
        marker_colored = color(STAR, IMPORTANT_COLOR) if item.important else ' '
        prefix_colored = marker_colored + color(f"{item.id}.", ID_COLOR, BOLD) + ' '
        title_text = item.title if item.title else '<untitled>'
        return prefix_visible, prefix_colored, title_text, BUCKET_COLOR.get(item.bucket, '')

    def _wrap_item(self, item: Item, col_width: int) -> List[str]:
        prefix_visible, prefix_colored, title_text, bucket_col = self._item_segments(item)
        limit = max(1, col_width - len(prefix_visible))
        lines_raw: List[str] = []
        current = ''
        for word in title_text.split():
            candidate = word if not current else current + ' ' + word
            if len(candidate) <= limit:
                current = candidate
            else:
                if current:
                    lines_raw.append(current)
                current = word
        if current:
            lines_raw.append(current)
        indent = ' ' * len(prefix_visible)
        colored = [
            (prefix_colored if idx == 0 else indent) + color(raw_line, bucket_col)
            for idx, raw_line in enumerate(lines_raw)
        ]
        return colored if colored else [prefix_colored + color('<empty>', bucket_col)]

    # ---- rendering ----
    def _render(self, widths: Mapping[str, int], wrapped_lines: Mapping[str, List[str]]) -> List[str]:
        rows = max(len(wrapped_lines[b]) for b in BUCKETS)
        header_cells: List[str] = []
        for b in BUCKETS:
            h = color(HEADER_TITLES[b], HEADER_COLOR, BOLD)
            pad = widths[b] - self._visible_len(h)
            header_cells.append(h + ' ' * max(pad, 0))
        out = [SEP.join(header_cells), SEP.join(color('-' * widths[b], HEADER_COLOR) for b in BUCKETS)]
        for r in range(rows):
            row_cells: List[str] = []
            for b in BUCKETS:
                col_lines = wrapped_lines[b]
                if r < len(col_lines):
                    line = col_lines[r]
                    row_cells.append(line + ' ' * max(widths[b] - self._visible_len(line), 0))
                else:
                    row_cells.append(' ' * widths[b])
            out.append(SEP.join(row_cells))
        return out

    @staticmethod
    def _visible_len(s: str) -> int:
        return len(ANSI_RE.sub('', s))

    def __str__(self) -> str:
        return str(self.store)
