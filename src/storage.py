"""JSON-file authority for standalone terminal use.

Holds the system of record in a single pretty-printed JSON document:
``{"next_id": int, "items": [<wire item>, ...]}``. Every call reloads
the file, validates, applies and saves, so a batch either fully lands
or leaves the file untouched.

File access runs in a worker thread, one read-modify-write at a time.
"""
from __future__ import annotations
import asyncio
import json
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from authority import Assignments, Authority, ItemNotFoundError, RejectedError, TransportError
from config import DEFAULT_DATA_FILE
from models import BUCKETS, Item, ItemId, sort_key

Document = Dict[str, Any]
T = TypeVar("T")

# attributes a partial update may not overwrite
_PROTECTED = frozenset({"id", "created_at"})


class FileAuthority(Authority):
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_DATA_FILE
        self._lock = threading.Lock()

    # -------------------- persistence --------------------
    def _load(self) -> Document:
        """Read the document; missing file -> empty board."""
        if not self.path.exists():
            return {"next_id": 1, "items": []}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            raise TransportError(f"Cannot read {self.path}: {err}") from err
        data.setdefault("items", [])
        data.setdefault("next_id", max((i["id"] for i in data["items"]), default=0) + 1)
        return data

    def _save(self, data: Document) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(data, f, indent=4)
        except OSError as err:
            raise TransportError(f"Cannot write {self.path}: {err}") from err

    @staticmethod
    def _find(data: Document, item_id: ItemId) -> Dict[str, Any]:
        for raw in data["items"]:
            if raw["id"] == item_id:
                return raw
        raise ItemNotFoundError(item_id)

    def _transact(self, operation: Callable[[Document], T], save: bool) -> T:
        with self._lock:
            data = self._load()
            result = operation(data)
            if save:
                self._save(data)
            return result

    async def _run(self, operation: Callable[[Document], T], save: bool = True) -> T:
        """Load, apply ``operation`` and save off the event loop.

        An exception from ``operation`` skips the save.
        """
        return await asyncio.to_thread(self._transact, operation, save)

    # -------------------- contract --------------------
    async def fetch_items(self) -> List[Item]:
        raw_items = await self._run(lambda data: data["items"], save=False)
        items = [Item.from_wire(raw) for raw in raw_items]
        items.sort(key=sort_key)
        return items

    async def update_item(self, item_id: ItemId, changes: Mapping[str, Any]) -> Item:
        def apply(data: Document) -> Item:
            raw = self._find(data, item_id)
            item = Item.from_wire(raw)
            for field, value in changes.items():
                if field in _PROTECTED or not hasattr(item, field):
                    continue
                setattr(item, field, value)
            if item.bucket not in BUCKETS:
                raise RejectedError(f"Unknown bucket: {item.bucket}")
            item.updated_at = datetime.now().isoformat()
            raw.clear()
            raw.update(item.to_wire())
            return item

        return await self._run(apply)

    async def reposition(self, assignments: Assignments) -> None:
        assignments = list(assignments)

        def apply(data: Document) -> None:
            targets = []
            for item_id, position in assignments:
                if not isinstance(position, int) or position < 0:
                    raise RejectedError(f"Invalid position for {item_id}: {position!r}")
                targets.append((self._find(data, item_id), position))
            for raw, position in targets:
                raw["position"] = position

        await self._run(apply)

    async def toggle_important(self, item_id: ItemId) -> Item:
        def apply(data: Document) -> Item:
            raw = self._find(data, item_id)
            raw["important"] = not raw.get("important", False)
            return Item.from_wire(raw)

        return await self._run(apply)

    async def create_item(self, fields: Mapping[str, Any]) -> Item:
        bucket = fields.get("bucket") or "new"
        if bucket not in BUCKETS:
            raise RejectedError(f"Unknown bucket: {bucket}")

        def apply(data: Document) -> Item:
            today = date.today().isoformat()
            now = datetime.now().isoformat()
            last = max((r.get("position", 0) for r in data["items"] if r.get("status") == bucket), default=-1)
            item = Item(
                id=data["next_id"],
                bucket=bucket,
                position=last + 1,
                title=fields.get("title") or "",
                description=fields.get("description") or "",
                due_date=fields.get("due_date") or today,
                start_date=today,
                project_id=fields.get("project_id"),
                created_at=now,
                updated_at=now,
            )
            data["next_id"] += 1
            data["items"].append(item.to_wire())
            return item

        return await self._run(apply)

    async def delete_item(self, item_id: ItemId) -> None:
        await self._run(lambda data: data["items"].remove(self._find(data, item_id)))
