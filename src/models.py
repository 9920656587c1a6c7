"""Data models for the kanban ordering engine.

Exposes the Item dataclass and the closed set of bucket keys. The wire
format (remote authority JSON) names the bucket field "status"; inside
the engine it is always called ``bucket``.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional, Tuple, Union

ItemId = Union[int, str]

BUCKETS: Tuple[str, ...] = ("new", "working", "complete")
HEADER_TITLES: Dict[str, str] = {"new": "NEW", "working": "WORKING", "complete": "COMPLETE"}

# fields the ordering engine owns; CRUD edits may not touch them
ORDERING_FIELDS = frozenset({"bucket", "position", "important"})

_WIRE_NAMES: Dict[str, str] = {
    "bucket": "status",
    "due_date": "dueDate",
    "start_date": "startDate",
    "project_id": "projectId",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


@dataclass
class Item:
    """A single work item.

    Fields:
        id: Opaque identifier assigned by the remote authority.
        bucket: One of BUCKETS.
        position: Dense zero-based rank inside the bucket.
        important: Starred flag; promotion pins the item to the bucket head.
        title, description, due_date, start_date, project_id: payload the
            ordering engine never reads.
        created_at: ISO timestamp, secondary sort key on load.
    """
    id: ItemId
    bucket: str = "new"
    position: int = 0
    important: bool = False
    title: str = ""
    description: str = ""
    due_date: Optional[str] = None
    start_date: Optional[str] = None
    project_id: Optional[ItemId] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> "Item":
        """Build an Item from an authority payload (camelCase keys)."""
        position = raw.get("position")
        return cls(
            id=raw["id"],
            bucket=str(raw.get("status") or "new"),
            position=int(position) if position is not None else 0,
            important=bool(raw.get("important", False)),
            title=raw.get("title") or "",
            description=raw.get("description") or "",
            due_date=raw.get("dueDate"),
            start_date=raw.get("startDate"),
            project_id=raw.get("projectId"),
            created_at=raw.get("createdAt"),
            updated_at=raw.get("updatedAt"),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {wire_name(k): v for k, v in asdict(self).items()}

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Item(id={self.id!r}, bucket={self.bucket}, position={self.position})"


def wire_name(field: str) -> str:
    """Map an Item attribute name to its authority JSON key."""
    return _WIRE_NAMES.get(field, field)


def sort_key(item: Item) -> Tuple[int, str]:
    """Load order used by the authority: position, then creation time."""
    return item.position, item.created_at or ""
