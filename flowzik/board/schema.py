"""
Board schema: boards, columns, cards, labels and subtasks.

A board owns an ordered list of columns; a column owns an ordered list of
card ids. Each card points back at its column and board. The column's
card_ids order is the visual order of the board and the append position
used when a card is moved into it.

Cards carry denormalized copies of their labels. The global label list held
by the store is the source of truth for name/color lookups.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import uuid


def utc_now() -> datetime:
    """Current instant as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def make_id() -> str:
    return uuid.uuid4().hex[:12]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to UTC. Naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept an ISO string, a datetime or None."""
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Priority(Enum):
    """Card priority, lowest to highest."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: str) -> "Priority":
        try:
            return cls[str(value).upper()]
        except KeyError:
            return cls.NONE


@dataclass
class Label:
    """A named, colored tag."""
    id: str
    name: str
    color: str
    emoji: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name, "color": self.color}
        if self.emoji:
            data["emoji"] = self.emoji
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Label":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            color=data.get("color", ""),
            emoji=data.get("emoji"),
        )


DEFAULT_LABELS: List[Label] = [
    Label(id="label-1", name="Bug", color="#ef4444"),
    Label(id="label-2", name="Feature", color="#3b82f6"),
    Label(id="label-3", name="Improvement", color="#8b5cf6"),
    Label(id="label-4", name="Documentation", color="#06b6d4"),
    Label(id="label-5", name="Design", color="#ec4899"),
    Label(id="label-6", name="Testing", color="#22c55e"),
]


@dataclass
class Subtask:
    id: str
    title: str
    completed: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subtask":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            completed=bool(data.get("completed", False)),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )


@dataclass
class Card:
    """Core Kanban card."""

    # Identifiers
    id: str
    column_id: str
    board_id: str

    # Content
    title: str
    description: str = ""

    # Classification
    labels: List[Label] = field(default_factory=list)
    priority: Priority = Priority.NONE

    # Scheduling
    due_date: Optional[datetime] = None

    # Progress
    subtasks: List[Subtask] = field(default_factory=list)
    completed: bool = False
    pinned: bool = False

    # Metadata
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def label_ids(self) -> List[str]:
        return [label.id for label in self.labels]

    def has_label(self, label_id: str) -> bool:
        return any(label.id == label_id for label in self.labels)

    def all_subtasks_completed(self) -> bool:
        """True only when there is at least one subtask and all are done."""
        return bool(self.subtasks) and all(s.completed for s in self.subtasks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "column_id": self.column_id,
            "board_id": self.board_id,
            "title": self.title,
            "description": self.description,
            "labels": [label.to_dict() for label in self.labels],
            "priority": self.priority.value,
            "due_date": _iso(self.due_date),
            "subtasks": [s.to_dict() for s in self.subtasks],
            "completed": self.completed,
            "pinned": self.pinned,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        return cls(
            id=data["id"],
            column_id=data["column_id"],
            board_id=data["board_id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            labels=[Label.from_dict(item) for item in data.get("labels", [])],
            priority=Priority.from_str(data.get("priority", "none")),
            due_date=parse_timestamp(data.get("due_date")),
            subtasks=[Subtask.from_dict(s) for s in data.get("subtasks", [])],
            # completed is optional on older cards
            completed=bool(data.get("completed", False)),
            pinned=bool(data.get("pinned", False)),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(data.get("updated_at")) or utc_now(),
        )


@dataclass
class Column:
    """An ordered lane of cards."""
    id: str
    board_id: str
    title: str
    card_ids: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "board_id": self.board_id,
            "title": self.title,
            "card_ids": list(self.card_ids),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=data["id"],
            board_id=data["board_id"],
            title=data.get("title", ""),
            card_ids=list(data.get("card_ids", [])),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(data.get("updated_at")) or utc_now(),
        )


@dataclass
class Board:
    id: str
    title: str
    column_order: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "column_order": list(self.column_order),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class ArchivedCard:
    """A card taken off the board, remembering where it came from."""
    card: Card
    original_column_id: str
    original_column_title: str
    archived_at: datetime = field(default_factory=utc_now)


@dataclass
class ArchivedColumn:
    """A column taken off its board together with the cards it held."""
    column: Column
    cards: List[Card] = field(default_factory=list)
    archived_at: datetime = field(default_factory=utc_now)
