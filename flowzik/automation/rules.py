"""
Automation rules: the trigger and action catalog.

An automation is one trigger plus an ordered list of actions, scoped to a
single board. Triggers and actions are closed sets; each kind is its own
frozen dataclass carrying only the parameters that kind needs.

Trigger parameters are optional discriminators. When present they narrow
the match (e.g. CardMovedTo("done") only fires for moves into "done");
when absent the trigger matches any value.

Rules round-trip through plain dicts so they can be kept in YAML:

    trigger: {type: card_moved_to, column_id: done}
    actions:
      - {type: mark_completed}
      - {type: set_due_date_days, days: 3}
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from flowzik.board.schema import Priority, make_id, parse_timestamp, utc_now


class RuleValidationError(Exception):
    """Raised when a trigger, action or automation payload is malformed."""
    pass


# ═══════════════════════════════════════════════════════════════
# KINDS: CLOSED SETS
# ═══════════════════════════════════════════════════════════════

class TriggerType(Enum):
    """Every change the differ can report, and every trigger kind."""
    CARD_CREATED = "card_created"
    CARD_MOVED_TO = "card_moved_to"
    CARD_COMPLETED = "card_completed"
    CARD_UNCOMPLETED = "card_uncompleted"
    PRIORITY_CHANGED = "priority_changed"
    DUE_DATE_SET = "due_date_set"
    DUE_DATE_OVERDUE = "due_date_overdue"
    LABEL_ADDED = "label_added"
    LABEL_REMOVED = "label_removed"
    ALL_SUBTASKS_COMPLETED = "all_subtasks_completed"


class ActionType(Enum):
    SET_PRIORITY = "set_priority"
    ADD_LABEL = "add_label"
    REMOVE_LABEL = "remove_label"
    MARK_COMPLETED = "mark_completed"
    MARK_UNCOMPLETED = "mark_uncompleted"
    MOVE_TO_COLUMN = "move_to_column"
    SET_DUE_DATE_DAYS = "set_due_date_days"
    CLEAR_DUE_DATE = "clear_due_date"


# ═══════════════════════════════════════════════════════════════
# TRIGGERS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CardCreated:
    kind: ClassVar[TriggerType] = TriggerType.CARD_CREATED


@dataclass(frozen=True)
class CardMovedTo:
    kind: ClassVar[TriggerType] = TriggerType.CARD_MOVED_TO
    column_id: Optional[str] = None   # destination column


@dataclass(frozen=True)
class CardCompleted:
    kind: ClassVar[TriggerType] = TriggerType.CARD_COMPLETED


@dataclass(frozen=True)
class CardUncompleted:
    kind: ClassVar[TriggerType] = TriggerType.CARD_UNCOMPLETED


@dataclass(frozen=True)
class PriorityChanged:
    kind: ClassVar[TriggerType] = TriggerType.PRIORITY_CHANGED
    priority: Optional[Priority] = None   # new priority


@dataclass(frozen=True)
class DueDateSet:
    kind: ClassVar[TriggerType] = TriggerType.DUE_DATE_SET


@dataclass(frozen=True)
class DueDateOverdue:
    kind: ClassVar[TriggerType] = TriggerType.DUE_DATE_OVERDUE


@dataclass(frozen=True)
class LabelAdded:
    kind: ClassVar[TriggerType] = TriggerType.LABEL_ADDED
    label_id: Optional[str] = None


@dataclass(frozen=True)
class LabelRemoved:
    kind: ClassVar[TriggerType] = TriggerType.LABEL_REMOVED
    label_id: Optional[str] = None


@dataclass(frozen=True)
class AllSubtasksCompleted:
    kind: ClassVar[TriggerType] = TriggerType.ALL_SUBTASKS_COMPLETED


Trigger = Union[
    CardCreated,
    CardMovedTo,
    CardCompleted,
    CardUncompleted,
    PriorityChanged,
    DueDateSet,
    DueDateOverdue,
    LabelAdded,
    LabelRemoved,
    AllSubtasksCompleted,
]

TRIGGER_CLASSES: Dict[TriggerType, Type] = {
    cls.kind: cls
    for cls in (
        CardCreated, CardMovedTo, CardCompleted, CardUncompleted, PriorityChanged,
        DueDateSet, DueDateOverdue, LabelAdded, LabelRemoved, AllSubtasksCompleted,
    )
}


# ═══════════════════════════════════════════════════════════════
# ACTIONS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SetPriority:
    priority: Priority
    kind: ClassVar[ActionType] = ActionType.SET_PRIORITY


@dataclass(frozen=True)
class AddLabel:
    label_id: str
    kind: ClassVar[ActionType] = ActionType.ADD_LABEL


@dataclass(frozen=True)
class RemoveLabel:
    label_id: str
    kind: ClassVar[ActionType] = ActionType.REMOVE_LABEL


@dataclass(frozen=True)
class MarkCompleted:
    kind: ClassVar[ActionType] = ActionType.MARK_COMPLETED


@dataclass(frozen=True)
class MarkUncompleted:
    kind: ClassVar[ActionType] = ActionType.MARK_UNCOMPLETED


@dataclass(frozen=True)
class MoveToColumn:
    column_id: str
    kind: ClassVar[ActionType] = ActionType.MOVE_TO_COLUMN


@dataclass(frozen=True)
class SetDueDateDays:
    days: int   # may be negative
    kind: ClassVar[ActionType] = ActionType.SET_DUE_DATE_DAYS


@dataclass(frozen=True)
class ClearDueDate:
    kind: ClassVar[ActionType] = ActionType.CLEAR_DUE_DATE


Action = Union[
    SetPriority,
    AddLabel,
    RemoveLabel,
    MarkCompleted,
    MarkUncompleted,
    MoveToColumn,
    SetDueDateDays,
    ClearDueDate,
]

ACTION_CLASSES: Dict[ActionType, Type] = {
    cls.kind: cls
    for cls in (
        SetPriority, AddLabel, RemoveLabel, MarkCompleted, MarkUncompleted,
        MoveToColumn, SetDueDateDays, ClearDueDate,
    )
}


# ═══════════════════════════════════════════════════════════════
# AUTOMATION
# ═══════════════════════════════════════════════════════════════

@dataclass
class Automation:
    """A user-defined rule: one trigger, an ordered list of actions."""
    id: str
    board_id: str
    name: str
    trigger: Trigger
    actions: List[Action] = field(default_factory=list)
    enabled: bool = True
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, board_id: str, name: str, trigger: Trigger,
               actions: List[Action]) -> "Automation":
        return cls(id=make_id(), board_id=board_id, name=name,
                   trigger=trigger, actions=list(actions))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "board_id": self.board_id,
            "name": self.name,
            "enabled": self.enabled,
            "trigger": trigger_to_dict(self.trigger),
            "actions": [action_to_dict(a) for a in self.actions],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Automation":
        if not isinstance(data, dict):
            raise RuleValidationError(f"Automation must be a mapping, got {type(data).__name__}")
        board_id = data.get("board_id")
        if not board_id:
            raise RuleValidationError(f"Automation {data.get('name', '?')!r} has no board_id")
        if "trigger" not in data:
            raise RuleValidationError(f"Automation {data.get('name', '?')!r} has no trigger")
        actions = data.get("actions") or []
        if not isinstance(actions, list):
            raise RuleValidationError("actions must be a list")
        try:
            created_at = parse_timestamp(data.get("created_at")) or utc_now()
        except ValueError as e:
            raise RuleValidationError(f"Bad created_at: {e}") from e
        return cls(
            id=str(data.get("id") or make_id()),
            board_id=str(board_id),
            name=str(data.get("name", "")),
            enabled=bool(data.get("enabled", True)),
            trigger=trigger_from_dict(data["trigger"]),
            actions=[action_from_dict(a) for a in actions],
            created_at=created_at,
        )


# ── Serialization helpers ────────────────────────────────────

def _kind_of(data: Any, enum_cls: Type[Enum]) -> Enum:
    if not isinstance(data, dict) or "type" not in data:
        raise RuleValidationError(f"Expected a mapping with a 'type' key, got {data!r}")
    try:
        return enum_cls(data["type"])
    except ValueError:
        valid = [k.value for k in enum_cls]
        raise RuleValidationError(f"Unknown {enum_cls.__name__} {data['type']!r}. Valid: {valid}")


def _priority(value: Any) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise RuleValidationError(f"Unknown priority {value!r}")


def trigger_to_dict(trigger: Trigger) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": trigger.kind.value}
    if isinstance(trigger, CardMovedTo) and trigger.column_id:
        data["column_id"] = trigger.column_id
    elif isinstance(trigger, PriorityChanged) and trigger.priority:
        data["priority"] = trigger.priority.value
    elif isinstance(trigger, (LabelAdded, LabelRemoved)) and trigger.label_id:
        data["label_id"] = trigger.label_id
    return data


def trigger_from_dict(data: Dict[str, Any]) -> Trigger:
    """Build a trigger; parameters that do not belong to its kind are ignored."""
    kind = _kind_of(data, TriggerType)
    if kind is TriggerType.CARD_MOVED_TO:
        return CardMovedTo(column_id=data.get("column_id") or None)
    if kind is TriggerType.PRIORITY_CHANGED:
        value = data.get("priority")
        return PriorityChanged(priority=_priority(value) if value else None)
    if kind is TriggerType.LABEL_ADDED:
        return LabelAdded(label_id=data.get("label_id") or None)
    if kind is TriggerType.LABEL_REMOVED:
        return LabelRemoved(label_id=data.get("label_id") or None)
    return TRIGGER_CLASSES[kind]()


def action_to_dict(action: Action) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": action.kind.value}
    if isinstance(action, SetPriority):
        data["priority"] = action.priority.value
    elif isinstance(action, (AddLabel, RemoveLabel)):
        data["label_id"] = action.label_id
    elif isinstance(action, MoveToColumn):
        data["column_id"] = action.column_id
    elif isinstance(action, SetDueDateDays):
        data["days"] = action.days
    return data


def _required(data: Dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise RuleValidationError(f"Action {data['type']!r} requires {key!r}")
    return value


def action_from_dict(data: Dict[str, Any]) -> Action:
    kind = _kind_of(data, ActionType)
    if kind is ActionType.SET_PRIORITY:
        return SetPriority(priority=_priority(_required(data, "priority")))
    if kind is ActionType.ADD_LABEL:
        return AddLabel(label_id=str(_required(data, "label_id")))
    if kind is ActionType.REMOVE_LABEL:
        return RemoveLabel(label_id=str(_required(data, "label_id")))
    if kind is ActionType.MOVE_TO_COLUMN:
        return MoveToColumn(column_id=str(_required(data, "column_id")))
    if kind is ActionType.SET_DUE_DATE_DAYS:
        days = _required(data, "days")
        if isinstance(days, bool) or not isinstance(days, int):
            raise RuleValidationError(f"days must be an integer, got {days!r}")
        return SetDueDateDays(days=days)
    return ACTION_CLASSES[kind]()
