"""
Snapshot differ.

Compares the engine's retained snapshot with the live store and turns the
difference into discrete change events, one per detected change per card.

Detection order per card is fixed:

    created | moved, completed/uncompleted, priority, due date set,
    overdue, labels added, labels removed, all subtasks completed

A new card only reports card_created. Cards that disappeared (deleted,
archived) report nothing.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from flowzik.board.schema import Card, Priority
from flowzik.board.store import BoardStore
from .rules import TriggerType


@dataclass
class ChangeEvent:
    """One semantic change to one card."""
    kind: TriggerType
    card_id: str
    board_id: str

    # Context (set only for the kinds that carry it)
    from_column_id: Optional[str] = None   # card_moved_to
    to_column_id: Optional[str] = None     # card_moved_to
    priority: Optional[Priority] = None    # priority_changed (new value)
    label_id: Optional[str] = None         # label_added / label_removed


@dataclass
class Snapshot:
    """Engine-owned copy of card and column state, the baseline for the next diff."""
    cards: Dict[str, Card] = field(default_factory=dict)
    columns: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def capture(cls, store: BoardStore) -> "Snapshot":
        return cls(
            cards=copy.deepcopy(store.cards),
            columns={cid: list(col.card_ids) for cid, col in store.columns.items()},
        )


def _is_past(value: Optional[datetime], now: datetime) -> bool:
    return value is not None and value < now


def diff_card(old: Optional[Card], new: Card, now: datetime) -> List[ChangeEvent]:
    """All change events for a single card, in detection order."""
    def event(kind: TriggerType, **context) -> ChangeEvent:
        return ChangeEvent(kind=kind, card_id=new.id, board_id=new.board_id, **context)

    if old is None:
        return [event(TriggerType.CARD_CREATED)]

    events: List[ChangeEvent] = []

    if new.column_id != old.column_id:
        events.append(event(
            TriggerType.CARD_MOVED_TO,
            from_column_id=old.column_id,
            to_column_id=new.column_id,
        ))

    if new.completed and not old.completed:
        events.append(event(TriggerType.CARD_COMPLETED))
    elif old.completed and not new.completed:
        events.append(event(TriggerType.CARD_UNCOMPLETED))

    if new.priority != old.priority:
        events.append(event(TriggerType.PRIORITY_CHANGED, priority=new.priority))

    if new.due_date is not None and old.due_date is None:
        events.append(event(TriggerType.DUE_DATE_SET))

    # Edge-triggered: only when the due date itself changed into the past
    if new.due_date is not None and new.due_date != old.due_date:
        if _is_past(new.due_date, now) and not _is_past(old.due_date, now):
            events.append(event(TriggerType.DUE_DATE_OVERDUE))

    old_ids = set(old.label_ids())
    new_ids = set(new.label_ids())
    for label_id in dict.fromkeys(new.label_ids()):
        if label_id not in old_ids:
            events.append(event(TriggerType.LABEL_ADDED, label_id=label_id))
    for label_id in dict.fromkeys(old.label_ids()):
        if label_id not in new_ids:
            events.append(event(TriggerType.LABEL_REMOVED, label_id=label_id))

    if old.subtasks and new.subtasks:
        if new.all_subtasks_completed() and not old.all_subtasks_completed():
            events.append(event(TriggerType.ALL_SUBTASKS_COMPLETED))

    return events


def diff_snapshots(prev: Snapshot, cards: Dict[str, Card], now: datetime) -> List[ChangeEvent]:
    """
    Diff the retained snapshot against the live card mapping.

    Every event of the cycle is produced here, before any matching or
    action runs.
    """
    events: List[ChangeEvent] = []
    for card_id, card in cards.items():
        events.extend(diff_card(prev.cards.get(card_id), card, now))
    return events
