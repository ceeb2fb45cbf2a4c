"""
Action executor: apply an automation's actions to the store, in order.

Each action re-reads the card from the store right before it runs, so it
sees whatever earlier actions in the same list already did. There is no
rollback. An action whose card, label or column no longer exists is
skipped and the rest of the list still runs.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from flowzik.board.schema import utc_now
from flowzik.board.store import BoardStore
from .rules import (
    Action,
    AddLabel,
    ClearDueDate,
    MarkCompleted,
    MarkUncompleted,
    MoveToColumn,
    RemoveLabel,
    SetDueDateDays,
    SetPriority,
)

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Applies action lists against a BoardStore."""

    def __init__(self, store: BoardStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def execute(self, card_id: str, actions: Iterable[Action]) -> int:
        """Run actions in order. Returns how many were applied (not skipped)."""
        applied = 0
        for action in actions:
            if self.apply(card_id, action):
                applied += 1
        return applied

    def apply(self, card_id: str, action: Action) -> bool:
        card = self.store.get_card(card_id)
        if card is None:
            logger.debug(f"Skipping {action.kind.value}: card {card_id} is gone")
            return False

        if isinstance(action, SetPriority):
            self.store.update_card(card_id, priority=action.priority)
            return True

        if isinstance(action, AddLabel):
            label = self.store.get_label(action.label_id)
            if label is None:
                logger.debug(f"Skipping add_label: label {action.label_id} no longer exists")
                return False
            if card.has_label(label.id):
                return False
            return self.store.add_label_to_card(card_id, label)

        if isinstance(action, RemoveLabel):
            return self.store.remove_label_from_card(card_id, action.label_id)

        if isinstance(action, MarkCompleted):
            self.store.update_card(card_id, completed=True)
            return True

        if isinstance(action, MarkUncompleted):
            self.store.update_card(card_id, completed=False)
            return True

        if isinstance(action, MoveToColumn):
            if action.column_id == card.column_id:
                return False
            if self.store.get_column(action.column_id) is None:
                logger.debug(f"Skipping move_to_column: column {action.column_id} no longer exists")
                return False
            return self.store.move_card(card_id, action.column_id)

        if isinstance(action, SetDueDateDays):
            due = self.clock() + timedelta(days=action.days)
            self.store.update_card(card_id, due_date=due)
            return True

        if isinstance(action, ClearDueDate):
            self.store.update_card(card_id, due_date=None)
            return True

        raise TypeError(f"Unknown action {action!r}")
