"""
In-memory board store with synchronous change notification.

Every mutator that changes state commits the change and then publishes to
all subscribers before returning. Mutators that find nothing to change
return without publishing: unknown ids, a duplicate label, a move to the
slot the card already holds, an update that leaves every field as it was,
and a reorder or sort that keeps the current order.

Cards and columns are replaced on write, never edited in place, so a
reference taken before a mutation keeps describing the old state.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .schema import (
    ArchivedCard,
    ArchivedColumn,
    Board,
    Card,
    Column,
    DEFAULT_LABELS,
    Label,
    Priority,
    Subtask,
    make_id,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

Listener = Callable[["BoardStore"], None]

# Fields update_card() accepts
CARD_FIELDS = {
    "title",
    "description",
    "priority",
    "due_date",
    "labels",
    "completed",
    "pinned",
    "subtasks",
}

PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
    Priority.NONE: 4,
}

# sort_column_cards() keys; sorted() is stable so ties keep column order
SORT_KEYS: Dict[str, Callable[[Card], Any]] = {
    "priority": lambda c: PRIORITY_RANK[c.priority],
    "due_date": lambda c: (c.due_date is None, c.due_date.timestamp() if c.due_date else 0.0),
    "title": lambda c: c.title.casefold(),
    "created": lambda c: -c.created_at.timestamp(),
}


class BoardStore:
    """Authoritative, observable state for boards, columns, cards and labels."""

    def __init__(self, labels: Optional[Iterable[Label]] = None):
        self._boards: Dict[str, Board] = {}
        self._columns: Dict[str, Column] = {}
        self._cards: Dict[str, Card] = {}
        self._archived: Dict[str, ArchivedCard] = {}
        self._archived_columns: Dict[str, ArchivedColumn] = {}
        self._labels: List[Label] = [
            replace(label) for label in (DEFAULT_LABELS if labels is None else labels)
        ]
        self._listeners: List[Listener] = []

    # ── Subscription ─────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"Store listener {listener!r} failed")

    # ── Reads ────────────────────────────────────────────────

    @property
    def boards(self) -> Dict[str, Board]:
        return self._boards

    @property
    def columns(self) -> Dict[str, Column]:
        return self._columns

    @property
    def cards(self) -> Dict[str, Card]:
        return self._cards

    @property
    def labels(self) -> List[Label]:
        return self._labels

    @property
    def archived(self) -> Dict[str, ArchivedCard]:
        return self._archived

    @property
    def archived_columns(self) -> Dict[str, ArchivedColumn]:
        return self._archived_columns

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def get_column(self, column_id: str) -> Optional[Column]:
        return self._columns.get(column_id)

    def get_label(self, label_id: str) -> Optional[Label]:
        for label in self._labels:
            if label.id == label_id:
                return label
        return None

    def cards_for_board(self, board_id: str) -> List[Card]:
        """Cards of a board in visual order (column order, then card order)."""
        board = self._boards.get(board_id)
        if not board:
            return []
        result = []
        for column_id in board.column_order:
            column = self._columns.get(column_id)
            if not column:
                continue
            result.extend(self._cards[cid] for cid in column.card_ids if cid in self._cards)
        return result

    # ── Boards ───────────────────────────────────────────────

    def create_board(self, title: str, board_id: Optional[str] = None) -> str:
        board_id = board_id or make_id()
        self._boards[board_id] = Board(id=board_id, title=title)
        self._publish()
        return board_id

    def delete_board(self, board_id: str) -> bool:
        """Delete a board with all of its columns and cards."""
        board = self._boards.pop(board_id, None)
        if not board:
            return False
        for column_id in board.column_order:
            column = self._columns.pop(column_id, None)
            if column:
                for card_id in column.card_ids:
                    self._cards.pop(card_id, None)
        self._publish()
        return True

    # ── Columns ──────────────────────────────────────────────

    def create_column(self, board_id: str, title: str, column_id: Optional[str] = None) -> Optional[str]:
        board = self._boards.get(board_id)
        if not board:
            return None
        column_id = column_id or make_id()
        self._columns[column_id] = Column(id=column_id, board_id=board_id, title=title)
        self._boards[board_id] = replace(
            board, column_order=board.column_order + [column_id], updated_at=utc_now()
        )
        self._publish()
        return column_id

    def delete_column(self, column_id: str) -> Optional[Tuple[Column, List[Card]]]:
        """Delete a column and its cards. Returns what was removed."""
        column = self._columns.pop(column_id, None)
        if not column:
            return None
        removed = [self._cards.pop(cid) for cid in column.card_ids if cid in self._cards]
        board = self._boards.get(column.board_id)
        if board:
            self._boards[board.id] = replace(
                board,
                column_order=[cid for cid in board.column_order if cid != column_id],
                updated_at=utc_now(),
            )
        self._publish()
        return column, removed

    # ── Cards ────────────────────────────────────────────────

    def create_card(self, column_id: str, title: str, card_id: Optional[str] = None) -> Optional[str]:
        """Create a card at the end of a column."""
        column = self._columns.get(column_id)
        if not column:
            return None
        card_id = card_id or make_id()
        self._cards[card_id] = Card(
            id=card_id,
            column_id=column_id,
            board_id=column.board_id,
            title=title,
        )
        self._set_card_ids(column, column.card_ids + [card_id])
        self._publish()
        return card_id

    def update_card(self, card_id: str, **updates) -> Optional[Card]:
        """
        Overwrite card fields. Marking a card completed also completes
        all of its subtasks.

        Raises ValueError for fields that cannot be updated this way.
        """
        unknown = set(updates) - CARD_FIELDS
        if unknown:
            raise ValueError(f"Cannot update card fields: {sorted(unknown)}")
        card = self._cards.get(card_id)
        if not card:
            return None

        if "priority" in updates and not isinstance(updates["priority"], Priority):
            updates["priority"] = Priority(updates["priority"])
        if "due_date" in updates:
            updates["due_date"] = parse_timestamp(updates["due_date"])
        if "labels" in updates:
            updates["labels"] = list(updates["labels"])
        if "subtasks" in updates:
            updates["subtasks"] = list(updates["subtasks"])

        updated = replace(card, **updates, updated_at=utc_now())
        if updates.get("completed") is True and updated.subtasks:
            updated.subtasks = [replace(s, completed=True) for s in updated.subtasks]
        if all(getattr(updated, name) == getattr(card, name) for name in CARD_FIELDS):
            return card
        self._cards[card_id] = updated
        self._publish()
        return updated

    def delete_card(self, card_id: str) -> Optional[Card]:
        card = self._cards.pop(card_id, None)
        if not card:
            return None
        self._detach(card)
        self._publish()
        return card

    def move_card(self, card_id: str, to_column_id: str, index: Optional[int] = None) -> bool:
        """
        Move a card into a column at index (clamped), or append when index is None.
        Reordering within the same column is allowed.
        """
        card = self._cards.get(card_id)
        target = self._columns.get(to_column_id)
        if not card or not target:
            return False

        if card.column_id != to_column_id:
            self._detach(card)
            target = self._columns[to_column_id]
        ids = [cid for cid in target.card_ids if cid != card_id]
        position = len(ids) if index is None else max(0, min(index, len(ids)))
        ids.insert(position, card_id)
        if card.column_id == to_column_id and ids == target.card_ids:
            return True

        self._set_card_ids(target, ids)
        self._cards[card_id] = replace(
            card, column_id=to_column_id, board_id=target.board_id, updated_at=utc_now()
        )
        self._publish()
        return True

    def duplicate_card(self, card_id: str) -> Optional[str]:
        """Copy a card right after the original; subtasks are reset."""
        card = self._cards.get(card_id)
        column = self._columns.get(card.column_id) if card else None
        if not card or not column:
            return None
        new_id = make_id()
        now = utc_now()
        self._cards[new_id] = replace(
            card,
            id=new_id,
            title=f"{card.title} (copy)",
            labels=list(card.labels),
            subtasks=[replace(s, id=make_id(), completed=False) for s in card.subtasks],
            completed=False,
            created_at=now,
            updated_at=now,
        )
        ids = list(column.card_ids)
        ids.insert(ids.index(card_id) + 1, new_id)
        self._set_card_ids(column, ids)
        self._publish()
        return new_id

    def paste_cards_to_column(self, card_ids: Iterable[str], column_id: str) -> List[str]:
        """
        Copy cards to the end of a column, in the given order.

        Copies get new ids, a " (copy)" title suffix, reset subtasks and
        are neither completed nor pinned. Unknown ids are skipped. Returns
        the new ids.
        """
        target = self._columns.get(column_id)
        if not target:
            return []
        now = utc_now()
        new_ids = []
        for card_id in card_ids:
            card = self._cards.get(card_id)
            if not card:
                continue
            new_id = make_id()
            self._cards[new_id] = replace(
                card,
                id=new_id,
                column_id=column_id,
                board_id=target.board_id,
                title=f"{card.title} (copy)",
                labels=list(card.labels),
                subtasks=[replace(s, id=make_id(), completed=False) for s in card.subtasks],
                completed=False,
                pinned=False,
                created_at=now,
                updated_at=now,
            )
            new_ids.append(new_id)
        if not new_ids:
            return []
        self._set_card_ids(target, target.card_ids + new_ids)
        self._publish()
        return new_ids

    def reorder_cards_in_column(self, column_id: str, card_ids: List[str]) -> bool:
        """
        Replace a column's card order.

        card_ids must hold exactly the column's current cards; anything else
        raises ValueError, since it would move cards between columns.
        """
        column = self._columns.get(column_id)
        if not column:
            return False
        card_ids = list(card_ids)
        if sorted(card_ids) != sorted(column.card_ids):
            raise ValueError(f"New order for column {column_id} must contain exactly its cards")
        if card_ids == column.card_ids:
            return True
        self._set_card_ids(column, card_ids)
        self._publish()
        return True

    def sort_column_cards(self, column_id: str, sort_by: str) -> bool:
        """
        Sort a column by "priority", "due_date", "title" or "created".

        Pinned cards stay on top in their current order. Priority sorts
        urgent first, due dates soonest first with undated cards last,
        created newest first.
        """
        if sort_by not in SORT_KEYS:
            raise ValueError(f"Unknown sort {sort_by!r}. Valid: {sorted(SORT_KEYS)}")
        column = self._columns.get(column_id)
        if not column:
            return False
        cards = [self._cards[cid] for cid in column.card_ids if cid in self._cards]
        pinned = [c.id for c in cards if c.pinned]
        unpinned = sorted((c for c in cards if not c.pinned), key=SORT_KEYS[sort_by])
        ids = pinned + [c.id for c in unpinned]
        if ids == column.card_ids:
            return True
        self._set_card_ids(column, ids)
        self._publish()
        return True

    # ── Subtasks ─────────────────────────────────────────────

    def add_subtask(self, card_id: str, title: str) -> Optional[str]:
        card = self._cards.get(card_id)
        if not card:
            return None
        subtask = Subtask(id=make_id(), title=title)
        self._cards[card_id] = replace(
            card, subtasks=card.subtasks + [subtask], updated_at=utc_now()
        )
        self._publish()
        return subtask.id

    def toggle_subtask(self, card_id: str, subtask_id: str) -> bool:
        card = self._cards.get(card_id)
        if not card or not any(s.id == subtask_id for s in card.subtasks):
            return False
        subtasks = [
            replace(s, completed=not s.completed) if s.id == subtask_id else s
            for s in card.subtasks
        ]
        self._cards[card_id] = replace(card, subtasks=subtasks, updated_at=utc_now())
        self._publish()
        return True

    def update_subtask(self, card_id: str, subtask_id: str, title: str) -> bool:
        card = self._cards.get(card_id)
        subtask = next((s for s in card.subtasks if s.id == subtask_id), None) if card else None
        if not subtask:
            return False
        if subtask.title == title:
            return True
        subtasks = [
            replace(s, title=title) if s.id == subtask_id else s
            for s in card.subtasks
        ]
        self._cards[card_id] = replace(card, subtasks=subtasks, updated_at=utc_now())
        self._publish()
        return True

    def delete_subtask(self, card_id: str, subtask_id: str) -> bool:
        card = self._cards.get(card_id)
        if not card or not any(s.id == subtask_id for s in card.subtasks):
            return False
        subtasks = [s for s in card.subtasks if s.id != subtask_id]
        self._cards[card_id] = replace(card, subtasks=subtasks, updated_at=utc_now())
        self._publish()
        return True

    # ── Card labels ──────────────────────────────────────────

    def add_label_to_card(self, card_id: str, label: Label) -> bool:
        """Attach a copy of label; a card never holds the same label id twice."""
        card = self._cards.get(card_id)
        if not card or card.has_label(label.id):
            return False
        self._cards[card_id] = replace(
            card, labels=card.labels + [replace(label)], updated_at=utc_now()
        )
        self._publish()
        return True

    def remove_label_from_card(self, card_id: str, label_id: str) -> bool:
        card = self._cards.get(card_id)
        if not card or not card.has_label(label_id):
            return False
        self._cards[card_id] = replace(
            card,
            labels=[label for label in card.labels if label.id != label_id],
            updated_at=utc_now(),
        )
        self._publish()
        return True

    # ── Global labels ────────────────────────────────────────

    def create_label(self, name: str, color: str, emoji: Optional[str] = None,
                     label_id: Optional[str] = None) -> str:
        label_id = label_id or make_id()
        self._labels = self._labels + [Label(id=label_id, name=name, color=color, emoji=emoji)]
        self._publish()
        return label_id

    def update_label(self, label_id: str, **updates) -> bool:
        """Rename/recolor a global label. Card copies are left as they are."""
        if not self.get_label(label_id):
            return False
        self._labels = [
            replace(label, **updates) if label.id == label_id else label
            for label in self._labels
        ]
        self._publish()
        return True

    def delete_label(self, label_id: str) -> bool:
        """Remove a global label and strip it from every card."""
        if not self.get_label(label_id):
            return False
        self._labels = [label for label in self._labels if label.id != label_id]
        for card_id, card in list(self._cards.items()):
            if card.has_label(label_id):
                self._cards[card_id] = replace(
                    card, labels=[label for label in card.labels if label.id != label_id]
                )
        self._publish()
        return True

    # ── Bulk operations (one notification each) ──────────────

    def bulk_set_priority(self, card_ids: Iterable[str], priority: Priority) -> int:
        now = utc_now()
        changed = 0
        for card_id in card_ids:
            card = self._cards.get(card_id)
            if card:
                self._cards[card_id] = replace(card, priority=priority, updated_at=now)
                changed += 1
        if changed:
            self._publish()
        return changed

    def bulk_set_completed(self, card_ids: Iterable[str], completed: bool) -> int:
        now = utc_now()
        changed = 0
        for card_id in card_ids:
            card = self._cards.get(card_id)
            if card:
                self._cards[card_id] = replace(card, completed=completed, updated_at=now)
                changed += 1
        if changed:
            self._publish()
        return changed

    def bulk_add_label(self, card_ids: Iterable[str], label: Label) -> int:
        now = utc_now()
        changed = 0
        for card_id in card_ids:
            card = self._cards.get(card_id)
            if card and not card.has_label(label.id):
                self._cards[card_id] = replace(
                    card, labels=card.labels + [replace(label)], updated_at=now
                )
                changed += 1
        if changed:
            self._publish()
        return changed

    def bulk_move_to_column(self, card_ids: Iterable[str], column_id: str) -> int:
        """Append the given cards to a column, keeping their relative order."""
        target = self._columns.get(column_id)
        if not target:
            return 0
        moving = [cid for cid in dict.fromkeys(card_ids) if cid in self._cards]
        if not moving:
            return 0
        now = utc_now()
        for card_id in moving:
            card = self._cards[card_id]
            self._detach(card)
            self._cards[card_id] = replace(
                card, column_id=column_id, board_id=target.board_id, updated_at=now
            )
        target = self._columns[column_id]
        self._set_card_ids(target, target.card_ids + moving)
        self._publish()
        return len(moving)

    def bulk_delete(self, card_ids: Iterable[str]) -> int:
        removed = 0
        for card_id in card_ids:
            card = self._cards.pop(card_id, None)
            if card:
                self._detach(card)
                removed += 1
        if removed:
            self._publish()
        return removed

    # ── Archive ──────────────────────────────────────────────

    def archive_card(self, card_id: str) -> Optional[ArchivedCard]:
        """Take a card off the board, remembering its column."""
        card = self._cards.pop(card_id, None)
        if not card:
            return None
        column = self._columns.get(card.column_id)
        entry = ArchivedCard(
            card=card,
            original_column_id=card.column_id,
            original_column_title=column.title if column else "",
        )
        self._archived[card_id] = entry
        self._detach(card)
        self._publish()
        return entry

    def restore_card(self, card_id: str) -> Optional[Card]:
        """
        Put an archived card back at the end of its original column, or the
        first column of its board when the original column is gone.
        """
        entry = self._archived.get(card_id)
        if not entry:
            return None
        column = self._columns.get(entry.original_column_id)
        if not column:
            board = self._boards.get(entry.card.board_id)
            first = board.column_order[0] if board and board.column_order else None
            column = self._columns.get(first) if first else None
        if not column:
            logger.warning(f"Cannot restore card {card_id}: board has no columns")
            return None

        del self._archived[card_id]
        card = replace(
            entry.card, column_id=column.id, board_id=column.board_id, updated_at=utc_now()
        )
        self._cards[card_id] = card
        self._set_card_ids(column, column.card_ids + [card_id])
        self._publish()
        return card

    def delete_archived_card(self, card_id: str) -> bool:
        """Drop an archived card for good."""
        if self._archived.pop(card_id, None) is None:
            return False
        self._publish()
        return True

    def archive_column(self, column_id: str) -> Optional[ArchivedColumn]:
        """Take a column and all of its cards off the board."""
        column = self._columns.pop(column_id, None)
        if not column:
            return None
        cards = [self._cards.pop(cid) for cid in column.card_ids if cid in self._cards]
        board = self._boards.get(column.board_id)
        if board:
            self._boards[board.id] = replace(
                board,
                column_order=[cid for cid in board.column_order if cid != column_id],
                updated_at=utc_now(),
            )
        entry = ArchivedColumn(column=column, cards=cards)
        self._archived_columns[column_id] = entry
        self._publish()
        return entry

    def restore_column(self, column_id: str) -> Optional[Column]:
        """
        Put an archived column back as the last column of its board, with
        its cards in their archived order.
        """
        entry = self._archived_columns.get(column_id)
        if not entry:
            return None
        board = self._boards.get(entry.column.board_id)
        if not board:
            logger.warning(f"Cannot restore column {column_id}: board {entry.column.board_id} is gone")
            return None

        del self._archived_columns[column_id]
        now = utc_now()
        card_ids = []
        for card in entry.cards:
            if card.id in self._cards:
                logger.warning(f"Skipping card {card.id} while restoring column {column_id}: id in use")
                continue
            self._cards[card.id] = replace(
                card, column_id=column_id, board_id=board.id, updated_at=now
            )
            card_ids.append(card.id)
        column = replace(entry.column, card_ids=card_ids, updated_at=now)
        self._columns[column_id] = column
        self._boards[board.id] = replace(
            board, column_order=board.column_order + [column_id], updated_at=now
        )
        self._publish()
        return column

    def delete_archived_column(self, column_id: str) -> bool:
        """Drop an archived column and its cards for good."""
        if self._archived_columns.pop(column_id, None) is None:
            return False
        self._publish()
        return True

    # ── Internals ────────────────────────────────────────────

    def _set_card_ids(self, column: Column, card_ids: List[str]) -> None:
        self._columns[column.id] = replace(column, card_ids=card_ids, updated_at=utc_now())

    def _detach(self, card: Card) -> None:
        """Remove a card id from its column list (no publish)."""
        column = self._columns.get(card.column_id)
        if column and card.id in column.card_ids:
            self._set_card_ids(column, [cid for cid in column.card_ids if cid != card.id])
