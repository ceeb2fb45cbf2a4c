"""Tests for ordered action application."""
from datetime import timedelta

import pytest
from conftest import NOW, fixed_clock

from flowzik.board.schema import Priority
from flowzik.automation.executor import ActionExecutor
from flowzik.automation.rules import (
    AddLabel,
    ClearDueDate,
    MarkCompleted,
    MarkUncompleted,
    MoveToColumn,
    RemoveLabel,
    SetDueDateDays,
    SetPriority,
)


@pytest.fixture
def executor(store):
    return ActionExecutor(store, clock=fixed_clock)


@pytest.fixture
def card_id(store):
    return store.create_card("todo", "Task")


def test_set_priority(store, executor, card_id):
    """Test set_priority"""
    assert executor.execute(card_id, [SetPriority(Priority.HIGH)]) == 1
    assert store.get_card(card_id).priority is Priority.HIGH


def test_add_label_resolves_global_label(store, executor, card_id):
    """Test add_label copies the current global label"""
    store.update_label("label-1", name="Defect")
    executor.execute(card_id, [AddLabel("label-1")])
    label = store.get_card(card_id).labels[0]
    assert label.id == "label-1"
    assert label.name == "Defect"


def test_add_label_missing_globally_is_noop(store, executor, card_id):
    """Test add_label with a deleted label is skipped"""
    assert executor.execute(card_id, [AddLabel("ghost")]) == 0
    assert store.get_card(card_id).labels == []


def test_add_label_twice_does_not_duplicate(store, executor, card_id):
    """Test add_label does not duplicate"""
    executor.execute(card_id, [AddLabel("label-1"), AddLabel("label-1")])
    assert store.get_card(card_id).label_ids() == ["label-1"]


def test_remove_label(store, executor, card_id):
    """Test remove_label"""
    store.add_label_to_card(card_id, store.get_label("label-2"))
    assert executor.execute(card_id, [RemoveLabel("label-2")]) == 1
    assert executor.execute(card_id, [RemoveLabel("label-2")]) == 0
    assert store.get_card(card_id).labels == []


def test_mark_completed_and_uncompleted(store, executor, card_id):
    """Test mark_completed and mark_uncompleted"""
    executor.execute(card_id, [MarkCompleted()])
    assert store.get_card(card_id).completed is True
    executor.execute(card_id, [MarkUncompleted()])
    assert store.get_card(card_id).completed is False


def test_move_to_column_appends(store, executor, card_id):
    """Test move_to_column appends to the target"""
    other = store.create_card("done", "Already there")
    executor.execute(card_id, [MoveToColumn("done")])
    assert store.columns["done"].card_ids == [other, card_id]
    assert store.columns["todo"].card_ids == []
    assert store.get_card(card_id).column_id == "done"


def test_move_to_current_column_is_noop(store, executor, card_id):
    """Test moving to the current column changes nothing"""
    second = store.create_card("todo", "Second")
    before = list(store.columns["todo"].card_ids)
    seen = []
    store.subscribe(lambda s: seen.append(1))

    assert executor.execute(card_id, [MoveToColumn("todo")]) == 0
    assert store.columns["todo"].card_ids == before == [card_id, second]
    assert seen == []


def test_move_to_missing_column_skipped(store, executor, card_id):
    """Test move_to_column with a missing column is skipped"""
    assert executor.execute(card_id, [MoveToColumn("gone")]) == 0
    assert store.get_card(card_id).column_id == "todo"


@pytest.mark.parametrize("days", [0, 3, -2])
def test_set_due_date_days(store, executor, card_id, days):
    """Test set_due_date_days counts from the clock"""
    executor.execute(card_id, [SetDueDateDays(days)])
    assert store.get_card(card_id).due_date == NOW + timedelta(days=days)


def test_clear_due_date(store, executor, card_id):
    """Test clear_due_date"""
    store.update_card(card_id, due_date=NOW)
    executor.execute(card_id, [ClearDueDate()])
    assert store.get_card(card_id).due_date is None


def test_actions_read_latest_state(store, executor, card_id):
    """Test each action sees the previous action's result"""
    # The move must start from "doing", where the first action put the card
    executor.execute(card_id, [MoveToColumn("doing"), MoveToColumn("done")])
    assert store.columns["doing"].card_ids == []
    assert store.columns["done"].card_ids == [card_id]


def test_invalid_action_does_not_roll_back_earlier_ones(store, executor, card_id):
    """Test skipped actions do not undo earlier ones"""
    applied = executor.execute(card_id, [
        SetPriority(Priority.URGENT),
        MoveToColumn("gone"),
        MarkCompleted(),
    ])
    card = store.get_card(card_id)
    assert applied == 2
    assert card.priority is Priority.URGENT
    assert card.completed is True


def test_deleted_card_skips_everything(store, executor, card_id):
    """Test actions on a deleted card are skipped"""
    store.delete_card(card_id)
    assert executor.execute(card_id, [SetPriority(Priority.HIGH), MarkCompleted()]) == 0
