"""Tests for trigger matching and board scoping."""
import pytest

from flowzik.board.schema import Priority
from flowzik.automation.differ import ChangeEvent
from flowzik.automation.matcher import match_automations, trigger_matches
from flowzik.automation.rules import (
    Automation,
    CardCompleted,
    CardCreated,
    CardMovedTo,
    LabelAdded,
    LabelRemoved,
    MarkCompleted,
    PriorityChanged,
    TriggerType,
)


def moved(to_column: str, board_id: str = "b1") -> ChangeEvent:
    return ChangeEvent(
        kind=TriggerType.CARD_MOVED_TO, card_id="c1", board_id=board_id,
        from_column_id="todo", to_column_id=to_column,
    )


def rule(trigger, board_id="b1", enabled=True) -> Automation:
    automation = Automation.create(board_id, "rule", trigger, [MarkCompleted()])
    automation.enabled = enabled
    return automation


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Discriminators
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.parametrize("destination", ["todo", "doing", "done", "inbox"])
def test_moved_to_without_column_matches_any_destination(destination):
    """Test card_moved_to without a column matches any move"""
    assert trigger_matches(CardMovedTo(), moved(destination))


@pytest.mark.parametrize("destination,expected", [
    ("done", True),
    ("doing", False),
    ("todo", False),
])
def test_moved_to_with_column_matches_only_that_destination(destination, expected):
    """Test card_moved_to with a column matches that column only"""
    assert trigger_matches(CardMovedTo("done"), moved(destination)) is expected


def test_moved_to_matches_destination_not_origin():
    """Test card_moved_to compares the destination"""
    event = moved("doing")
    assert not trigger_matches(CardMovedTo("todo"), event)


@pytest.mark.parametrize("trigger_priority,event_priority,expected", [
    (None, Priority.LOW, True),
    (None, Priority.NONE, True),
    (Priority.HIGH, Priority.HIGH, True),
    (Priority.HIGH, Priority.URGENT, False),
])
def test_priority_changed(trigger_priority, event_priority, expected):
    """Test priority_changed with and without a priority"""
    event = ChangeEvent(kind=TriggerType.PRIORITY_CHANGED, card_id="c1", board_id="b1",
                        priority=event_priority)
    assert trigger_matches(PriorityChanged(trigger_priority), event) is expected


@pytest.mark.parametrize("trigger_cls,kind", [
    (LabelAdded, TriggerType.LABEL_ADDED),
    (LabelRemoved, TriggerType.LABEL_REMOVED),
])
def test_label_triggers(trigger_cls, kind):
    """Test label triggers with and without a label"""
    event = ChangeEvent(kind=kind, card_id="c1", board_id="b1", label_id="label-1")
    assert trigger_matches(trigger_cls(), event)
    assert trigger_matches(trigger_cls("label-1"), event)
    assert not trigger_matches(trigger_cls("label-2"), event)


def test_kind_must_match():
    """Test the trigger kind must match the event"""
    event = ChangeEvent(kind=TriggerType.LABEL_ADDED, card_id="c1", board_id="b1", label_id="x")
    assert not trigger_matches(LabelRemoved(), event)
    assert not trigger_matches(CardCreated(), event)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scoping and selection
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_other_board_never_matches():
    """Test automations never match another board"""
    a = rule(CardMovedTo(), board_id="b1")
    assert match_automations(moved("inbox", board_id="b2"), [a]) == []


def test_disabled_never_matches():
    """Test disabled automations never match"""
    a = rule(CardMovedTo(), enabled=False)
    assert match_automations(moved("done"), [a]) == []


def test_all_matching_automations_returned_in_order():
    """Test every match is returned in registry order"""
    a = rule(CardMovedTo())
    b = rule(CardCompleted())
    c = rule(CardMovedTo("done"))
    d = rule(CardMovedTo("doing"))
    assert match_automations(moved("done"), [a, b, c, d]) == [a, c]
