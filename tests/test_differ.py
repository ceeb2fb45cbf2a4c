"""Tests for the snapshot differ."""
from dataclasses import replace
from datetime import timedelta

from conftest import NOW

from flowzik.board.schema import Card, Label, Priority, Subtask
from flowzik.automation.differ import Snapshot, diff_card, diff_snapshots
from flowzik.automation.rules import TriggerType

BUG = Label(id="A", name="A", color="#f00")
FEATURE = Label(id="B", name="B", color="#0f0")
DOCS = Label(id="C", name="C", color="#00f")


def make_card(**kwargs) -> Card:
    defaults = dict(id="c1", column_id="todo", board_id="b1", title="Card")
    defaults.update(kwargs)
    return Card(**defaults)


def kinds(events):
    return [e.kind for e in events]


class TestDiffCard:

    def test_new_card_only_reports_created(self):
        """Test a new card only reports card_created"""
        card = make_card(priority=Priority.HIGH, labels=[BUG], completed=True)
        assert kinds(diff_card(None, card, NOW)) == [TriggerType.CARD_CREATED]

    def test_unchanged_card_reports_nothing(self):
        """Test untracked field edits report nothing"""
        card = make_card()
        assert diff_card(card, replace(card, title="Renamed"), NOW) == []

    def test_moved(self):
        """Test a column change reports card_moved_to"""
        old = make_card()
        events = diff_card(old, replace(old, column_id="done"), NOW)
        assert kinds(events) == [TriggerType.CARD_MOVED_TO]
        assert events[0].from_column_id == "todo"
        assert events[0].to_column_id == "done"

    def test_completed_and_uncompleted(self):
        """Test completion flips in both directions"""
        old = make_card()
        done = replace(old, completed=True)
        assert kinds(diff_card(old, done, NOW)) == [TriggerType.CARD_COMPLETED]
        assert kinds(diff_card(done, old, NOW)) == [TriggerType.CARD_UNCOMPLETED]

    def test_priority_changed_carries_new_value(self):
        """Test priority_changed carries the new priority"""
        old = make_card(priority=Priority.LOW)
        events = diff_card(old, replace(old, priority=Priority.URGENT), NOW)
        assert kinds(events) == [TriggerType.PRIORITY_CHANGED]
        assert events[0].priority is Priority.URGENT

    def test_due_date_set_in_future(self):
        """Test setting a future due date"""
        old = make_card()
        new = replace(old, due_date=NOW + timedelta(days=2))
        assert kinds(diff_card(old, new, NOW)) == [TriggerType.DUE_DATE_SET]

    def test_due_date_set_in_past_is_also_overdue(self):
        """Test setting a past due date is also overdue"""
        old = make_card()
        new = replace(old, due_date=NOW - timedelta(days=1))
        assert kinds(diff_card(old, new, NOW)) == [
            TriggerType.DUE_DATE_SET,
            TriggerType.DUE_DATE_OVERDUE,
        ]

    def test_due_date_moved_from_future_to_past_is_overdue(self):
        """Test moving a due date into the past"""
        old = make_card(due_date=NOW + timedelta(days=1))
        new = replace(old, due_date=NOW - timedelta(hours=1))
        assert kinds(diff_card(old, new, NOW)) == [TriggerType.DUE_DATE_OVERDUE]

    def test_due_date_moved_between_past_values_not_overdue_again(self):
        """Test moving between past due dates does not refire"""
        old = make_card(due_date=NOW - timedelta(days=3))
        new = replace(old, due_date=NOW - timedelta(days=1))
        assert diff_card(old, new, NOW) == []

    def test_past_due_date_unchanged_does_not_refire(self):
        """Test an untouched past due date does not refire"""
        old = make_card(due_date=NOW - timedelta(days=1))
        assert diff_card(old, replace(old, title="edit"), NOW) == []

    def test_due_date_cleared_reports_nothing(self):
        """Test clearing a due date reports nothing"""
        old = make_card(due_date=NOW + timedelta(days=1))
        assert diff_card(old, replace(old, due_date=None), NOW) == []

    def test_label_diff(self):
        """Test added and removed labels are both reported"""
        old = make_card(labels=[BUG, FEATURE])
        new = replace(old, labels=[FEATURE, DOCS])
        events = diff_card(old, new, NOW)
        added = [e.label_id for e in events if e.kind is TriggerType.LABEL_ADDED]
        removed = [e.label_id for e in events if e.kind is TriggerType.LABEL_REMOVED]
        assert added == ["C"]
        assert removed == ["A"]

    def test_label_diff_uses_ids_not_copies(self):
        """Test label copies are compared by id"""
        old = make_card(labels=[BUG])
        renamed = replace(BUG, name="Renamed", color="#000")
        assert diff_card(old, replace(old, labels=[renamed]), NOW) == []

    def test_one_event_per_added_label(self):
        """Test one event per added label"""
        old = make_card()
        new = replace(old, labels=[BUG, FEATURE, DOCS])
        events = diff_card(old, new, NOW)
        assert [e.label_id for e in events] == ["A", "B", "C"]

    def test_all_subtasks_completed(self):
        """Test finishing the last subtask"""
        old = make_card(subtasks=[Subtask("s1", "a", True), Subtask("s2", "b", False)])
        new = replace(old, subtasks=[Subtask("s1", "a", True), Subtask("s2", "b", True)])
        assert kinds(diff_card(old, new, NOW)) == [TriggerType.ALL_SUBTASKS_COMPLETED]

    def test_all_subtasks_completed_needs_subtasks_before(self):
        """Test the first subtask arriving complete does not count"""
        old = make_card()
        new = replace(old, subtasks=[Subtask("s1", "a", True)])
        assert diff_card(old, new, NOW) == []

    def test_all_subtasks_already_complete_does_not_refire(self):
        """Test already complete subtasks do not refire"""
        old = make_card(subtasks=[Subtask("s1", "a", True)])
        new = replace(old, subtasks=[Subtask("s1", "a", True), Subtask("s2", "b", True)])
        assert diff_card(old, new, NOW) == []

    def test_detection_order(self):
        """Test events come out in detection order"""
        old = make_card(labels=[BUG], subtasks=[Subtask("s1", "a", False)])
        new = replace(
            old,
            column_id="done",
            completed=True,
            priority=Priority.HIGH,
            due_date=NOW - timedelta(days=1),
            labels=[FEATURE],
            subtasks=[Subtask("s1", "a", True)],
        )
        assert kinds(diff_card(old, new, NOW)) == [
            TriggerType.CARD_MOVED_TO,
            TriggerType.CARD_COMPLETED,
            TriggerType.PRIORITY_CHANGED,
            TriggerType.DUE_DATE_SET,
            TriggerType.DUE_DATE_OVERDUE,
            TriggerType.LABEL_ADDED,
            TriggerType.LABEL_REMOVED,
            TriggerType.ALL_SUBTASKS_COMPLETED,
        ]

    def test_events_carry_board(self):
        """Test events carry the card and board ids"""
        old = make_card(board_id="b2")
        events = diff_card(old, replace(old, completed=True), NOW)
        assert events[0].board_id == "b2"
        assert events[0].card_id == "c1"


class TestDiffSnapshots:

    def test_removed_cards_emit_nothing(self):
        """Test removed cards report nothing"""
        card = make_card()
        prev = Snapshot(cards={"c1": card})
        assert diff_snapshots(prev, {}, NOW) == []

    def test_events_for_every_changed_card(self):
        """Test every changed card is reported"""
        a = make_card(id="a")
        b = make_card(id="b")
        prev = Snapshot(cards={"a": a, "b": b})
        now_cards = {"a": replace(a, completed=True), "b": b, "c": make_card(id="c")}
        events = diff_snapshots(prev, now_cards, NOW)
        assert sorted((e.card_id, e.kind.value) for e in events) == [
            ("a", "card_completed"),
            ("c", "card_created"),
        ]

    def test_capture_is_independent_of_store(self, store):
        """Test snapshots do not follow later store changes"""
        card_id = store.create_card("todo", "A")
        snap = Snapshot.capture(store)
        store.update_card(card_id, priority=Priority.HIGH)
        store.move_card(card_id, "done")
        assert snap.cards[card_id].priority is Priority.NONE
        assert snap.columns["todo"] == [card_id]
        assert snap.columns["done"] == []
