#!/usr/bin/env python3
"""
Quick verification that the automation engine works end-to-end.
"""
import os
import tempfile
from datetime import timedelta

from flowzik.board.schema import Priority, utc_now
from flowzik.board.store import BoardStore
from flowzik.config import EngineConfig, configure_logging
from flowzik.automation.engine import AutomationEngine
from flowzik.automation.registry import AutomationRegistry
from flowzik.automation.rules import (
    AddLabel,
    CardCreated,
    CardMovedTo,
    DueDateOverdue,
    MarkCompleted,
    PriorityChanged,
    SetPriority,
)


def main():
    print("=" * 60)
    print("Flowzik Automation Verification")
    print("=" * 60)

    cfg = EngineConfig.load()
    configure_logging(cfg)

    # Board
    print("\n[1/6] Creating board...")
    store = BoardStore()
    board_id = store.create_board("Release")
    todo = store.create_column(board_id, "To do")
    store.create_column(board_id, "Doing")
    done = store.create_column(board_id, "Done")
    print(f"✅ Board {board_id} with {len(store.boards[board_id].column_order)} columns")

    # Rules, written to YAML and read back
    print("\n[2/6] Writing and loading automation rules...")
    registry = AutomationRegistry()
    registry.create_automation(board_id, "New cards are medium", CardCreated(), [SetPriority(Priority.MEDIUM)])
    registry.create_automation(board_id, "Done means done", CardMovedTo(done), [MarkCompleted()])
    registry.create_automation(board_id, "Tag urgent work", PriorityChanged(Priority.URGENT), [AddLabel("label-1")])
    registry.create_automation(board_id, "Escalate overdue", DueDateOverdue(), [SetPriority(Priority.URGENT)])

    fd, rules_path = tempfile.mkstemp(suffix=".yaml")
    os.close(fd)
    try:
        registry.dump_yaml(rules_path)
        cfg.rules_path = rules_path
        engine = AutomationEngine.from_config(cfg, store=store)
    finally:
        os.remove(rules_path)
    print(f"✅ {len(engine.registry)} automations loaded")

    # card_created
    print("\n[3/6] Creating a card...")
    card_id = store.create_card(todo, "Cut release branch")
    card = store.get_card(card_id)
    print(f"   → Priority: {card.priority.value}")
    if card.priority is not Priority.MEDIUM:
        print("❌ card_created rule did not fire")
        return

    # card_moved_to
    print("\n[4/6] Moving card to Done...")
    store.move_card(card_id, done)
    if not store.get_card(card_id).completed:
        print("❌ card_moved_to rule did not fire")
        return
    print("✅ Card marked completed")

    # due_date_overdue → priority_changed is not chained within one cycle
    print("\n[5/6] Setting a past due date...")
    store.update_card(card_id, due_date=utc_now() - timedelta(days=1))
    card = store.get_card(card_id)
    print(f"   → Priority: {card.priority.value}")
    print(f"   → Labels: {card.label_ids() or 'none'}")

    print("\n[6/6] Engine stats...")
    for key, value in engine.stats.items():
        print(f"   {key}: {value}")
    engine.stop()

    print("\n" + "=" * 60)
    print("✅ Automation engine verification complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
