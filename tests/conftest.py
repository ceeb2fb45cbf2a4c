"""Shared fixtures for board store and automation engine tests."""

from datetime import datetime, timezone

import pytest

from flowzik.board.store import BoardStore
from flowzik.automation.engine import AutomationEngine
from flowzik.automation.registry import AutomationRegistry

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def store():
    """Board "b1" with columns todo / doing / done, plus board "b2" with "inbox"."""
    s = BoardStore()
    s.create_board("Main", board_id="b1")
    s.create_column("b1", "To do", column_id="todo")
    s.create_column("b1", "Doing", column_id="doing")
    s.create_column("b1", "Done", column_id="done")
    s.create_board("Other", board_id="b2")
    s.create_column("b2", "Inbox", column_id="inbox")
    return s


@pytest.fixture
def registry():
    return AutomationRegistry()


@pytest.fixture
def engine(store, registry):
    eng = AutomationEngine(store, registry, clock=fixed_clock)
    eng.start()
    yield eng
    eng.stop()


@pytest.fixture
def writes(store):
    """Count every store notification."""
    calls = []
    store.subscribe(lambda s: calls.append(1))
    return calls
