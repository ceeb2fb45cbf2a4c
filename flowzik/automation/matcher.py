"""
Trigger matcher: which automations does a change event fire?

An automation fires when it is enabled, belongs to the card's board, its
trigger kind equals the event kind, and the trigger's discriminator (if it
has one) equals the event's value for it.
"""
from typing import Iterable, List

from .differ import ChangeEvent
from .rules import (
    Automation,
    CardMovedTo,
    LabelAdded,
    LabelRemoved,
    PriorityChanged,
    Trigger,
)


def trigger_matches(trigger: Trigger, event: ChangeEvent) -> bool:
    if trigger.kind is not event.kind:
        return False
    if isinstance(trigger, CardMovedTo):
        return trigger.column_id is None or trigger.column_id == event.to_column_id
    if isinstance(trigger, PriorityChanged):
        return trigger.priority is None or trigger.priority == event.priority
    if isinstance(trigger, (LabelAdded, LabelRemoved)):
        return trigger.label_id is None or trigger.label_id == event.label_id
    # Remaining kinds carry no discriminator
    return True


def match_automations(event: ChangeEvent, automations: Iterable[Automation]) -> List[Automation]:
    """Every automation the event fires, in the order given."""
    return [
        automation
        for automation in automations
        if automation.enabled
        and automation.board_id == event.board_id
        and trigger_matches(automation.trigger, event)
    ]
