"""
Automation registry: the user's rules, in creation order.

The engine only ever reads enabled_for_board(); everything else is the
editing surface (create, update, enable/disable, delete) plus YAML
load/dump for rules kept in a file.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from .rules import Action, Automation, RuleValidationError, Trigger

logger = logging.getLogger(__name__)

# Fields update_automation() accepts
UPDATABLE = {"name", "trigger", "actions", "enabled"}


class AutomationNotFound(Exception):
    """Raised when an automation id is not in the registry."""
    pass


class AutomationRegistry:
    """In-memory list of automations."""

    def __init__(self, automations: Optional[Iterable[Automation]] = None):
        self._automations: List[Automation] = list(automations or [])

    def __len__(self) -> int:
        return len(self._automations)

    @property
    def automations(self) -> List[Automation]:
        return list(self._automations)

    def get(self, automation_id: str) -> Optional[Automation]:
        for automation in self._automations:
            if automation.id == automation_id:
                return automation
        return None

    def create_automation(self, board_id: str, name: str, trigger: Trigger,
                          actions: List[Action]) -> str:
        """Add an enabled automation and return its id."""
        automation = Automation.create(board_id, name, trigger, actions)
        self._automations.append(automation)
        logger.info(f"Created automation {automation.id} ({name!r}) on board {board_id}")
        return automation.id

    def add(self, automation: Automation) -> None:
        if self.get(automation.id):
            raise RuleValidationError(f"Duplicate automation id {automation.id!r}")
        self._automations.append(automation)

    def update_automation(self, automation_id: str, **updates) -> Automation:
        unknown = set(updates) - UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update automation fields: {sorted(unknown)}")
        automation = self.get(automation_id)
        if not automation:
            raise AutomationNotFound(automation_id)
        for key, value in updates.items():
            setattr(automation, key, list(value) if key == "actions" else value)
        return automation

    def set_enabled(self, automation_id: str, enabled: bool) -> Automation:
        return self.update_automation(automation_id, enabled=enabled)

    def delete_automation(self, automation_id: str) -> None:
        automation = self.get(automation_id)
        if not automation:
            raise AutomationNotFound(automation_id)
        self._automations.remove(automation)
        logger.info(f"Deleted automation {automation_id}")

    def get_automations_for_board(self, board_id: str) -> List[Automation]:
        return [a for a in self._automations if a.board_id == board_id]

    def enabled_automations(self) -> List[Automation]:
        return [a for a in self._automations if a.enabled]

    def enabled_for_board(self, board_id: str) -> List[Automation]:
        return [a for a in self._automations if a.enabled and a.board_id == board_id]

    # ── YAML ─────────────────────────────────────────────────

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self._automations]

    @classmethod
    def load_yaml(cls, path: str) -> "AutomationRegistry":
        """
        Load rules from a YAML file shaped as {automations: [...]}.

        A missing file gives an empty registry. Malformed rules raise
        RuleValidationError naming the offending entry.
        """
        rules_path = Path(path).expanduser()
        if not rules_path.exists():
            logger.info(f"No rules file at {rules_path}, starting empty")
            return cls()
        try:
            with open(rules_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuleValidationError(f"Cannot parse {rules_path}: {e}") from e

        items = data.get("automations", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise RuleValidationError(f"{rules_path}: 'automations' must be a list")

        registry = cls()
        for index, item in enumerate(items):
            try:
                registry.add(Automation.from_dict(item))
            except RuleValidationError as e:
                raise RuleValidationError(f"{rules_path} entry {index}: {e}") from e
        logger.info(f"Loaded {len(registry)} automations from {rules_path}")
        return registry

    def dump_yaml(self, path: str) -> None:
        rules_path = Path(path).expanduser()
        rules_path.parent.mkdir(parents=True, exist_ok=True)
        with open(rules_path, "w") as f:
            yaml.safe_dump({"automations": self.to_dicts()}, f, sort_keys=False)
