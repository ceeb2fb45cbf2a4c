"""
Automation engine: store notification → diff → match → execute.

One engine instance owns the retained snapshot and the "cycle in progress"
flag. A store notification starts a cycle only when no cycle is running.
Notifications caused by the cycle's own actions return immediately: the
store is synchronous, so their effects are already visible and get folded
into the baseline when the cycle finishes.

    Idle ──notification──▶ Cycle Running ──snapshot refreshed──▶ Idle

The snapshot is always refreshed from the store as it is at the end of the
cycle (after all actions), whether the cycle succeeded or not. Refreshing
from the pre-action state would make every action look like a new change
and rules would re-fire forever.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from flowzik.board.schema import utc_now
from flowzik.board.store import BoardStore
from flowzik.config import EngineConfig
from .differ import ChangeEvent, Snapshot, diff_snapshots
from .executor import ActionExecutor
from .matcher import match_automations
from .registry import AutomationRegistry
from .rules import Automation

logger = logging.getLogger(__name__)

# Hook names accepted by AutomationEngine.subscribe()
AUTOMATION_FIRED = "automation_fired"
AUTOMATION_FAILED = "automation_failed"
CYCLE_COMPLETED = "cycle_completed"
HOOKS = {AUTOMATION_FIRED, AUTOMATION_FAILED, CYCLE_COMPLETED}


@dataclass
class Firing:
    """One automation run against one card for one event."""
    automation: Automation
    event: ChangeEvent
    applied: int = 0   # actions that were not skipped


class AutomationEngine:
    """Runs user automations against a BoardStore."""

    def __init__(
        self,
        store: BoardStore,
        registry: AutomationRegistry,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.registry = registry
        self.config = config or EngineConfig()
        self.clock = clock
        self.executor = ActionExecutor(store, clock=clock)

        self._snapshot = Snapshot.capture(store)
        self._running = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._hooks: Dict[str, list] = {}
        self.stats: Dict[str, int] = {"cycles": 0, "fired": 0, "failed": 0, "dropped": 0}

    @classmethod
    def from_config(cls, cfg: EngineConfig, store: Optional[BoardStore] = None) -> "AutomationEngine":
        """Build store (if not given), registry and engine from config, and start it."""
        if store is None:
            store = BoardStore() if cfg.seed_default_labels else BoardStore(labels=[])
        registry = (
            AutomationRegistry.load_yaml(cfg.rules_path) if cfg.rules_path
            else AutomationRegistry()
        )
        engine = cls(store, registry, config=cfg)
        engine.start()
        return engine

    # ── Lifecycle ────────────────────────────────────────────

    def start(self) -> None:
        """Subscribe to the store. Calling twice is harmless."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_store_change)
            logger.info(f"Automation engine started ({len(self.registry)} automations)")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Automation engine stopped")

    @property
    def is_running(self) -> bool:
        """True while a cycle is in progress."""
        return self._running

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    # ── Hooks ────────────────────────────────────────────────

    def subscribe(self, hook: str, callback: Callable) -> None:
        """Register a callback for automation_fired, automation_failed or cycle_completed."""
        if hook not in HOOKS:
            raise ValueError(f"Unknown hook {hook!r}. Valid: {sorted(HOOKS)}")
        self._hooks.setdefault(hook, []).append(callback)

    def _emit(self, hook: str, **kwargs) -> None:
        for callback in self._hooks.get(hook, []):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception(f"Error in {hook} callback")

    # ── Cycle ────────────────────────────────────────────────

    def _on_store_change(self, store: BoardStore) -> None:
        self.run_cycle()

    def run_cycle(self) -> List[Firing]:
        """
        Run one diff → match → execute pass.

        Returns what fired. Returns an empty list without doing anything
        when a cycle is already in progress.
        """
        if self._running:
            self.stats["dropped"] += 1
            return []

        self._running = True
        try:
            fired = self._process()
        finally:
            self._snapshot = Snapshot.capture(self.store)
            self._running = False

        self._emit(CYCLE_COMPLETED, fired=fired)
        return fired

    def _process(self) -> List[Firing]:
        if not self.config.enabled:
            return []
        automations = self.registry.enabled_automations()
        if not automations:
            return []

        self.stats["cycles"] += 1
        by_board: Dict[str, List[Automation]] = defaultdict(list)
        for automation in automations:
            by_board[automation.board_id].append(automation)

        # All events are computed against one (snapshot, store) pair before any action runs
        events = diff_snapshots(self._snapshot, self.store.cards, self.clock())

        fired: List[Firing] = []
        for event in events:
            for automation in match_automations(event, by_board.get(event.board_id, [])):
                try:
                    applied = self.executor.execute(event.card_id, automation.actions)
                except Exception as e:
                    self.stats["failed"] += 1
                    logger.exception(
                        f"Automation {automation.id} ({automation.name!r}) failed "
                        f"on card {event.card_id}"
                    )
                    self._emit(AUTOMATION_FAILED, automation=automation, event=event, error=e)
                    continue

                firing = Firing(automation=automation, event=event, applied=applied)
                fired.append(firing)
                self.stats["fired"] += 1
                logger.info(
                    f"Automation {automation.id} ({automation.name!r}) fired on "
                    f"{event.kind.value} for card {event.card_id}: {applied} action(s) applied"
                )
                self._emit(AUTOMATION_FIRED, firing=firing)
        return fired
