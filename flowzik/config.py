# Flowzik configuration
# Override defaults via flowzik.yaml or the FLOWZIK_CONFIG environment variable.

import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path(__file__).parent / "flowzik.yaml"
CONFIG_ENV = "FLOWZIK_CONFIG"

DEFAULT_LOG_FORMAT = "%(asctime)s [flowzik] %(levelname)s %(name)s: %(message)s"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""
    pass


@dataclass
class EngineConfig:
    """Runtime configuration for the automation engine."""

    # Master switch: when off, store changes are absorbed without running rules
    enabled: bool = True

    # Automation rules file (YAML); empty = rules are created in code
    rules_path: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    # Store seeding
    seed_default_labels: bool = True

    def resolve_paths(self):
        """Expand ~ in file paths."""
        if self.rules_path:
            self.rules_path = str(Path(self.rules_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "EngineConfig":
        """
        Load config from YAML, falling back to defaults when the file is absent.

        Lookup order: explicit path, $FLOWZIK_CONFIG, flowzik.yaml next to
        this module. Unknown keys are ignored.
        """
        chosen = path or os.environ.get(CONFIG_ENV)
        cfg_path = Path(chosen) if chosen else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path}: top level must be a mapping")
            known = {f.name for f in fields(cls)}
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def configure_logging(cfg: EngineConfig) -> None:
    """Send log records to stdout at the configured level."""
    level = getattr(logging, str(cfg.log_level).upper(), None)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level {cfg.log_level!r}")
    logging.basicConfig(
        level=level,
        format=cfg.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
