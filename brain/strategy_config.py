"""
Strategy constants loaded from JSON.

Every brain component takes a plain dict of tunables in its constructor and
falls back to its own DEFAULT_* class constants. This module owns the file
those dicts come from: one top-level object per component section
(state, economy, decision, combat, intelligence, planner, adaptive, actions).

    strategy = get_config()
    predictor = CombatPredictor(config=strategy.get_section('combat'))
    trials = strategy.get('combat', 'trials', default=3)

Tuning experiments can layer changes on top without touching the file:

    hot = strategy.with_overrides('actions', attack_cooldown_minutes=10)

The file path comes from the STRATEGY_CONFIG environment variable and
defaults to configs/default.json. A missing or broken file is logged and
every component runs on its built-in defaults.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "configs" / "default.json"

SECTIONS = ('state', 'economy', 'decision', 'combat', 'intelligence',
            'planner', 'adaptive', 'actions')

# Top-level keys that are metadata, not component sections
META_KEYS = ('name', 'version', 'description')


class StrategyConfig:
    """Read-only view over one strategy file, split into component sections."""

    def __init__(self, config_path: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.path = Path(config_path or os.environ.get('STRATEGY_CONFIG') or DEFAULT_CONFIG_PATH)
        self._data: Dict[str, Any] = {}
        self._loaded = False

        if data is not None:
            self._apply(data, source='<dict>')
        else:
            self._load()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StrategyConfig':
        """Build a config from an in-memory dict (no file involved)."""
        return cls(data=copy.deepcopy(data))

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self):
        if not self.path.exists():
            logger.warning(f"Strategy config {self.path} not found, components use built-in defaults")
            self._data, self._loaded = {}, False
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Cannot read strategy config {self.path}: {e}")
            self._data, self._loaded = {}, False
            return

        self._apply(data, source=str(self.path))

    def _apply(self, data: Any, source: str):
        if not isinstance(data, dict):
            logger.error(f"Strategy config {source} must be a JSON object, got {type(data).__name__}")
            self._data, self._loaded = {}, False
            return

        for key, value in data.items():
            if key in META_KEYS:
                continue
            if key not in SECTIONS:
                logger.warning(f"Strategy config {source}: unknown section '{key}' ignored")
            elif not isinstance(value, dict):
                logger.warning(f"Strategy config {source}: section '{key}' is not an object, ignored")

        self._data = {k: v for k, v in data.items()
                      if k in META_KEYS or (k in SECTIONS and isinstance(v, dict))}
        self._loaded = True
        logger.info(f"Strategy config '{self.name}' v{self.version} loaded from {source} "
                    f"(sections: {', '.join(s for s in SECTIONS if s in self._data) or 'none'})")

    def reload(self):
        """Re-read the file. Components built earlier keep their old values."""
        self._load()

    # =========================================================================
    # Access
    # =========================================================================

    @property
    def name(self) -> str:
        return self._data.get('name', 'default')

    @property
    def version(self) -> str:
        return self._data.get('version', '0.0.0')

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get(self, section: str, key: str, default: Any = None) -> Any:
        return self._data.get(section, {}).get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Copy of one component section ({} when absent)."""
        return dict(self._data.get(section, {}))

    def with_overrides(self, section: str, **values) -> 'StrategyConfig':
        """New config with `values` merged into `section`; this one is untouched."""
        data = self.as_dict()
        data[section] = {**data.get(section, {}), **values}
        return StrategyConfig(str(self.path), data=data)

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


_config: Optional[StrategyConfig] = None


def get_config() -> StrategyConfig:
    """Process-wide strategy config, loaded on first use."""
    global _config
    if _config is None:
        _config = StrategyConfig()
    return _config


def set_config_path(path: str):
    """Switch the process-wide config to another file."""
    global _config
    _config = StrategyConfig(path)


def reload_config():
    if _config is not None:
        _config.reload()
