"""
HealthConfig — explicit evaluation settings passed into the RAG evaluator.

Defaults come from health_config.yaml (hardcoded fallback if the file is
missing, unreadable or holds invalid values). Callers overlay the health_config DB row on top.
Nothing here is process-wide mutable state: every load returns a new
immutable object.
"""
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import yaml

from crm_atlas.config import ROLLUP_STRATEGIES

logger = logging.getLogger('engine.config')

_DEFAULT_PATH = os.path.join(os.path.dirname(__file__), 'health_config.yaml')


@dataclass(frozen=True)
class HealthConfig:
    amber_floor: float = 0.7
    wow_amber_drop: float = 0.15
    wow_red_drop: float = 0.25
    red_floor_factor: float = 0.7
    rollup_strategy: str = 'worst_of'

    def __post_init__(self):
        if self.rollup_strategy not in ROLLUP_STRATEGIES:
            raise ValueError(f"Unknown rollup_strategy '{self.rollup_strategy}'")
        if self.amber_floor <= 0:
            raise ValueError("amber_floor must be positive")

    def with_overrides(self, **overrides) -> 'HealthConfig':
        """Return a copy with every non-None override applied."""
        clean = {k: v for k, v in overrides.items() if v is not None and k in _FIELDS}
        return replace(self, **clean)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _FIELDS}


_FIELDS = ('amber_floor', 'wow_amber_drop', 'wow_red_drop', 'red_floor_factor', 'rollup_strategy')


def load_config_defaults(path: Optional[str] = None) -> HealthConfig:
    """Load HealthConfig defaults from YAML, falling back to hardcoded values."""
    config_path = path or _DEFAULT_PATH
    try:
        with open(config_path, 'r') as f:
            raw = yaml.safe_load(f) or {}
        config = HealthConfig().with_overrides(**{k: raw.get(k) for k in _FIELDS})
    except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
        logger.warning("Health config YAML %s not usable (%s), using defaults", config_path, e)
        return HealthConfig()

    logger.debug("Health config loaded from YAML (version=%s)", raw.get('version', '?'))
    return config
