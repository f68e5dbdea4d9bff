"""
SwarmCraft swarm configuration.

Settings come from environment variables or from the ``swarm`` section of
a YAML config::

    swarm:
      enabled: true
      max_bots: 10
      territory_size: 100
      heartbeat_interval_s: 10.0
      failover_timeout_s: 30.0
      path_collision_radius: 3.0
      max_task_queue: 100
      max_shared_resources: 200
      max_threat_history: 50

Environment variables (``SWARM_ENABLED``, ``SWARM_MAX_BOTS`` ...) mirror the
keys above; the legacy ``MULTIBOT_ENABLED`` / ``MULTIBOT_MAX_BOTS`` names are
honoured as fallbacks.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger("SwarmCraft.Config")

# Fixed tuning constants (not exposed as settings)
THREAT_ALERT_RADIUS = 100.0
THREAT_GRACE_PERIOD_S = 60.0
MAX_TASK_ATTEMPTS = 3
MINING_DEDUP_RADIUS = 5
MINING_NETWORK_WINDOW = 50

_ENV_NAMES: dict[str, tuple[str, ...]] = {
    "enabled": ("SWARM_ENABLED", "MULTIBOT_ENABLED"),
    "max_bots": ("SWARM_MAX_BOTS", "MULTIBOT_MAX_BOTS"),
    "territory_size": ("SWARM_TERRITORY_SIZE",),
    "heartbeat_interval_s": ("SWARM_HEARTBEAT_INTERVAL_S",),
    "failover_timeout_s": ("SWARM_FAILOVER_TIMEOUT_S",),
    "path_collision_radius": ("SWARM_PATH_COLLISION_RADIUS",),
    "max_task_queue": ("SWARM_MAX_TASK_QUEUE",),
    "max_shared_resources": ("SWARM_MAX_SHARED_RESOURCES",),
    "max_threat_history": ("SWARM_MAX_THREAT_HISTORY",),
}


@dataclass
class SwarmConfig:
    """Scalar settings for one coordinator."""

    enabled: bool = False
    max_bots: int = 10
    territory_size: int = 100
    heartbeat_interval_s: float = 10.0
    failover_timeout_s: float = 30.0
    path_collision_radius: float = 3.0
    max_task_queue: int = 100
    max_shared_resources: int = 200
    max_threat_history: int = 50

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SwarmConfig:
        """Build a config from ``SWARM_*`` environment variables.

        Both enable flags are checked (either one set to ``"true"`` enables
        the swarm).  Unparseable numbers fall back to the default with a
        warning.
        """
        env = os.environ if environ is None else environ
        cfg = cls()
        cfg.enabled = any(env.get(name, "").lower() == "true" for name in _ENV_NAMES["enabled"])
        for f in fields(cls):
            if f.name == "enabled":
                continue
            for name in _ENV_NAMES[f.name]:
                raw = env.get(name)
                if raw in (None, ""):
                    continue
                value = _parse_number(f.name, raw, getattr(cfg, f.name))
                setattr(cfg, f.name, value)
                break
        return cfg

    @classmethod
    def from_dict(cls, config: Mapping[str, Any] | None) -> SwarmConfig:
        """Build a config from a config dict (reads its ``swarm`` section)."""
        section = (config or {}).get("swarm", {}) or {}
        cfg = cls()
        for f in fields(cls):
            if f.name not in section:
                continue
            raw = section[f.name]
            if f.name == "enabled":
                cfg.enabled = raw if isinstance(raw, bool) else str(raw).lower() == "true"
            else:
                setattr(cfg, f.name, _parse_number(f.name, raw, getattr(cfg, f.name)))
        return cfg

    @classmethod
    def load(cls, path: str | Path) -> SwarmConfig:
        """Load from a YAML file. A missing or empty file yields the defaults."""
        p = Path(path)
        if not p.exists():
            logger.warning("Swarm config not found at %s, using defaults", p)
            return cls()
        with open(p) as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            logger.warning("Swarm config %s is not a mapping, using defaults", p)
            return cls()
        return cls.from_dict(data)


def _parse_number(name: str, raw: Any, default: int | float) -> int | float:
    kind = type(default)
    try:
        value = kind(float(raw)) if kind is int else kind(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid value for {name}: {raw!r} (using {default})")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, got {raw!r} (using {default})")
        return default
    return value
