"""BotRecord — the coordinator's view of one registered bot."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.territory import Territory

if TYPE_CHECKING:
    from swarmcraft.swarm.tasks import Task

MIN_EFFICIENCY = 0.5
MAX_EFFICIENCY = 2.0
DEFAULT_HEALTH = 20.0


class BotRole(str, Enum):
    """Specialisations a bot can be assigned."""

    HARVESTER = "harvester"
    MINER = "miner"
    BUILDER = "builder"
    GUARDIAN = "guardian"
    SCOUT = "scout"
    CRAFTER = "crafter"
    GENERAL = "general"


class BotStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass
class Performance:
    """Rolling performance figures used for election and scheduling."""

    tasks_completed: int = 0
    efficiency: float = 1.0
    uptime: float = 0.0
    last_active: float = field(default_factory=time.time)

    def record_success(self) -> None:
        self.efficiency = min(MAX_EFFICIENCY, self.efficiency * 1.05)

    def record_failure(self) -> None:
        self.efficiency = max(MIN_EFFICIENCY, self.efficiency * 0.95)

    @property
    def election_score(self) -> float:
        return self.efficiency * 100 + self.tasks_completed

    def to_dict(self) -> dict:
        return {
            "tasksCompleted": self.tasks_completed,
            "efficiency": self.efficiency,
            "uptime": self.uptime,
            "lastActive": self.last_active,
        }


@dataclass
class BotRecord:
    """A bot registered with the coordinator."""

    bot_id: str
    position: Position | None
    capabilities: frozenset[str]
    role: BotRole
    territory: Territory
    status: BotStatus = BotStatus.IDLE
    current_task: Task | None = None
    performance: Performance = field(default_factory=Performance)
    health: float = DEFAULT_HEALTH
    is_master: bool = False
    registered_at: float = field(default_factory=time.time)

    @property
    def is_idle(self) -> bool:
        return self.status is BotStatus.IDLE

    def can_do(self, capability: str) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> dict:
        return {
            "id": self.bot_id,
            "position": self.position.to_dict() if self.position else None,
            "capabilities": sorted(self.capabilities),
            "role": self.role.value,
            "territory": self.territory.territory_id,
            "status": self.status.value,
            "currentTask": self.current_task.task_id if self.current_task else None,
            "performance": self.performance.to_dict(),
            "health": self.health,
            "isMaster": self.is_master,
        }
