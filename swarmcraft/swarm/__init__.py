"""swarmcraft.swarm — Multi-Bot Swarm Coordination.

A single coordinator manages a fleet of otherwise independent bots:
it distributes work, arbitrates shared resources and space, spreads
danger awareness, and keeps one elected master with automatic failover.

Key classes:

- :class:`SwarmCoordinator` — The single authority owning every shared
  table. Driven directly or through inbound bus topics.
- :class:`EventBus` / :class:`SwarmEvent` — Injected pub/sub channel with
  typed :class:`Topic` names (``bot.register``, ``task.assigned`` ...).
- :class:`BotRegistry` — Bot records, capacity and role assignment.
- :class:`MasterElection` — Performance-scored leader election.
- :class:`HeartbeatMonitor` — Liveness tracking that drives failover.
- :class:`TaskQueue` — Priority backlog feeding the scheduler.
- :class:`ResourceLedger` / :class:`MiningNetwork` — Shared discoveries
  with exclusive claims and the ore-location index.
- :class:`ThreatBoard` — Deduplicated threats with radius alerts.
- :class:`PathReservationTable` — Advisory route collision avoidance.

Configuration (YAML ``swarm`` section or ``SWARM_*`` env vars)::

    swarm:
      enabled: true
      max_bots: 10
      territory_size: 100
      failover_timeout_s: 30.0
"""

from swarmcraft.swarm.bot import BotRecord, BotRole, BotStatus
from swarmcraft.swarm.config import SwarmConfig
from swarmcraft.swarm.coordinator import SwarmCoordinator
from swarmcraft.swarm.election import MasterElection
from swarmcraft.swarm.events import EventBus, SwarmEvent, Topic
from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.heartbeat import HeartbeatMonitor
from swarmcraft.swarm.paths import PathReservationTable
from swarmcraft.swarm.registry import BotRegistry
from swarmcraft.swarm.resources import MiningNetwork, ResourceLedger, SharedResource
from swarmcraft.swarm.tasks import Task, TaskPriority, TaskQueue
from swarmcraft.swarm.territory import Territory, TerritoryGrid
from swarmcraft.swarm.threats import Threat, ThreatBoard, ThreatSeverity

__all__ = [
    "BotRecord",
    "BotRegistry",
    "BotRole",
    "BotStatus",
    "EventBus",
    "HeartbeatMonitor",
    "MasterElection",
    "MiningNetwork",
    "PathReservationTable",
    "Position",
    "ResourceLedger",
    "SharedResource",
    "SwarmConfig",
    "SwarmCoordinator",
    "SwarmEvent",
    "Task",
    "TaskPriority",
    "TaskQueue",
    "Territory",
    "TerritoryGrid",
    "Threat",
    "ThreatBoard",
    "ThreatSeverity",
    "Topic",
]
