"""SwarmCoordinator — the single authority that runs the bot swarm.

The coordinator owns every shared table (registry, territories, task
queue, resource ledger, threat board, path reservations) and is the only
code that mutates them.  Collaborators drive it either by calling its
methods directly or by publishing inbound topics on the :class:`EventBus`
it was constructed with; it answers with outbound topics.

Each operation runs to completion under one re-entrant lock.  Outbound
events raised during an operation are buffered and published once the
outermost operation returns, so subscribers always observe consistent
tables and may call straight back into the coordinator.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import threading
import time
from typing import Any, Callable, Iterable, Iterator

from swarmcraft.swarm.bot import BotRecord, BotRole, BotStatus
from swarmcraft.swarm.config import MAX_TASK_ATTEMPTS, SwarmConfig
from swarmcraft.swarm.election import MasterElection
from swarmcraft.swarm.events import EventBus, SwarmEvent, Topic
from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.heartbeat import HeartbeatMonitor
from swarmcraft.swarm.paths import PathReservationTable
from swarmcraft.swarm.registry import BotRegistry
from swarmcraft.swarm.resources import OreLocation, ResourceLedger, SharedResource
from swarmcraft.swarm.tasks import Task, TaskPriority, TaskQueue, new_task_id, select_bot
from swarmcraft.swarm.territory import TerritoryGrid
from swarmcraft.swarm.threats import Threat, ThreatBoard, ThreatSeverity

logger = logging.getLogger("SwarmCraft.Swarm")

COORDINATOR_SOURCE = "coordinator"


def _inbound(handler: Callable[[SwarmCoordinator, dict], Any]) -> Callable:
    """Adapt a payload handler to a bus callback.

    Skips events the coordinator published itself (several topics are used
    in both directions) and drops malformed payloads with a warning.
    """

    @functools.wraps(handler)
    def wrapper(self: SwarmCoordinator, event: SwarmEvent) -> None:
        if event.source == COORDINATOR_SOURCE:
            return
        try:
            handler(self, event.payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Dropped malformed '{event.topic.value}' payload: {exc!r}")

    return wrapper


class SwarmCoordinator:
    """Coordinates registration, scheduling, resources, threats and paths for a bot fleet.

    Example::

        bus = EventBus()
        coord = SwarmCoordinator(SwarmConfig(enabled=True), bus)
        coord.start()

        coord.register_bot("bot1", Position(0, 64, 0), {"mining"})
        task_id = coord.submit_task("mine_diamond", priority=TaskPriority.HIGH)
        coord.complete_task("bot1", task_id)

        coord.stop()
    """

    def __init__(
        self,
        config: SwarmConfig | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SwarmConfig()
        self.bus = bus or EventBus()
        self._clock = clock

        self.grid = TerritoryGrid(self.config.territory_size)
        self.registry = BotRegistry(self.grid, max_bots=self.config.max_bots, clock=clock)
        self.election = MasterElection(self.registry)
        self.queue = TaskQueue(capacity=self.config.max_task_queue)
        self.ledger = ResourceLedger(capacity=self.config.max_shared_resources, clock=clock)
        self.threats = ThreatBoard(capacity=self.config.max_threat_history, clock=clock)
        self.paths = PathReservationTable(self.config.path_collision_radius)
        self.monitor = HeartbeatMonitor(
            interval_s=self.config.heartbeat_interval_s,
            timeout_s=self.config.failover_timeout_s,
            tick_fn=self.check_heartbeats,
            clock=clock,
        )

        self.total_tasks_completed = 0
        self.failovers_performed = 0

        self._lock = threading.RLock()
        self._depth = 0
        self._outbox: list[tuple[Topic, dict]] = []
        self._subscriptions: list[str] = []

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def master_bot_id(self) -> str | None:
        return self.election.master_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, run_monitor: bool = True) -> None:
        """Subscribe to inbound topics and start the heartbeat monitor.

        Pass ``run_monitor=False`` to drive heartbeat passes manually via
        :meth:`check_heartbeats`.
        """
        if not self.enabled:
            logger.info("Swarm coordination disabled")
            return
        if self._subscriptions:
            return

        logger.info(
            f"Coordinator initializing (max bots: {self.config.max_bots}, "
            f"territory size: {self.config.territory_size})"
        )
        handlers = {
            Topic.BOT_REGISTER: self._on_register,
            Topic.BOT_UNREGISTER: self._on_unregister,
            Topic.BOT_HEARTBEAT: self._on_heartbeat,
            Topic.TASK_SUBMIT: self._on_task_submit,
            Topic.TASK_COMPLETE: self._on_task_complete,
            Topic.TASK_FAILED: self._on_task_failed,
            Topic.RESOURCE_FOUND: self._on_resource_found,
            Topic.RESOURCE_CLAIM: self._on_resource_claim,
            Topic.RESOURCE_DEPLETED: self._on_resource_depleted,
            Topic.THREAT_DETECTED: self._on_threat_detected,
            Topic.THREAT_CLEARED: self._on_threat_cleared,
            Topic.PATH_RESERVE: self._on_path_reserve,
            Topic.PATH_RELEASE: self._on_path_release,
        }
        for topic, handler in handlers.items():
            self._subscriptions.append(self.bus.subscribe(topic, handler))
        if run_monitor:
            self.monitor.start()
        logger.info("Coordinator initialized")

    def stop(self) -> None:
        """Unsubscribe from the bus and stop the heartbeat monitor."""
        self.monitor.stop()
        for sub_id in self._subscriptions:
            self.bus.unsubscribe(sub_id)
        self._subscriptions.clear()

    def cleanup(self) -> None:
        """Stop and drop all coordinator state."""
        self.stop()
        with self._lock:
            self.registry.clear()
            self.grid.clear()
            self.queue.clear()
            self.ledger.clear()
            self.threats.clear_all()
            self.paths.clear()
            self.monitor.clear()
            self.election.reset()
        logger.info("Coordinator cleanup complete")

    @contextlib.contextmanager
    def _operation(self) -> Iterator[None]:
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                outbox: list[tuple[Topic, dict]] = []
                if self._depth == 0:
                    outbox, self._outbox = self._outbox, []
        for topic, payload in outbox:
            self.bus.publish(topic, payload, source=COORDINATOR_SOURCE)

    def _emit(self, topic: Topic, payload: dict) -> None:
        self._outbox.append((topic, payload))

    # ------------------------------------------------------------------
    # Bot lifecycle
    # ------------------------------------------------------------------

    def register_bot(
        self,
        bot_id: str,
        position: Position | None = None,
        capabilities: Iterable[str] = (),
        role: BotRole | str | None = None,
    ) -> bool:
        """Add a bot to the swarm. False at capacity or for a duplicate id."""
        with self._operation():
            bot = self.registry.register(bot_id, Position.coerce(position), capabilities, role)
            if bot is None:
                return False
            self.monitor.beat(bot_id)

            if self.election.needs_election():
                self._elect_master()

            logger.info(
                f"Registered bot {bot_id} as {bot.role.value} "
                f"in territory {bot.territory.territory_id}"
            )
            self._emit(
                Topic.BOT_REGISTERED,
                {
                    "botId": bot_id,
                    "role": bot.role.value,
                    "territory": bot.territory.to_dict(),
                    "totalBots": len(self.registry),
                    "isMaster": bot.is_master,
                },
            )
            return True

    def unregister_bot(self, bot_id: str) -> bool:
        """Remove a bot, requeueing its task at the original priority."""
        with self._operation():
            bot = self.registry.remove(bot_id)
            if bot is None:
                return False

            if bot.current_task is not None:
                self._requeue(bot.current_task)
            self.paths.release(bot_id)
            self.monitor.forget(bot_id)

            logger.info(f"Unregistered bot {bot_id}")
            if bot.is_master:
                self._elect_master()

            self._emit(Topic.BOT_UNREGISTERED, {"botId": bot_id, "totalBots": len(self.registry)})
            return True

    def handle_heartbeat(
        self,
        bot_id: str,
        position: Position | None = None,
        health: float | None = None,
        status: BotStatus | str | None = None,
    ) -> bool:
        """Refresh a bot's liveness and any reported fields."""
        with self._operation():
            bot = self.registry.get(bot_id)
            if bot is None:
                return False

            now = self._clock()
            self.monitor.beat(bot_id, at=now)
            if position is not None:
                bot.position = Position.coerce(position)
            if health is not None:
                bot.health = float(health)
            became_idle = False
            if status is not None:
                new_status = BotStatus(status)
                became_idle = new_status is BotStatus.IDLE and not bot.is_idle
                bot.status = new_status
                if new_status is BotStatus.IDLE and bot.current_task is not None:
                    # an idle bot never holds a task
                    abandoned = self._finish(bot)
                    logger.warning(
                        f"Bot {bot_id} reported idle while holding {abandoned.task_id}; requeueing"
                    )
                    self._requeue(abandoned)
                    became_idle = True
            bot.performance.last_active = now
            bot.performance.uptime = now - bot.registered_at

            if became_idle:
                self.process_queue()
            return True

    # ------------------------------------------------------------------
    # Election and failover
    # ------------------------------------------------------------------

    def elect_master(self) -> str | None:
        """Re-run the election. Returns the new master id."""
        with self._operation():
            return self._elect_master()

    def _elect_master(self) -> str | None:
        master = self.election.elect()
        if master is None:
            return None
        self._emit(
            Topic.MASTER_ELECTED,
            {"masterId": master.bot_id, "totalBots": len(self.registry)},
        )
        return master.bot_id

    def check_heartbeats(self, now: float | None = None) -> list[str]:
        """One monitor pass: fail over silent bots. Returns the ids failed over."""
        with self._operation():
            dead = self.monitor.expired(now)
            lost_master = False
            for bot_id in dead:
                logger.warning(f"Bot {bot_id} appears dead (no heartbeat). Initiating failover...")
                lost_master = self._failover(bot_id) or lost_master

            if lost_master:
                self._elect_master()
            if dead:
                self.process_queue()

            self.threats.purge_expired(now)
            return dead

    def failover(self, bot_id: str) -> bool:
        """Force failover of *bot_id*. False if it is not registered."""
        with self._operation():
            if bot_id not in self.registry:
                return False
            if self._failover(bot_id):
                self._elect_master()
            return True

    def _failover(self, bot_id: str) -> bool:
        """Remove a dead bot and recover what it held. Returns True if it was master."""
        bot = self.registry.remove(bot_id)
        self.monitor.forget(bot_id)
        if bot is None:
            return False

        if bot.current_task is not None:
            self._requeue(bot.current_task, priority=TaskPriority.HIGH)
        self.paths.release(bot_id)
        released = self.ledger.release_claims(bot_id)
        self.failovers_performed += 1

        logger.info(f"Failover complete for bot {bot_id} ({released} claim(s) released)")
        self._emit(
            Topic.BOT_FAILOVER,
            {
                "botId": bot_id,
                "totalBots": len(self.registry),
                "failoversTotal": self.failovers_performed,
            },
        )
        return bot.is_master

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def submit_task(
        self,
        task: Any,
        priority: int = TaskPriority.MEDIUM,
        required_role: BotRole | str | None = None,
        required_capability: str | None = None,
        location: Position | None = None,
    ) -> str:
        """Queue a task and try to assign it straight away. Returns its id."""
        with self._operation():
            now = self._clock()
            item = Task(
                task_id=new_task_id(now),
                payload=task,
                priority=priority,
                required_role=BotRole(required_role) if required_role else None,
                required_capability=required_capability,
                location=Position.coerce(location),
                submitted_at=now,
            )
            self.queue.push(item)
            logger.debug(f"Queued {item.task_id} at priority {item.priority}")
            self.process_queue()
            return item.task_id

    def _requeue(self, task: Task, priority: int | None = None) -> None:
        if priority is not None:
            task.priority = int(priority)
        task.assigned_to = None
        task.attempts += 1
        self.queue.push(task)
        logger.debug(f"Requeued {task.task_id} (attempt {task.attempts}, priority {task.priority})")

    def process_queue(self) -> int:
        """Assign queued tasks to idle bots in queue order. Returns how many were assigned."""
        with self._operation():
            assigned = 0
            for task in self.queue:
                bot = select_bot(self.registry, task)
                if bot is None:
                    continue
                self.queue.remove(task)
                bot.status = BotStatus.BUSY
                bot.current_task = task
                task.assigned_to = bot.bot_id
                assigned += 1
                logger.debug(f"Assigned {task.task_id} to {bot.bot_id}")
                self._emit(
                    Topic.TASK_ASSIGNED,
                    {"botId": bot.bot_id, "taskId": task.task_id, "task": task.payload},
                )
            return assigned

    def _finish(self, bot: BotRecord) -> Task | None:
        task = bot.current_task
        bot.status = BotStatus.IDLE
        bot.current_task = None
        self.paths.release(bot.bot_id)
        return task

    def complete_task(
        self,
        bot_id: str,
        task_id: str | None = None,
        success: bool = True,
        result: Any = None,
    ) -> bool:
        """Mark the bot's task done and adjust its efficiency."""
        with self._operation():
            bot = self.registry.get(bot_id)
            if bot is None:
                return False

            task = self._finish(bot)
            bot.performance.tasks_completed += 1
            if success:
                bot.performance.record_success()
            else:
                bot.performance.record_failure()
            self.total_tasks_completed += 1

            self._emit(
                Topic.TASK_COMPLETED,
                {
                    "botId": bot_id,
                    "taskId": task_id or (task.task_id if task else None),
                    "success": success,
                    "result": result,
                    "efficiency": bot.performance.efficiency,
                },
            )
            self.process_queue()
            return True

    def fail_task(
        self,
        bot_id: str,
        task_id: str | None = None,
        reason: str = "",
        task: Task | None = None,
    ) -> bool:
        """Record a failed task: requeue it, or drop it after too many attempts."""
        with self._operation():
            bot = self.registry.get(bot_id)
            if bot is None:
                return False

            current = self._finish(bot)
            bot.performance.record_failure()
            failed = task if task is not None else current

            requeued = False
            if failed is not None:
                if failed.attempts < MAX_TASK_ATTEMPTS:
                    self._requeue(failed)
                    requeued = True
                else:
                    logger.warning(
                        f"Dropping {failed.task_id} after {failed.attempts} failed attempts"
                    )

            self._emit(
                Topic.TASK_FAILED,
                {
                    "botId": bot_id,
                    "taskId": task_id or (failed.task_id if failed else None),
                    "reason": reason,
                    "requeued": requeued,
                },
            )
            self.process_queue()
            return True

    def queued_tasks(self) -> list[Task]:
        with self._lock:
            return self.queue.snapshot()

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def share_resource(
        self,
        bot_id: str,
        resource_type: str,
        location: Position,
        quantity: int = 1,
    ) -> str | None:
        """Publish a discovery to the swarm. Returns the new key, or None."""
        if not resource_type:
            raise ValueError("resource_type must be a non-empty string")
        with self._operation():
            entry = self.ledger.report(bot_id, resource_type, Position.require(location), quantity)
            if entry is None:
                return None
            self._emit(
                Topic.RESOURCE_SHARED,
                {"resource": entry.to_dict(), "totalShared": len(self.ledger)},
            )
            return entry.key

    def claim_resource(self, bot_id: str, resource_key: str) -> bool:
        with self._operation():
            entry = self.ledger.claim(bot_id, resource_key)
            if entry is None:
                return False
            self._emit(Topic.RESOURCE_CLAIMED, {"botId": bot_id, "resource": entry.to_dict()})
            return True

    def deplete_resource(self, resource_key: str) -> bool:
        with self._operation():
            if not self.ledger.deplete(resource_key):
                return False
            self._emit(
                Topic.RESOURCE_DEPLETED,
                {"resourceKey": resource_key, "totalRemaining": len(self.ledger)},
            )
            return True

    def nearest_resource(
        self, position: Position | None, resource_type: str | None = None
    ) -> SharedResource | None:
        with self._lock:
            return self.ledger.nearest(Position.coerce(position), resource_type)

    def ore_locations(self, ore_type: str) -> list[OreLocation]:
        with self._lock:
            return self.ledger.mining.locations(ore_type)

    # ------------------------------------------------------------------
    # Threats
    # ------------------------------------------------------------------

    def detect_threat(
        self,
        bot_id: str,
        threat_type: str,
        location: Position,
        severity: ThreatSeverity | str = ThreatSeverity.MEDIUM,
    ) -> str:
        """Post a threat and alert nearby bots. Returns the threat key."""
        with self._operation():
            threat, alerts = self.threats.detect(
                bot_id, threat_type, Position.require(location), severity, self.registry
            )
            for alert in alerts:
                self._emit(
                    Topic.THREAT_ALERT,
                    {
                        "targetBotId": alert.target_bot_id,
                        "threat": alert.threat.to_dict(),
                        "distance": alert.distance,
                    },
                )
            self._emit(
                Topic.THREAT_DETECTED,
                {"threatKey": threat.key, "threat": threat.to_dict(), "totalThreats": len(self.threats)},
            )
            return threat.key

    def clear_threat(self, threat_key: str, bot_id: str | None = None) -> bool:
        with self._operation():
            threat = self.threats.clear(threat_key)
            if threat is None:
                return False
            self._emit(
                Topic.THREAT_CLEARED,
                {
                    "threatKey": threat_key,
                    "clearedBy": bot_id,
                    "threatsNeutralized": self.threats.neutralized,
                },
            )
            return True

    def nearby_threats(self, position: Position, radius: float = 50.0) -> list[tuple[Threat, float]]:
        with self._lock:
            return self.threats.nearby(Position.coerce(position), radius)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def reserve_path(self, bot_id: str, waypoints: Iterable[Position]) -> bool:
        with self._operation():
            return self.paths.reserve(bot_id, [Position.coerce(wp) for wp in waypoints])

    def release_path(self, bot_id: str) -> None:
        with self._operation():
            self.paths.release(bot_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_bot(self, bot_id: str) -> BotRecord | None:
        with self._lock:
            return self.registry.get(bot_id)

    def all_bots(self) -> list[BotRecord]:
        with self._lock:
            return self.registry.all()

    def bots_by_role(self, role: BotRole | str) -> list[BotRecord]:
        with self._lock:
            return self.registry.by_role(role)

    def get_stats(self) -> dict:
        """Return a summary of swarm state."""
        with self._lock:
            bots = self.registry.all()
            return {
                "enabled": self.enabled,
                "total_bots": len(bots),
                "master_bot_id": self.master_bot_id,
                "active_bots": sum(1 for b in bots if b.status is BotStatus.BUSY),
                "idle_bots": sum(1 for b in bots if b.status is BotStatus.IDLE),
                "territories": len(self.grid),
                "shared_resources": len(self.ledger),
                "active_threats": self.threats.active_count,
                "queued_tasks": len(self.queue),
                "avg_efficiency": (
                    sum(b.performance.efficiency for b in bots) / len(bots) if bots else 0.0
                ),
                "total_tasks_completed": self.total_tasks_completed,
                "total_resources_gathered": self.ledger.total_gathered,
                "threats_neutralized": self.threats.neutralized,
                "failovers_performed": self.failovers_performed,
                "mining_network": {
                    "ore_types": self.ledger.mining.ore_types,
                    "total_locations": self.ledger.mining.total_locations,
                },
                "role_distribution": self.registry.role_distribution(),
            }

    # ------------------------------------------------------------------
    # Inbound topic handlers
    # ------------------------------------------------------------------

    @_inbound
    def _on_register(self, p: dict) -> None:
        self.register_bot(
            _bot_id(p), p.get("position"), p.get("capabilities") or (), p.get("role")
        )

    @_inbound
    def _on_unregister(self, p: dict) -> None:
        self.unregister_bot(_bot_id(p))

    @_inbound
    def _on_heartbeat(self, p: dict) -> None:
        self.handle_heartbeat(_bot_id(p), p.get("position"), p.get("health"), p.get("status"))

    @_inbound
    def _on_task_submit(self, p: dict) -> None:
        self.submit_task(
            p["task"],
            priority=p.get("priority", TaskPriority.MEDIUM),
            required_role=p.get("requiredRole"),
            required_capability=p.get("requiredCapability"),
            location=p.get("location"),
        )

    @_inbound
    def _on_task_complete(self, p: dict) -> None:
        self.complete_task(
            p["botId"], p.get("taskId"), bool(p.get("success", True)), p.get("result")
        )

    @_inbound
    def _on_task_failed(self, p: dict) -> None:
        task = p.get("task")
        self.fail_task(
            p["botId"],
            p.get("taskId"),
            p.get("reason", ""),
            task if isinstance(task, Task) else None,
        )

    @_inbound
    def _on_resource_found(self, p: dict) -> None:
        resource = p["resource"]
        self.share_resource(
            p["botId"], resource["type"], p["location"], int(resource.get("quantity") or 1)
        )

    @_inbound
    def _on_resource_claim(self, p: dict) -> None:
        self.claim_resource(p["botId"], p["resourceKey"])

    @_inbound
    def _on_resource_depleted(self, p: dict) -> None:
        self.deplete_resource(p["resourceKey"])

    @_inbound
    def _on_threat_detected(self, p: dict) -> None:
        self.detect_threat(
            p["botId"], p["threat"]["type"], p["location"], p.get("severity") or "medium"
        )

    @_inbound
    def _on_threat_cleared(self, p: dict) -> None:
        self.clear_threat(p["threatKey"], p.get("botId"))

    @_inbound
    def _on_path_reserve(self, p: dict) -> None:
        self.reserve_path(p["botId"], p.get("waypoints") or ())

    @_inbound
    def _on_path_release(self, p: dict) -> None:
        self.release_path(p["botId"])


def _bot_id(payload: dict) -> str:
    bot_id = payload.get("id", payload.get("botId"))
    if not bot_id:
        raise KeyError("id")
    return str(bot_id)
