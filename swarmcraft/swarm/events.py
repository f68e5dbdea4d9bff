"""SwarmEvent and EventBus — typed pub/sub channel between the coordinator and its collaborators.

The bus is an ordinary object: construct one and hand it to the coordinator
and to every collaborator that needs to talk to it.  Delivery is synchronous
with run-to-completion semantics; an event published from inside a
subscriber callback is queued and delivered after the current callback
chain returns.

Example::

    bus = EventBus()
    sub_id = bus.subscribe(Topic.TASK_ASSIGNED, lambda ev: print(ev.payload))
    bus.publish(Topic.TASK_SUBMIT, {"task": "mine_diamond", "priority": 75})
    bus.unsubscribe(sub_id)
"""

from __future__ import annotations

import collections
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger("SwarmCraft.EventBus")


class Topic(str, Enum):
    """Every topic the coordinator consumes or produces."""

    # inbound
    BOT_REGISTER = "bot.register"
    BOT_UNREGISTER = "bot.unregister"
    BOT_HEARTBEAT = "bot.heartbeat"
    TASK_SUBMIT = "task.submit"
    TASK_COMPLETE = "task.complete"
    TASK_FAILED = "task.failed"
    RESOURCE_FOUND = "resource.found"
    RESOURCE_CLAIM = "resource.claim"
    RESOURCE_DEPLETED = "resource.depleted"
    THREAT_DETECTED = "threat.detected"
    THREAT_CLEARED = "threat.cleared"
    PATH_RESERVE = "path.reserve"
    PATH_RELEASE = "path.release"

    # outbound only
    BOT_REGISTERED = "bot.registered"
    BOT_UNREGISTERED = "bot.unregistered"
    BOT_FAILOVER = "bot.failover"
    MASTER_ELECTED = "master.elected"
    TASK_ASSIGNED = "task.assigned"
    TASK_COMPLETED = "task.completed"
    RESOURCE_SHARED = "resource.shared"
    RESOURCE_CLAIMED = "resource.claimed"
    THREAT_ALERT = "threat.alert"


@dataclass
class SwarmEvent:
    """An event on the bus (registration, assignment, alert, etc.)."""

    topic: Topic
    source: str = ""  # publisher id, e.g. "coordinator" or a bot id
    payload: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "topic": self.topic.value,
            "source": self.source,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> SwarmEvent:
        return cls(
            topic=Topic(d["topic"]),
            source=d.get("source", ""),
            payload=dict(d.get("payload", {})),
            timestamp=float(d.get("timestamp", 0.0)),
        )


Callback = Callable[[SwarmEvent], None]


class EventBus:
    """Thread-safe topic bus with queued, run-to-completion delivery.

    Whichever thread finds the bus idle drains the pending queue, so
    callbacks never run concurrently with each other.  Callback errors are
    logged and swallowed so one faulty subscriber cannot break the
    publisher.
    """

    def __init__(self, history_size: int = 200) -> None:
        self._lock = threading.RLock()
        # topic → {sub_id → callback}
        self._subscribers: dict[Topic, dict[str, Callback]] = {}
        self._pending: collections.deque[SwarmEvent] = collections.deque()
        self._history: collections.deque[SwarmEvent] = collections.deque(maxlen=history_size)
        self._draining = False

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, topic: Topic | str, callback: Callback) -> str:
        """Register *callback* for *topic*. Returns a subscription id."""
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers.setdefault(Topic(topic), {})[sub_id] = callback
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        """Remove a subscription. Unknown ids are ignored."""
        with self._lock:
            for topic_subs in self._subscribers.values():
                if sub_id in topic_subs:
                    del topic_subs[sub_id]
                    return

    def subscriber_count(self, topic: Topic | str) -> int:
        with self._lock:
            return len(self._subscribers.get(Topic(topic), {}))

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(
        self, topic: Topic | str, payload: dict | None = None, source: str = ""
    ) -> SwarmEvent:
        """Publish an event and deliver it (now, or after the running dispatch)."""
        event = SwarmEvent(topic=Topic(topic), source=source, payload=dict(payload or {}))
        with self._lock:
            self._pending.append(event)
            self._history.append(event)
            if self._draining:
                return event
            self._draining = True

        try:
            self._drain()
        except BaseException:
            with self._lock:
                self._draining = False
            raise
        return event

    def _drain(self) -> None:
        while True:
            with self._lock:
                # release the drain in the same critical section that sees the queue empty
                if not self._pending:
                    self._draining = False
                    return
                event = self._pending.popleft()
                callbacks = list(self._subscribers.get(event.topic, {}).values())

            for cb in callbacks:
                try:
                    cb(event)
                except Exception as exc:
                    logger.warning(f"Subscriber error on '{event.topic.value}': {exc}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def history(self, topic: Topic | str | None = None) -> list[SwarmEvent]:
        """Recently published events, oldest first, optionally for one topic."""
        with self._lock:
            events = list(self._history)
        if topic is None:
            return events
        wanted = Topic(topic)
        return [e for e in events if e.topic == wanted]

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
