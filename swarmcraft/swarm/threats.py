"""ThreatBoard — collective danger awareness shared by every bot."""

from __future__ import annotations

import collections
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

from swarmcraft.swarm.bot import BotRecord
from swarmcraft.swarm.config import THREAT_ALERT_RADIUS, THREAT_GRACE_PERIOD_S
from swarmcraft.swarm.geometry import Position

logger = logging.getLogger("SwarmCraft.Swarm.Threats")


class ThreatSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ThreatSeverity.LOW: 0,
    ThreatSeverity.MEDIUM: 1,
    ThreatSeverity.HIGH: 2,
    ThreatSeverity.CRITICAL: 3,
}


def threat_key(location: Position) -> str:
    x, y, z = location.floored()
    return f"threat_{x},{y},{z}"


@dataclass
class Threat:
    key: str
    threat_type: str
    location: Position
    severity: ThreatSeverity = ThreatSeverity.MEDIUM
    detected_by: str = ""
    timestamp: float = field(default_factory=time.time)
    active: bool = True
    expires_at: float | None = None  # set once cleared

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "type": self.threat_type,
            "location": self.location.to_dict(),
            "severity": self.severity.value,
            "detectedBy": self.detected_by,
            "timestamp": self.timestamp,
            "active": self.active,
        }


@dataclass(frozen=True)
class ThreatAlert:
    target_bot_id: str
    threat: Threat
    distance: float


class ThreatBoard:
    """Bounded, deduplicated threat registry with radius alerting.

    Cleared threats stay readable (inactive) for a grace period and are
    then purged; :meth:`purge_expired` runs on every heartbeat tick and
    before each query.
    """

    def __init__(
        self,
        capacity: int = 50,
        alert_radius: float = THREAT_ALERT_RADIUS,
        grace_period_s: float = THREAT_GRACE_PERIOD_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.capacity = capacity
        self.alert_radius = alert_radius
        self.grace_period_s = grace_period_s
        self._clock = clock
        self._threats: collections.OrderedDict[str, Threat] = collections.OrderedDict()
        self.neutralized = 0

    def detect(
        self,
        bot_id: str,
        threat_type: str,
        location: Position,
        severity: ThreatSeverity | str = ThreatSeverity.MEDIUM,
        bots: Iterable[BotRecord] = (),
    ) -> tuple[Threat, list[ThreatAlert]]:
        """Record a threat and compute alerts for bots inside the alert radius.

        A re-detected active threat is refreshed in place and raises no new
        alerts; a re-detected cleared threat is reactivated and alerts again.
        """
        level = ThreatSeverity(severity or ThreatSeverity.MEDIUM)
        key = threat_key(location)
        now = self._clock()

        existing = self._threats.get(key)
        is_new = existing is None or not existing.active
        if existing is None and len(self._threats) >= self.capacity:
            evicted, _ = self._threats.popitem(last=False)
            logger.debug(f"Threat board full; evicted {evicted}")

        threat = Threat(
            key=key,
            threat_type=threat_type,
            location=location,
            severity=level,
            detected_by=bot_id,
            timestamp=now,
        )
        self._threats[key] = threat
        self._threats.move_to_end(key)

        alerts: list[ThreatAlert] = []
        if is_new:
            for bot in bots:
                if bot.bot_id == bot_id or bot.position is None:
                    continue
                d = bot.position.distance_to(location)
                if d < self.alert_radius:
                    alerts.append(ThreatAlert(target_bot_id=bot.bot_id, threat=threat, distance=d))
        return threat, alerts

    def clear(self, key: str) -> Threat | None:
        """Deactivate *key* and schedule its removal. None if unknown or already cleared."""
        threat = self._threats.get(key)
        if threat is None or not threat.active:
            return None
        threat.active = False
        threat.expires_at = self._clock() + self.grace_period_s
        self.neutralized += 1
        return threat

    def purge_expired(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        expired = [
            k for k, t in self._threats.items() if t.expires_at is not None and now >= t.expires_at
        ]
        for k in expired:
            del self._threats[k]
        return len(expired)

    def nearby(self, position: Position, radius: float = 50.0) -> list[tuple[Threat, float]]:
        """Active threats within *radius*, nearest first."""
        self.purge_expired()
        found = []
        for threat in self._threats.values():
            if not threat.active:
                continue
            d = position.distance_to(threat.location)
            if d < radius:
                found.append((threat, d))
        found.sort(key=lambda pair: pair[1])
        return found

    def get(self, key: str) -> Threat | None:
        self.purge_expired()
        return self._threats.get(key)

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._threats.values() if t.active)

    def __len__(self) -> int:
        return len(self._threats)

    def clear_all(self) -> None:
        self._threats.clear()
