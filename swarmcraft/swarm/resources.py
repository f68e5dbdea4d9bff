"""ResourceLedger — shared discoveries with exclusive claims, plus the mining network."""

from __future__ import annotations

import collections
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from swarmcraft.swarm.config import MINING_DEDUP_RADIUS, MINING_NETWORK_WINDOW
from swarmcraft.swarm.geometry import Position

logger = logging.getLogger("SwarmCraft.Swarm.Resources")

ORE_NAMES: tuple[str, ...] = (
    "diamond",
    "iron",
    "gold",
    "coal",
    "emerald",
    "lapis",
    "redstone",
    "copper",
    "ancient_debris",
)


def resource_key(resource_type: str, location: Position) -> str:
    x, y, z = location.floored()
    return f"{resource_type}:{x},{y},{z}"


def is_ore(resource_type: str) -> bool:
    return any(ore in resource_type for ore in ORE_NAMES)


@dataclass
class SharedResource:
    """A resource one bot found and any bot may claim."""

    key: str
    resource_type: str
    location: Position
    discovered_by: str
    quantity: int = 1
    claimed: bool = False
    claimed_by: str | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "type": self.resource_type,
            "location": self.location.to_dict(),
            "discoveredBy": self.discovered_by,
            "quantity": self.quantity,
            "claimed": self.claimed,
            "claimedBy": self.claimed_by,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OreLocation:
    x: int
    y: int
    z: int
    timestamp: float

    def near(self, other: Position, radius: int = MINING_DEDUP_RADIUS) -> bool:
        return (
            abs(self.x - other.x) < radius
            and abs(self.y - other.y) < radius
            and abs(self.z - other.z) < radius
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z, "timestamp": self.timestamp}


class MiningNetwork:
    """Per-ore-type sliding window of known ore locations.

    A location within the dedup radius (on every axis) of a known one is
    ignored; once the window is full the oldest location falls off.
    """

    def __init__(
        self,
        window: int = MINING_NETWORK_WINDOW,
        dedup_radius: int = MINING_DEDUP_RADIUS,
    ) -> None:
        self.window = window
        self.dedup_radius = dedup_radius
        self._ores: dict[str, collections.deque[OreLocation]] = {}

    def add(self, ore_type: str, location: Position, now: float) -> bool:
        """Record an ore sighting. Returns False if it duplicates a known one."""
        known = self._ores.setdefault(ore_type, collections.deque(maxlen=self.window))
        if any(loc.near(location, self.dedup_radius) for loc in known):
            return False
        x, y, z = location.floored()
        known.append(OreLocation(x=x, y=y, z=z, timestamp=now))
        return True

    def locations(self, ore_type: str) -> list[OreLocation]:
        return list(self._ores.get(ore_type, ()))

    @property
    def ore_types(self) -> int:
        return len(self._ores)

    @property
    def total_locations(self) -> int:
        return sum(len(v) for v in self._ores.values())

    def clear(self) -> None:
        self._ores.clear()


class ResourceLedger:
    """Deduplicated, size-capped registry of shared resources.

    Entries are keyed by type and truncated block coordinate; the first
    reporter keeps the discovery.  When full, the oldest *unclaimed* entry
    is evicted.  Claimed entries are never evicted.
    """

    def __init__(
        self,
        capacity: int = 200,
        mining_network: MiningNetwork | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.capacity = capacity
        self.mining = mining_network or MiningNetwork()
        self._clock = clock
        self._entries: dict[str, SharedResource] = {}
        # unclaimed keys, oldest first
        self._unclaimed: collections.OrderedDict[str, None] = collections.OrderedDict()
        self.total_gathered = 0

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def report(
        self,
        bot_id: str,
        resource_type: str,
        location: Position,
        quantity: int = 1,
    ) -> SharedResource | None:
        """Share a discovery. Returns the new entry, or None if not inserted."""
        key = resource_key(resource_type, location)
        if key in self._entries:
            return None

        if len(self._entries) >= self.capacity and not self._evict_oldest_unclaimed():
            logger.warning(f"Resource ledger full of claimed entries; dropped report {key}")
            return None

        now = self._clock()
        entry = SharedResource(
            key=key,
            resource_type=resource_type,
            location=location,
            discovered_by=bot_id,
            quantity=quantity,
            timestamp=now,
        )
        self._entries[key] = entry
        self._unclaimed[key] = None

        if is_ore(resource_type):
            self.mining.add(resource_type, location, now)
        return entry

    def _evict_oldest_unclaimed(self) -> bool:
        if not self._unclaimed:
            return False
        key, _ = self._unclaimed.popitem(last=False)
        del self._entries[key]
        logger.debug(f"Evicted unclaimed resource {key}")
        return True

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, bot_id: str, key: str) -> SharedResource | None:
        """Claim *key* for *bot_id*. None if unknown or already claimed."""
        entry = self._entries.get(key)
        if entry is None or entry.claimed:
            return None
        entry.claimed = True
        entry.claimed_by = bot_id
        self._unclaimed.pop(key, None)
        return entry

    def unclaim(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None or not entry.claimed:
            return False
        entry.claimed = False
        entry.claimed_by = None
        self._unclaimed[key] = None
        return True

    def release_claims(self, bot_id: str) -> int:
        """Release every claim *bot_id* holds. Returns how many were released."""
        held = [key for key, e in self._entries.items() if e.claimed_by == bot_id]
        for key in held:
            self.unclaim(key)
        return len(held)

    def deplete(self, key: str) -> bool:
        """Remove an exhausted resource and count it as gathered."""
        if self._entries.pop(key, None) is None:
            return False
        self._unclaimed.pop(key, None)
        self.total_gathered += 1
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, key: str) -> SharedResource | None:
        return self._entries.get(key)

    def nearest(self, position: Position | None, type_filter: str | None = None) -> SharedResource | None:
        """Closest unclaimed resource, optionally whose type contains *type_filter*."""
        if position is None:
            return None
        nearest: SharedResource | None = None
        min_distance = float("inf")
        for entry in self._entries.values():
            if entry.claimed:
                continue
            if type_filter and type_filter not in entry.resource_type:
                continue
            d = position.distance_to(entry.location)
            if d < min_distance:
                min_distance = d
                nearest = entry
        return nearest

    def all(self) -> list[SharedResource]:
        return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._unclaimed.clear()
        self.mining.clear()
