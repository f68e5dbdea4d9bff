"""PathReservationTable — advisory collision avoidance between planned routes."""

from __future__ import annotations

import logging
from typing import Iterable

from swarmcraft.swarm.geometry import Position

logger = logging.getLogger("SwarmCraft.Swarm.Paths")


class PathReservationTable:
    """Bot id → reserved waypoints.

    A reservation is granted only if none of its waypoints comes within
    ``collision_radius`` of a waypoint held by another bot.  A rejected
    request changes nothing; the caller replans.
    """

    def __init__(self, collision_radius: float = 3.0) -> None:
        self.collision_radius = collision_radius
        self._reservations: dict[str, list[Position]] = {}

    def reserve(self, bot_id: str, waypoints: Iterable[Position]) -> bool:
        points = list(waypoints)
        if not points:
            return True

        conflict = self.find_conflict(bot_id, points)
        if conflict is not None:
            logger.debug(f"Path for {bot_id} rejected: collides with {conflict}")
            return False

        self._reservations[bot_id] = points
        return True

    def find_conflict(self, bot_id: str, waypoints: list[Position]) -> str | None:
        """Id of the first other bot whose reservation collides, or None."""
        for other_id, other_path in self._reservations.items():
            if other_id == bot_id:
                continue
            for wp in waypoints:
                for other_wp in other_path:
                    if wp.distance_to(other_wp) < self.collision_radius:
                        return other_id
        return None

    def release(self, bot_id: str) -> bool:
        return self._reservations.pop(bot_id, None) is not None

    def get(self, bot_id: str) -> list[Position]:
        return list(self._reservations.get(bot_id, ()))

    def __contains__(self, bot_id: object) -> bool:
        return bot_id in self._reservations

    def __len__(self) -> int:
        return len(self._reservations)

    def clear(self) -> None:
        self._reservations.clear()
