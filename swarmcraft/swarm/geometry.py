"""Position — world coordinates shared by every swarm table."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Position:
    """A point in block space. ``y`` is height."""

    x: float
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: Position) -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def floored(self) -> tuple[int, int, int]:
        """Truncated integer block coordinate."""
        return math.floor(self.x), math.floor(self.y), math.floor(self.z)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, d: dict) -> Position:
        return cls(
            x=float(d["x"]),
            y=float(d.get("y") or 0.0),
            z=float(d["z"]),
        )

    @classmethod
    def coerce(cls, value: Any) -> Position | None:
        """Accept a Position, a ``{x, y, z}`` dict, an (x, y, z) tuple or None."""
        if value is None or isinstance(value, Position):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        x, y, z = value
        return cls(float(x), float(y), float(z))

    @classmethod
    def require(cls, value: Any) -> Position:
        """Like :meth:`coerce` but rejects a missing position."""
        position = cls.coerce(value)
        if position is None:
            raise ValueError("location is required")
        return position
