"""TerritoryGrid — partitions the world into fixed-size square cells."""

from __future__ import annotations

import math
from dataclasses import dataclass

from swarmcraft.swarm.geometry import Position

SPAWN_TERRITORY_ID = "spawn"


@dataclass(frozen=True)
class Bounds:
    min_x: int
    max_x: int
    min_z: int
    max_z: int

    def contains(self, position: Position) -> bool:
        return self.min_x <= position.x < self.max_x and self.min_z <= position.z < self.max_z

    def to_dict(self) -> dict:
        return {
            "minX": self.min_x,
            "maxX": self.max_x,
            "minZ": self.min_z,
            "maxZ": self.max_z,
        }


@dataclass
class Territory:
    """One grid cell. ``bounds`` is None only for the spawn territory."""

    territory_id: str
    bounds: Bounds | None
    claimed: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.territory_id,
            "bounds": self.bounds.to_dict() if self.bounds else None,
            "claimed": self.claimed,
        }


class TerritoryGrid:
    """Lazily-populated grid of territories keyed ``"{gridX},{gridZ}"``.

    Cells are created the first time a position falls inside them and are
    never removed.
    """

    def __init__(self, cell_size: int = 100) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.cell_size = cell_size
        self._cells: dict[str, Territory] = {}
        self._spawn = Territory(territory_id=SPAWN_TERRITORY_ID, bounds=None)

    def cell_id(self, position: Position) -> str:
        grid_x = math.floor(position.x / self.cell_size)
        grid_z = math.floor(position.z / self.cell_size)
        return f"{grid_x},{grid_z}"

    def territory_for(self, position: Position | None) -> Territory:
        """Return the territory containing *position*, creating it if unseen."""
        if position is None:
            return self._spawn

        territory_id = self.cell_id(position)
        territory = self._cells.get(territory_id)
        if territory is None:
            grid_x = math.floor(position.x / self.cell_size)
            grid_z = math.floor(position.z / self.cell_size)
            size = self.cell_size
            territory = Territory(
                territory_id=territory_id,
                bounds=Bounds(
                    min_x=grid_x * size,
                    max_x=(grid_x + 1) * size,
                    min_z=grid_z * size,
                    max_z=(grid_z + 1) * size,
                ),
            )
            self._cells[territory_id] = territory
        return territory

    def get(self, territory_id: str) -> Territory | None:
        if territory_id == SPAWN_TERRITORY_ID:
            return self._spawn
        return self._cells.get(territory_id)

    def __len__(self) -> int:
        return len(self._cells)

    def clear(self) -> None:
        self._cells.clear()
