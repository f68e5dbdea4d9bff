"""BotRegistry — holds one BotRecord per registered bot and assigns roles.

Roles are picked once at registration and never change afterwards:

1. An explicitly requested role wins.
2. Otherwise the first of GUARDIAN, MINER, HARVESTER, SCOUT that no
   current bot holds yet.
3. Otherwise inferred from capability keywords.
4. Otherwise GENERAL.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Iterator

from swarmcraft.swarm.bot import BotRecord, BotRole, Performance
from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.territory import TerritoryGrid

logger = logging.getLogger("SwarmCraft.Swarm.Registry")

ROLE_PREFERENCE: tuple[BotRole, ...] = (
    BotRole.GUARDIAN,
    BotRole.MINER,
    BotRole.HARVESTER,
    BotRole.SCOUT,
)

CAPABILITY_ROLES: tuple[tuple[str, BotRole], ...] = (
    ("combat", BotRole.GUARDIAN),
    ("mining", BotRole.MINER),
    ("farming", BotRole.HARVESTER),
    ("building", BotRole.BUILDER),
    ("crafting", BotRole.CRAFTER),
    ("exploration", BotRole.SCOUT),
)


class BotRegistry:
    """Insertion-ordered bot table with a hard capacity.

    Iteration order is registration order; master election relies on it
    for tie-breaking.
    """

    def __init__(
        self,
        grid: TerritoryGrid,
        max_bots: int = 10,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.grid = grid
        self.max_bots = max_bots
        self._clock = clock
        self._bots: dict[str, BotRecord] = {}

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @property
    def is_full(self) -> bool:
        return len(self._bots) >= self.max_bots

    def register(
        self,
        bot_id: str,
        position: Position | None = None,
        capabilities: Iterable[str] = (),
        role: BotRole | str | None = None,
    ) -> BotRecord | None:
        """Create a record for *bot_id*.

        Returns None when the registry is full or the id is already taken.
        """
        if bot_id in self._bots:
            logger.warning(f"Cannot register bot {bot_id}: already registered")
            return None
        if self.is_full:
            logger.warning(f"Cannot register bot {bot_id}: max bots ({self.max_bots}) reached")
            return None

        if isinstance(capabilities, str):
            capabilities = (capabilities,)
        caps = frozenset(capabilities or ())
        assigned = BotRole(role) if role else self.assign_role(caps)
        now = self._clock()
        record = BotRecord(
            bot_id=bot_id,
            position=position,
            capabilities=caps,
            role=assigned,
            territory=self.grid.territory_for(position),
            performance=Performance(last_active=now),
            registered_at=now,
        )
        self._bots[bot_id] = record
        return record

    def remove(self, bot_id: str) -> BotRecord | None:
        return self._bots.pop(bot_id, None)

    def assign_role(self, capabilities: Iterable[str] = ()) -> BotRole:
        """Pick the role a newly registering bot should take."""
        present = {bot.role for bot in self._bots.values()}
        for role in ROLE_PREFERENCE:
            if role not in present:
                return role

        caps = set(capabilities)
        for keyword, role in CAPABILITY_ROLES:
            if keyword in caps:
                return role
        return BotRole.GENERAL

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, bot_id: str) -> BotRecord | None:
        return self._bots.get(bot_id)

    def all(self) -> list[BotRecord]:
        return list(self._bots.values())

    def by_role(self, role: BotRole | str) -> list[BotRecord]:
        wanted = BotRole(role)
        return [b for b in self._bots.values() if b.role is wanted]

    def role_distribution(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for bot in self._bots.values():
            counts[bot.role.value] = counts.get(bot.role.value, 0) + 1
        return counts

    @property
    def master(self) -> BotRecord | None:
        for bot in self._bots.values():
            if bot.is_master:
                return bot
        return None

    def __contains__(self, bot_id: object) -> bool:
        return bot_id in self._bots

    def __iter__(self) -> Iterator[BotRecord]:
        return iter(list(self._bots.values()))

    def __len__(self) -> int:
        return len(self._bots)

    def clear(self) -> None:
        self._bots.clear()
