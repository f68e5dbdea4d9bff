"""MasterElection — picks the single leader bot of the swarm."""

from __future__ import annotations

import logging

from swarmcraft.swarm.bot import BotRecord
from swarmcraft.swarm.registry import BotRegistry

logger = logging.getLogger("SwarmCraft.Swarm.Election")


class MasterElection:
    """Deterministic performance-based election.

    Score is ``efficiency * 100 + tasks_completed``.  The highest score
    wins; on a tie the bot that registered first keeps the lead because
    only a strictly better score replaces the current best.
    """

    def __init__(self, registry: BotRegistry) -> None:
        self._registry = registry
        self.master_id: str | None = None

    def elect(self) -> BotRecord | None:
        """Clear the current master flag and flag the best-scoring bot.

        Returns the new master, or None if the registry is empty.
        """
        previous = self._registry.get(self.master_id) if self.master_id else None
        if previous is not None:
            previous.is_master = False

        best: BotRecord | None = None
        best_score = float("-inf")
        for bot in self._registry:
            bot.is_master = False
            score = bot.performance.election_score
            if score > best_score:
                best_score = score
                best = bot

        if best is None:
            self.master_id = None
            return None

        best.is_master = True
        self.master_id = best.bot_id
        logger.info(f"Elected new master: {best.bot_id} (score {best_score:.1f})")
        return best

    def needs_election(self) -> bool:
        return self.master_id is None or self.master_id not in self._registry

    def reset(self) -> None:
        self.master_id = None
