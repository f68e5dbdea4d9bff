"""Tests for BotRegistry, MasterElection and the bot records."""

from __future__ import annotations

import pytest

from swarmcraft.swarm.bot import BotRole, Performance
from swarmcraft.swarm.election import MasterElection
from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.registry import BotRegistry
from swarmcraft.swarm.territory import TerritoryGrid


def _make_registry(max_bots: int = 10, clock=None) -> BotRegistry:
    kwargs = {"clock": clock} if clock is not None else {}
    return BotRegistry(TerritoryGrid(100), max_bots=max_bots, **kwargs)


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------


class TestPerformance:
    def test_success_raises_efficiency(self):
        perf = Performance()
        perf.record_success()
        assert perf.efficiency == pytest.approx(1.05)

    def test_failure_lowers_efficiency(self):
        perf = Performance()
        perf.record_failure()
        assert perf.efficiency == pytest.approx(0.95)

    def test_clamped(self):
        perf = Performance(efficiency=1.99)
        perf.record_success()
        assert perf.efficiency == 2.0
        perf = Performance(efficiency=0.51)
        perf.record_failure()
        assert perf.efficiency == 0.5

    def test_election_score(self):
        assert Performance(tasks_completed=7, efficiency=1.2).election_score == pytest.approx(127)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_register_seeds_times(self, clock):
        reg = _make_registry(clock=clock)
        bot = reg.register("bot1", Position(5, 64, 5))
        assert bot.registered_at == clock.now
        assert bot.performance.last_active == clock.now
        assert bot.territory.territory_id == "0,0"
        assert bot.health == 20.0

    def test_capacity(self):
        reg = _make_registry(max_bots=1)
        assert reg.register("a") is not None
        assert reg.is_full
        assert reg.register("b") is None
        assert len(reg) == 1

    def test_duplicate(self):
        reg = _make_registry()
        first = reg.register("a")
        assert reg.register("a") is None
        assert reg.get("a") is first

    def test_capability_string_is_one_capability(self):
        reg = _make_registry()
        bot = reg.register("a", capabilities="mining")
        assert bot.capabilities == frozenset({"mining"})
        assert bot.can_do("mining")
        assert not bot.can_do("m")

    def test_role_preference_order(self):
        reg = _make_registry()
        roles = [reg.register(f"b{i}").role for i in range(5)]
        assert roles == [
            BotRole.GUARDIAN,
            BotRole.MINER,
            BotRole.HARVESTER,
            BotRole.SCOUT,
            BotRole.GENERAL,
        ]

    def test_capability_role_after_preferences_filled(self):
        reg = _make_registry()
        for i in range(4):
            reg.register(f"b{i}")
        assert reg.register("builder", capabilities=["building"]).role is BotRole.BUILDER
        assert reg.register("crafter", capabilities=["crafting"]).role is BotRole.CRAFTER

    def test_preference_refills_after_removal(self):
        reg = _make_registry()
        reg.register("g")
        reg.register("m")
        reg.remove("g")
        assert reg.register("next").role is BotRole.GUARDIAN

    def test_by_role_and_distribution(self):
        reg = _make_registry()
        reg.register("a", role="miner")
        reg.register("b", role="miner")
        reg.register("c", role="scout")
        assert [b.bot_id for b in reg.by_role("miner")] == ["a", "b"]
        assert reg.role_distribution() == {"miner": 2, "scout": 1}

    def test_iteration_order(self):
        reg = _make_registry()
        for name in ("z", "a", "m"):
            reg.register(name)
        assert [b.bot_id for b in reg] == ["z", "a", "m"]

    def test_to_dict(self):
        reg = _make_registry()
        bot = reg.register("bot1", Position(1, 2, 3), capabilities=["mining", "combat"])
        d = bot.to_dict()
        assert d["id"] == "bot1"
        assert d["capabilities"] == ["combat", "mining"]
        assert d["status"] == "idle"
        assert d["currentTask"] is None
        assert d["isMaster"] is False


# ---------------------------------------------------------------------------
# Election
# ---------------------------------------------------------------------------


class TestElection:
    def test_empty_registry(self):
        election = MasterElection(_make_registry())
        assert election.elect() is None
        assert election.master_id is None
        assert election.needs_election()

    def test_best_score_wins(self):
        reg = _make_registry()
        reg.register("a")
        b = reg.register("b")
        b.performance.efficiency = 1.4
        election = MasterElection(reg)
        assert election.elect().bot_id == "b"
        assert reg.master.bot_id == "b"

    def test_tie_keeps_registration_order(self):
        reg = _make_registry()
        reg.register("a")
        reg.register("b")
        assert MasterElection(reg).elect().bot_id == "a"

    def test_single_master_flag(self):
        reg = _make_registry()
        for name in ("a", "b", "c"):
            reg.register(name)
        election = MasterElection(reg)
        election.elect()
        reg.get("c").performance.tasks_completed = 50
        election.elect()
        assert [b.bot_id for b in reg if b.is_master] == ["c"]

    def test_needs_election_after_master_removed(self):
        reg = _make_registry()
        reg.register("a")
        election = MasterElection(reg)
        election.elect()
        assert not election.needs_election()
        reg.remove("a")
        assert election.needs_election()
