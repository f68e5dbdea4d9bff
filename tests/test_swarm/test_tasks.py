"""Tests for TaskQueue and bot selection."""

from __future__ import annotations

import pytest

from swarmcraft.swarm.bot import BotRecord, BotRole, BotStatus, Performance
from swarmcraft.swarm.geometry import Position
from swarmcraft.swarm.tasks import (
    ROLE_MATCH_BONUS,
    Task,
    TaskPriority,
    TaskQueue,
    is_candidate,
    new_task_id,
    score_bot,
    select_bot,
    validate_priority,
)
from swarmcraft.swarm.territory import TerritoryGrid

_GRID = TerritoryGrid()


def _make_task(task_id: str = "t1", priority: int = TaskPriority.MEDIUM, **kwargs) -> Task:
    return Task(task_id=task_id, payload=task_id, priority=priority, submitted_at=0.0, **kwargs)


def _make_bot(
    bot_id: str = "bot1",
    role: BotRole = BotRole.GENERAL,
    position: Position | None = None,
    capabilities=(),
    efficiency: float = 1.0,
    tasks_completed: int = 0,
) -> BotRecord:
    return BotRecord(
        bot_id=bot_id,
        position=position,
        capabilities=frozenset(capabilities),
        role=role,
        territory=_GRID.territory_for(position),
        performance=Performance(tasks_completed=tasks_completed, efficiency=efficiency),
    )


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class TestTask:
    def test_priority_names(self):
        assert validate_priority("critical") == 100
        assert validate_priority("IDLE") == 0

    def test_any_integer_priority(self):
        assert validate_priority(42) == 42
        assert validate_priority(-5) == -5

    @pytest.mark.parametrize("bad", [True, 1.5, "urgent", None])
    def test_invalid_priority(self, bad):
        with pytest.raises(ValueError):
            validate_priority(bad)

    def test_role_coerced(self):
        task = _make_task(required_role="miner")
        assert task.required_role is BotRole.MINER

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            _make_task(required_role="pirate")

    def test_id_format(self):
        task_id = new_task_id(1.5)
        prefix, millis, suffix = task_id.split("_")
        assert prefix == "task"
        assert millis == "1500"
        assert len(suffix) == 9

    def test_ids_unique(self):
        assert len({new_task_id(0.0) for _ in range(50)}) == 50

    def test_to_dict(self):
        task = _make_task(location=Position(1, 2, 3), required_capability="mining")
        d = task.to_dict()
        assert d["id"] == "t1"
        assert d["priority"] == 50
        assert d["location"] == {"x": 1, "y": 2, "z": 3}
        assert d["requiredCapability"] == "mining"
        assert d["requiredRole"] is None


# ---------------------------------------------------------------------------
# TaskQueue
# ---------------------------------------------------------------------------


class TestTaskQueue:
    def test_priority_descending(self):
        q = TaskQueue()
        for i, p in enumerate([25, 100, 50, 0, 75]):
            q.push(_make_task(f"t{i}", p))
        assert [t.priority for t in q] == [100, 75, 50, 25, 0]

    def test_equal_priority_fifo(self):
        q = TaskQueue()
        q.push(_make_task("a", 50))
        q.push(_make_task("b", 50))
        q.push(_make_task("c", 75))
        q.push(_make_task("d", 50))
        assert [t.task_id for t in q] == ["c", "a", "b", "d"]

    def test_overflow_drops_tail(self):
        q = TaskQueue(capacity=2)
        q.push(_make_task("a", 50))
        q.push(_make_task("b", 50))
        dropped = q.push(_make_task("c", 75))
        assert dropped.task_id == "b"
        assert [t.task_id for t in q] == ["c", "a"]

    def test_overflow_can_drop_new_task(self):
        q = TaskQueue(capacity=1)
        q.push(_make_task("a", 75))
        dropped = q.push(_make_task("b", 25))
        assert dropped.task_id == "b"
        assert len(q) == 1

    def test_remove_and_contains(self):
        q = TaskQueue()
        task = _make_task()
        q.push(task)
        assert task in q
        assert q.remove(task) is True
        assert task not in q
        assert q.remove(task) is False

    def test_get_and_peek(self):
        q = TaskQueue()
        assert q.peek() is None
        q.push(_make_task("a", 10))
        q.push(_make_task("b", 90))
        assert q.peek().task_id == "b"
        assert q.get("a").priority == 10
        assert q.get("zzz") is None

    def test_iteration_is_snapshot(self):
        q = TaskQueue()
        q.push(_make_task("a"))
        q.push(_make_task("b"))
        for task in q:
            q.remove(task)
        assert len(q) == 0


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestSelection:
    def test_busy_bot_not_candidate(self):
        bot = _make_bot()
        bot.status = BotStatus.BUSY
        assert is_candidate(bot, _make_task()) is False

    def test_idle_bot_is_candidate(self):
        assert is_candidate(_make_bot(), _make_task()) is True

    def test_role_requirement(self):
        task = _make_task(required_role=BotRole.SCOUT)
        assert is_candidate(_make_bot(role=BotRole.SCOUT), task)
        assert not is_candidate(_make_bot(role=BotRole.MINER), task)

    def test_capability_requirement(self):
        task = _make_task(required_capability="farming")
        assert is_candidate(_make_bot(capabilities={"farming"}), task)
        assert not is_candidate(_make_bot(capabilities={"mining"}), task)

    def test_score_components(self):
        bot = _make_bot(
            role=BotRole.MINER, position=Position(0, 0, 0), efficiency=1.5, tasks_completed=10
        )
        task = _make_task(required_role=BotRole.MINER, location=Position(30, 0, 40))
        expected = 150 - 5 + 5 + ROLE_MATCH_BONUS
        assert score_bot(bot, task) == pytest.approx(expected)

    def test_no_distance_penalty_without_location(self):
        bot = _make_bot(position=Position(1000, 0, 0))
        assert score_bot(bot, _make_task()) == pytest.approx(100)

    def test_highest_score_wins(self):
        slow = _make_bot("slow", efficiency=0.8)
        fast = _make_bot("fast", efficiency=1.6)
        assert select_bot([slow, fast], _make_task()).bot_id == "fast"

    def test_tie_goes_to_first(self):
        a, b = _make_bot("a"), _make_bot("b")
        assert select_bot([a, b], _make_task()).bot_id == "a"

    def test_no_candidates(self):
        bot = _make_bot()
        bot.status = BotStatus.BUSY
        assert select_bot([bot], _make_task()) is None
