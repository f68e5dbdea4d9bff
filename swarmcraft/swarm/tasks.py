"""TaskQueue and scheduler — priority backlog and bot selection."""

from __future__ import annotations

import bisect
import logging
import random
import string
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Iterator

from swarmcraft.swarm.bot import BotRecord, BotRole
from swarmcraft.swarm.geometry import Position

logger = logging.getLogger("SwarmCraft.Swarm.Tasks")

ROLE_MATCH_BONUS = 30.0
DISTANCE_WEIGHT = 0.1
EXPERIENCE_WEIGHT = 0.5


class TaskPriority(IntEnum):
    """Named priority levels. Any integer is a valid priority."""

    CRITICAL = 100  # safety, survival
    HIGH = 75  # diamonds, combat
    MEDIUM = 50  # resource gathering
    LOW = 25  # exploration
    IDLE = 0  # background


def validate_priority(priority: Any) -> int:
    """Return *priority* as an int. Level names (``"high"``) are accepted."""
    if isinstance(priority, str) and priority.upper() in TaskPriority.__members__:
        return int(TaskPriority[priority.upper()])
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValueError(f"priority must be an integer, got {priority!r}")
    return int(priority)


def new_task_id(now: float) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"task_{int(now * 1000)}_{suffix}"


@dataclass
class Task:
    """A unit of work waiting for, or bound to, a bot."""

    task_id: str
    payload: Any
    priority: int = TaskPriority.MEDIUM
    required_role: BotRole | None = None
    required_capability: str | None = None
    location: Position | None = None
    submitted_at: float = field(default_factory=time.time)
    assigned_to: str | None = None
    attempts: int = 0

    def __post_init__(self) -> None:
        self.priority = validate_priority(self.priority)
        if self.required_role is not None:
            self.required_role = BotRole(self.required_role)

    def to_dict(self) -> dict:
        return {
            "id": self.task_id,
            "task": self.payload,
            "priority": self.priority,
            "requiredRole": self.required_role.value if self.required_role else None,
            "requiredCapability": self.required_capability,
            "location": self.location.to_dict() if self.location else None,
            "submittedAt": self.submitted_at,
            "assignedTo": self.assigned_to,
            "attempts": self.attempts,
        }


class TaskQueue:
    """Bounded queue kept in priority-descending order.

    A task is inserted after every entry whose priority is greater than or
    equal to its own, so equal priorities stay first-in first-out.  When
    the capacity is exceeded the tail (lowest priority, newest among
    equals) is dropped.
    """

    def __init__(self, capacity: int = 100) -> None:
        self.capacity = capacity
        self._items: list[Task] = []

    def push(self, task: Task) -> Task | None:
        """Insert *task*. Returns the task dropped for capacity, if any."""
        index = bisect.bisect_right(self._items, -task.priority, key=lambda t: -t.priority)
        self._items.insert(index, task)
        if len(self._items) > self.capacity:
            dropped = self._items.pop()
            logger.warning(
                f"Task queue full ({self.capacity}); dropped {dropped.task_id} "
                f"(priority {dropped.priority})"
            )
            return dropped
        return None

    def remove(self, task: Task) -> bool:
        for i, queued in enumerate(self._items):
            if queued is task:
                del self._items[i]
                return True
        return False

    def get(self, task_id: str) -> Task | None:
        for task in self._items:
            if task.task_id == task_id:
                return task
        return None

    def peek(self) -> Task | None:
        return self._items[0] if self._items else None

    def snapshot(self) -> list[Task]:
        return list(self._items)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, task: object) -> bool:
        return any(t is task for t in self._items)

    def clear(self) -> None:
        self._items.clear()


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


def is_candidate(bot: BotRecord, task: Task) -> bool:
    """True if *bot* may take *task* right now."""
    if not bot.is_idle:
        return False
    if task.required_role is not None and bot.role is not task.required_role:
        return False
    if task.required_capability and not bot.can_do(task.required_capability):
        return False
    return True


def score_bot(bot: BotRecord, task: Task) -> float:
    """Assignment score: efficient, nearby, experienced, role-matched bots win."""
    perf = bot.performance
    score = perf.efficiency * 100
    if task.location is not None and bot.position is not None:
        score -= bot.position.distance_to(task.location) * DISTANCE_WEIGHT
    score += perf.tasks_completed * EXPERIENCE_WEIGHT
    if task.required_role is not None and bot.role is task.required_role:
        score += ROLE_MATCH_BONUS
    return score


def select_bot(bots: Iterable[BotRecord], task: Task) -> BotRecord | None:
    """Highest-scoring candidate; the earliest-registered wins a tie."""
    best: BotRecord | None = None
    best_score = float("-inf")
    for bot in bots:
        if not is_candidate(bot, task):
            continue
        score = score_bot(bot, task)
        if score > best_score:
            best_score = score
            best = bot
    return best
