"""
SwarmCraft Heartbeat Monitor -- declare bots dead when they stop reporting.

Every bot seeds a timestamp on registration and refreshes it with each
heartbeat.  A background thread wakes every ``interval_s`` and calls the
coordinator's tick function, which asks :meth:`HeartbeatMonitor.expired`
for the bots silent longer than ``timeout_s`` and fails them over.

Config (``swarm`` section)::

    swarm:
      heartbeat_interval_s: 10.0
      failover_timeout_s: 30.0
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger("SwarmCraft.Swarm.Heartbeat")


class HeartbeatMonitor:
    """Tracks last-seen times and drives the periodic failover check."""

    def __init__(
        self,
        interval_s: float = 10.0,
        timeout_s: float = 30.0,
        tick_fn: Callable[[], object] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the monitor.

        Args:
            interval_s: Seconds between background ticks.
            timeout_s: Silence after which a bot counts as dead.
            tick_fn: Callable invoked on every tick (typically
                ``SwarmCoordinator.check_heartbeats``).
            clock: Time source, seconds since epoch.
        """
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self._tick_fn = tick_fn
        self._clock = clock
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def beat(self, bot_id: str, at: float | None = None) -> None:
        """Record a heartbeat for *bot_id* (now, unless *at* is given)."""
        with self._lock:
            self._last_seen[bot_id] = self._clock() if at is None else at

    def forget(self, bot_id: str) -> None:
        with self._lock:
            self._last_seen.pop(bot_id, None)

    def last_seen(self, bot_id: str) -> float | None:
        with self._lock:
            return self._last_seen.get(bot_id)

    def expired(self, now: float | None = None) -> list[str]:
        """Bots whose silence exceeds the timeout, in registration order."""
        now = self._clock() if now is None else now
        with self._lock:
            return [bid for bid, seen in self._last_seen.items() if now - seen > self.timeout_s]

    def clear(self) -> None:
        with self._lock:
            self._last_seen.clear()

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the monitor thread. No-op if already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._monitor_loop, daemon=True, name="swarm-heartbeat"
        )
        self._thread.start()
        logger.info(
            f"Heartbeat monitor active: every {self.interval_s}s, timeout {self.timeout_s}s"
        )

    def stop(self) -> None:
        """Stop the monitor thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        """Run one check synchronously."""
        self._ticks += 1
        if self._tick_fn is None:
            return
        try:
            self._tick_fn()
        except Exception as exc:
            logger.error(f"Heartbeat tick failed: {exc}")

    def _monitor_loop(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            self.tick()

    def get_status(self) -> dict:
        """Return monitor status for telemetry."""
        now = self._clock()
        with self._lock:
            silences = {bid: round(now - seen, 1) for bid, seen in self._last_seen.items()}
        return {
            "running": self.is_running,
            "interval_s": self.interval_s,
            "timeout_s": self.timeout_s,
            "ticks": self._ticks,
            "tracked": len(silences),
            "silence_s": silences,
        }
