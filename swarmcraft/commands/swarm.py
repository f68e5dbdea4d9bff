"""
swarmcraft/commands/swarm.py — Swarm coordinator CLI commands.

Usage (via CLI)::
    swarmcraft config
    swarmcraft config --config swarm.yaml --json
    swarmcraft replay scenario.yaml
    swarmcraft replay scenario.yaml --config swarm.yaml --json

A scenario is a YAML list of inbound events replayed in order through a
fresh coordinator::

    events:
      - topic: bot.register
        payload: {id: bot1, position: {x: 0, y: 64, z: 0}, capabilities: [mining]}
      - topic: task.submit
        payload: {task: mine_diamond, priority: high}
      - advance_s: 45          # move the scenario clock forward
      - tick: true             # run one heartbeat pass

Usage (programmatic)::
    from swarmcraft.commands.swarm import replay_scenario, load_scenario
    coord = replay_scenario(load_scenario("scenario.yaml"))
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.table import Table

from swarmcraft.swarm import EventBus, SwarmConfig, SwarmCoordinator, Topic

logger = logging.getLogger("SwarmCraft.Commands")

# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------


def resolve_config(config_path: Optional[str] = None) -> SwarmConfig:
    """Settings from *config_path* if given (or ``SWARMCRAFT_CONFIG``), else the environment."""
    path = config_path or os.getenv("SWARMCRAFT_CONFIG")
    if path:
        return SwarmConfig.load(path)
    return SwarmConfig.from_env()


def load_scenario(path: str) -> List[Dict[str, Any]]:
    """Load a scenario file and return its list of steps.

    Returns an empty list (and logs a warning) if the file is missing or
    not shaped like a scenario.
    """
    p = Path(path)
    if not p.exists():
        logger.warning("Scenario not found at %s", p)
        return []
    with open(p) as fh:
        data = yaml.safe_load(fh) or {}
    steps = data.get("events", []) if isinstance(data, dict) else data
    if not isinstance(steps, list):
        logger.warning("Scenario %s has no event list", p)
        return []
    return steps


class ScenarioClock:
    """Manually advanced clock so replays are deterministic."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def replay_scenario(
    steps: List[Dict[str, Any]], config: Optional[SwarmConfig] = None
) -> SwarmCoordinator:
    """Run *steps* through a new coordinator and return it for inspection."""
    config = config or SwarmConfig()
    config.enabled = True
    clock = ScenarioClock()
    bus = EventBus()
    coord = SwarmCoordinator(config, bus, clock=clock)
    coord.start(run_monitor=False)

    try:
        for i, step in enumerate(steps):
            if not isinstance(step, dict):
                logger.warning("Skipping step %d: not a mapping", i)
                continue
            if "advance_s" in step:
                clock.advance(float(step["advance_s"]))
            if step.get("tick"):
                coord.check_heartbeats()
            if "topic" in step:
                try:
                    topic = Topic(step["topic"])
                except ValueError:
                    logger.warning("Skipping step %d: unknown topic %r", i, step["topic"])
                    continue
                bus.publish(topic, step.get("payload") or {}, source=str(step.get("source", "")))
    finally:
        coord.stop()
    return coord


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_swarm_config(config_path: Optional[str] = None, output_json: bool = False) -> Dict[str, Any]:
    """Print the effective swarm settings."""
    settings = resolve_config(config_path).to_dict()
    if output_json:
        print(json.dumps(settings, indent=2))
        return settings

    table = Table(title="Swarm Config", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in settings.items():
        table.add_row(key, str(value))
    Console().print(table)
    return settings


def cmd_swarm_replay(
    scenario_path: str,
    config_path: Optional[str] = None,
    output_json: bool = False,
) -> Dict[str, Any]:
    """Replay a scenario and display the resulting swarm state.

    Returns the stats dict plus a ``bots`` list (useful for tests).
    """
    steps = load_scenario(scenario_path)
    coord = replay_scenario(steps, resolve_config(config_path))
    report = coord.get_stats()
    report["bots"] = [b.to_dict() for b in coord.all_bots()]
    report["queue"] = [t.to_dict() for t in coord.queued_tasks()]

    if output_json:
        print(json.dumps(report, indent=2, default=str))
        return report

    console = Console()
    summary = Table(title="Swarm Status", show_header=True, header_style="bold cyan")
    summary.add_column("Metric", style="bold")
    summary.add_column("Value")
    for key, value in report.items():
        if key in ("bots", "queue"):
            continue
        summary.add_row(key, json.dumps(value) if isinstance(value, dict) else str(value))
    console.print(summary)

    bots = Table(title=f"Bots: {len(report['bots'])}", show_header=True, header_style="bold cyan")
    bots.add_column("ID", style="bold")
    bots.add_column("Role")
    bots.add_column("Territory")
    bots.add_column("Status")
    bots.add_column("Efficiency")
    bots.add_column("Task")
    for bot in report["bots"]:
        status = "[yellow]busy[/]" if bot["status"] == "busy" else "[green]idle[/]"
        name = f"{bot['id']} [magenta](master)[/]" if bot["isMaster"] else bot["id"]
        bots.add_row(
            name,
            bot["role"],
            bot["territory"],
            status,
            f"{bot['performance']['efficiency']:.2f}",
            bot["currentTask"] or "-",
        )
    console.print(bots)
    return report
