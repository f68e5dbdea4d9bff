"""
SwarmCraft CLI entry point.

Usage:
    swarmcraft config [--config swarm.yaml] [--json]        # Effective settings
    swarmcraft replay scenario.yaml [--config swarm.yaml]   # Replay events, show state
"""

import argparse
import logging
import os
import sys


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.getenv("LOG_LEVEL", "").upper() == "DEBUG" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def cmd_config(args) -> None:
    """Show the effective swarm configuration."""
    from swarmcraft.commands.swarm import cmd_swarm_config

    cmd_swarm_config(config_path=args.config, output_json=args.json)


def cmd_replay(args) -> None:
    """Replay a scenario file through a fresh coordinator."""
    from swarmcraft.commands.swarm import cmd_swarm_replay

    if not os.path.exists(args.scenario):
        print(f"\n  Scenario '{args.scenario}' not found.\n")
        sys.exit(1)
    cmd_swarm_replay(args.scenario, config_path=args.config, output_json=args.json)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="swarmcraft",
        description="SwarmCraft - multi-bot swarm coordinator",
        epilog=(
            "Examples:\n"
            "  swarmcraft config --json\n"
            "  swarmcraft replay scenario.yaml --config swarm.yaml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    p_config = sub.add_parser("config", help="Show effective swarm settings")
    p_config.add_argument("--config", default=None, help="YAML config with a 'swarm' section")
    p_config.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    p_replay = sub.add_parser("replay", help="Replay a scenario of inbound events")
    p_replay.add_argument("scenario", help="Scenario YAML file")
    p_replay.add_argument("--config", default=None, help="YAML config with a 'swarm' section")
    p_replay.add_argument("--json", action="store_true", help="Print JSON instead of tables")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    commands = {
        "config": cmd_config,
        "replay": cmd_replay,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == "__main__":
    main()
