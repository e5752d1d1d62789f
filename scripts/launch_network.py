#!/usr/bin/env python3
"""
Ben-Or Network Launcher
Starts N HTTP nodes on local ports, runs consensus to completion and prints
every node's final state as JSON.

Usage:
    python scripts/launch_network.py --values 1,1,1,1 --faulty 3 --max-faulty 1
"""

import argparse
import asyncio
import json
import logging.config
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from benor.cluster import NetworkLauncher
from benor.config import get_settings


def parse_values(values_str: str):
    values = [int(v) for v in values_str.split(",") if v.strip()]
    if any(v not in (0, 1) for v in values):
        raise argparse.ArgumentTypeError(f"Initial values must be 0 or 1: {values_str}")
    return values


def parse_ids(ids_str: str):
    return {int(i) for i in ids_str.split(",") if i.strip()}


async def run(args) -> int:
    settings = get_settings()
    if args.base_port is not None:
        settings.BASE_NODE_PORT = args.base_port

    faulty = [i in args.faulty for i in range(len(args.values))]

    async with NetworkLauncher(
        args.values,
        faulty=faulty,
        max_faulty=args.max_faulty,
        settings=settings,
        seed=args.seed,
    ) as network:
        await network.start_consensus()
        states = await network.wait_for_decision(timeout=args.timeout)
        if args.stop:
            await network.stop_all()
            states = await network.get_states()

    print(json.dumps({str(k): v for k, v in states.items()}, indent=2))

    honest = [states[i] for i in range(len(faulty)) if not faulty[i]]
    return 0 if all(s["decided"] is True for s in honest) else 1


def main():
    parser = argparse.ArgumentParser(
        description="Launch a local Ben-Or consensus network"
    )
    parser.add_argument(
        "--values",
        type=parse_values,
        required=True,
        help="Comma-separated initial values, one per node (e.g. 1,0,1,1)"
    )
    parser.add_argument(
        "--faulty",
        type=parse_ids,
        default=set(),
        help="Comma-separated ids of faulty nodes. Default: none"
    )
    parser.add_argument(
        "--max-faulty",
        type=int,
        default=0,
        help="Assumed max faulty nodes (F). Default: 0"
    )
    parser.add_argument(
        "--base-port",
        type=int,
        default=None,
        help="Port of node 0. Default: BASE_NODE_PORT"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Coin flip seed. Default: OS entropy"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for all nodes to decide. Default: 30"
    )
    parser.add_argument(
        "--stop",
        action="store_true",
        help="Stop every node after waiting"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level. Default: WARNING"
    )

    args = parser.parse_args()
    logging.config.dictConfig(get_settings().get_log_config(args.log_level))

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
