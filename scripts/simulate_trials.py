#!/usr/bin/env python3
"""
Ben-Or Trial Simulator
Runs many in-memory networks and reports agreement, validity and
termination statistics as JSON.

Usage:
    python scripts/simulate_trials.py --trials 200 --nodes 4 --max-faulty 1 --faulty-count 1
"""

import argparse
import asyncio
import json
import logging.config
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from benor.config import get_settings
from benor.simulation import run_trials


def parse_latency(latency_str: str):
    """'0.001-0.01' -> (0.001, 0.01); a single number means fixed latency"""
    low, _, high = latency_str.partition("-")
    return float(low), float(high or low)


def main():
    parser = argparse.ArgumentParser(
        description="Simulate Ben-Or consensus over many seeded trials"
    )
    parser.add_argument("--trials", type=int, default=100, help="Number of trials. Default: 100")
    parser.add_argument("--nodes", type=int, default=4, help="Nodes per network (N). Default: 4")
    parser.add_argument("--max-faulty", type=int, default=1, help="Assumed max faulty (F). Default: 1")
    parser.add_argument(
        "--faulty-count",
        type=int,
        default=0,
        help="Nodes actually faulty (the highest ids). Default: 0"
    )
    parser.add_argument(
        "--initial-value",
        type=int,
        choices=[0, 1],
        default=None,
        help="Start every node with this value. Default: random per trial"
    )
    parser.add_argument("--seed", type=int, default=0, help="Seed of the first trial. Default: 0")
    parser.add_argument(
        "--settle",
        type=float,
        default=0.01,
        help="Settle interval in seconds. Default: 0.01"
    )
    parser.add_argument(
        "--latency",
        type=parse_latency,
        default=(0.0, 0.0),
        help="Per-message latency range in seconds, e.g. 0.001-0.005. Default: 0"
    )
    parser.add_argument(
        "--drop-rate",
        type=float,
        default=0.0,
        help="Probability of losing each vote. Default: 0"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds before an undecided trial is abandoned. Default: 10"
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

    initial_values = None
    if args.initial_value is not None:
        initial_values = [args.initial_value] * args.nodes

    try:
        summary = asyncio.run(run_trials(
            args.trials,
            total_nodes=args.nodes,
            max_faulty=args.max_faulty,
            faulty_count=args.faulty_count,
            initial_values=initial_values,
            seed=args.seed,
            settle_interval=args.settle,
            latency_range=args.latency,
            drop_rate=args.drop_rate,
            timeout=args.timeout,
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)

    print(json.dumps(summary.to_dict(), indent=2))
    sys.exit(0 if summary.agreement_violations == 0 and summary.validity_violations == 0 else 1)


if __name__ == "__main__":
    main()
