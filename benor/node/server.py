# benor/node/server.py
"""
Node process entry point - serve one consensus node over HTTP

Usage:
    benor-node --node-id 0 --nodes 4 --max-faulty 1 --initial-value 1
    benor-node --node-id 3 --nodes 4 --max-faulty 1 --faulty
"""

import argparse
import logging
import logging.config
import random
from dataclasses import dataclass
from typing import Optional

import uvicorn
from fastapi import FastAPI

from benor.config import Settings, get_settings
from benor.consensus import ConsensusConfig, ConsensusEngine
from benor.node.app import create_app
from benor.transport import HttpTransport

logger = logging.getLogger("benor.node.server")


@dataclass
class NodeBundle:
    """Everything one node process serves"""
    engine: ConsensusEngine
    transport: HttpTransport
    app: FastAPI
    port: int


def build_node(
    node_id: int,
    total_nodes: int,
    max_faulty: int,
    initial_value: Optional[int],
    is_faulty: bool = False,
    settings: Optional[Settings] = None,
    seed: Optional[int] = None
) -> NodeBundle:
    """Wire config, engine, HTTP transport and control surface for one node"""
    settings = settings or get_settings()
    config = ConsensusConfig.from_settings(
        node_id=node_id,
        total_nodes=total_nodes,
        max_faulty=max_faulty,
        initial_value=None if is_faulty else initial_value,
        is_faulty=is_faulty,
        settings=settings,
    )
    if seed is None:
        seed = settings.CONSENSUS_SEED
    rng = random.Random(None if seed is None else seed + node_id)

    transport = HttpTransport(
        node_id=node_id,
        host=settings.NODE_HOST,
        base_port=settings.BASE_NODE_PORT,
        timeout=settings.SEND_TIMEOUT,
    )
    engine = ConsensusEngine(config=config, transport=transport, rng=rng)
    app = create_app(engine, transport)
    return NodeBundle(engine=engine, transport=transport, app=app, port=settings.node_port(node_id))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one Ben-Or consensus node")
    parser.add_argument("--node-id", type=int, required=True, help="Index of this node (0-based)")
    parser.add_argument("--nodes", type=int, required=True, help="Total number of nodes (N)")
    parser.add_argument("--max-faulty", type=int, default=0, help="Assumed max faulty nodes (F)")
    parser.add_argument("--initial-value", type=int, choices=[0, 1], default=0, help="Initial estimate")
    parser.add_argument("--faulty", action="store_true", help="Run as a faulty (silent) node")
    parser.add_argument("--host", default=None, help="Bind host (default NODE_HOST)")
    parser.add_argument("--base-port", type=int, default=None, help="Base port (default BASE_NODE_PORT)")
    parser.add_argument("--seed", type=int, default=None, help="Coin flip seed")
    parser.add_argument("--log-level", default=None, help="Log level (default LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings()
    if args.host:
        settings.NODE_HOST = args.host
    if args.base_port is not None:
        settings.BASE_NODE_PORT = args.base_port

    logging.config.dictConfig(settings.get_log_config(args.log_level))

    bundle = build_node(
        node_id=args.node_id,
        total_nodes=args.nodes,
        max_faulty=args.max_faulty,
        initial_value=args.initial_value,
        is_faulty=args.faulty,
        settings=settings,
        seed=args.seed,
    )
    logger.info(f"Node {args.node_id} is listening on port {bundle.port}")
    uvicorn.run(bundle.app, host=settings.NODE_HOST, port=bundle.port, log_config=None)


if __name__ == "__main__":
    main()
