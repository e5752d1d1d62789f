"""
pytest configuration for the consensus node test suite
"""

import random

import pytest

from benor.consensus import ConsensusConfig, ConsensusEngine
from benor.transport import InMemoryNetwork


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line("markers", "network: test binds real local ports")


@pytest.fixture
def make_config():
    """Factory for node configs with test-speed timing"""
    def _make(**overrides) -> ConsensusConfig:
        params = {
            "node_id": 0,
            "total_nodes": 4,
            "max_faulty": 1,
            "initial_value": 1,
            "is_faulty": False,
            "settle_interval": 0.01,
            "round_delay": 0.001,
        }
        params.update(overrides)
        return ConsensusConfig(**params)
    return _make


@pytest.fixture
def make_engine(make_config):
    """Factory for engines with a seeded coin flip source and no transport"""
    def _make(seed: int = 7, **overrides) -> ConsensusEngine:
        return ConsensusEngine(config=make_config(**overrides), rng=random.Random(seed))
    return _make


@pytest.fixture
def memory_network():
    """Lossless, zero-latency in-memory network"""
    return InMemoryNetwork(seed=1)
