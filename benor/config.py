# benor/config.py
"""
Node Configuration Module - Environment-based configuration for consensus nodes
Per-process settings come from the environment; per-node protocol parameters
live in benor.consensus.engine.ConsensusConfig.
"""

import os
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


class Settings:
    """Process settings loaded from environment variables"""

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ==========================================================================
    # Network Settings
    # ==========================================================================
    NODE_HOST: str = os.getenv("NODE_HOST", "localhost")
    BASE_NODE_PORT: int = int(os.getenv("BASE_NODE_PORT", "3000"))
    SEND_TIMEOUT: float = float(os.getenv("SEND_TIMEOUT", "2.0"))

    # ==========================================================================
    # Consensus Timing (seconds)
    # ==========================================================================
    SETTLE_INTERVAL: float = float(os.getenv("SETTLE_INTERVAL", "0.1"))
    ROUND_DELAY: float = float(os.getenv("ROUND_DELAY", "0.01"))

    # ==========================================================================
    # Resource Limits
    # ==========================================================================
    MAX_RETAINED_ROUNDS: int = int(os.getenv("MAX_RETAINED_ROUNDS", "64"))

    @property
    def CONSENSUS_SEED(self) -> Optional[int]:
        """Seed for the coin flip source; None draws from OS entropy"""
        seed = os.getenv("CONSENSUS_SEED")
        if seed is None or seed == "":
            return None
        return int(seed)

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def max_retained_rounds(self) -> Optional[int]:
        """Retention window for the round store (0 disables pruning)"""
        if self.MAX_RETAINED_ROUNDS <= 0:
            return None
        return self.MAX_RETAINED_ROUNDS

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_testing(self) -> bool:
        return self.ENVIRONMENT.lower() == "testing"

    def node_port(self, node_id: int) -> int:
        """Port a node listens on"""
        return self.BASE_NODE_PORT + node_id

    def get_log_config(self, level: Optional[str] = None) -> dict:
        """Get logging configuration with node and correlation context"""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "correlation": {
                    "()": "benor.middleware.correlation.CorrelationIdFilter"
                }
            },
            "formatters": {
                "default": {
                    "format": (
                        "%(asctime)s [%(levelname)s] [node:%(node_id)s] "
                        "[corr-id:%(correlation_id)s] %(name)s: %(message)s"
                    ),
                    "datefmt": "%Y-%m-%dT%H:%M:%S"
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["correlation"],
                    "stream": "ext://sys.stdout"
                }
            },
            "root": {
                "level": (level or self.LOG_LEVEL).upper(),
                "handlers": ["console"]
            }
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
