"""
Application settings resolved from the environment (see config/env.py).

get_settings() is cached for the process; call get_settings.cache_clear()
after changing the environment (tests do this through a fixture).
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

from backend_txlens.config import env


@dataclass(frozen=True)
class Settings:
    network: str
    network_name: str
    rpc_url: str
    metadata_ttl_sec: float
    rpc_timeout_sec: float
    rpc_max_retries: int
    concurrent: bool


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the current application settings."""
    network = env.get_solana_network()
    return Settings(
        network=network,
        network_name=env.NETWORK_NAMES.get(network, network),
        rpc_url=env.get_solana_rpc_url(),
        metadata_ttl_sec=env.get_metadata_ttl_sec(),
        rpc_timeout_sec=env.get_rpc_timeout_sec(),
        rpc_max_retries=env.get_rpc_max_retries(),
        concurrent=env.use_concurrency(),
    )
