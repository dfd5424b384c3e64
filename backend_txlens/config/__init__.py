"""
Configuration management for Backend TxLens.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for RPC and cache configuration.
"""

from backend_txlens.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
