"""
Environment variable loading for TxLens.

- SOLANA_NETWORK: mainnet | devnet | testnet (default: mainnet)
- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (fallback for RPC URL when SOLANA_RPC_URL unset)
- TXLENS_METADATA_TTL_SEC: token metadata cache TTL in seconds (default: 3600)
- TXLENS_RPC_TIMEOUT_SEC: HTTP timeout per RPC request (default: 30)
- TXLENS_RPC_MAX_RETRIES: attempts per RPC call on transport errors (default: 3)
- TXLENS_CONCURRENT: 1 to process instructions concurrently (default: 1)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_txlens/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
DEVNET_RPC_URL = "https://api.devnet.solana.com"
TESTNET_RPC_URL = "https://api.testnet.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"

NETWORK_NAMES = {
    "mainnet": "Solana Mainnet",
    "devnet": "Solana Devnet",
    "testnet": "Solana Testnet",
}

DEFAULT_METADATA_TTL_SEC = 3600.0
DEFAULT_RPC_TIMEOUT_SEC = 30.0
DEFAULT_RPC_MAX_RETRIES = 3


def load_txlens_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def get_solana_network() -> str:
    """
    Return SOLANA_NETWORK from env: mainnet | devnet | testnet.
    'mainnet-beta' is accepted as mainnet. Default: mainnet.
    """
    load_txlens_env()
    raw = (os.getenv("SOLANA_NETWORK") or os.getenv("SOLANA_CLUSTER") or "mainnet").strip().lower()
    if raw in ("mainnet", "mainnet-beta"):
        return "mainnet"
    if raw in ("devnet", "testnet"):
        return raw
    return "mainnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > public endpoint for the network.
    """
    load_txlens_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    network = get_solana_network()
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key and network in ("mainnet", "devnet"):
        template = HELIUS_DEVNET_URL_TEMPLATE if network == "devnet" else HELIUS_MAINNET_URL_TEMPLATE
        return template.format(key=key)
    return public_rpc_url(network)


def public_rpc_url(network: str) -> str:
    """Public Solana endpoint for mainnet | devnet | testnet (mainnet for anything else)."""
    if network == "devnet":
        return DEVNET_RPC_URL
    if network == "testnet":
        return TESTNET_RPC_URL
    return MAINNET_RPC_URL


def _get_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_metadata_ttl_sec() -> float:
    """Return TXLENS_METADATA_TTL_SEC (seconds); default 1 hour."""
    load_txlens_env()
    return _get_float("TXLENS_METADATA_TTL_SEC", DEFAULT_METADATA_TTL_SEC)


def get_rpc_timeout_sec() -> float:
    load_txlens_env()
    return _get_float("TXLENS_RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC)


def get_rpc_max_retries() -> int:
    load_txlens_env()
    return max(1, int(_get_float("TXLENS_RPC_MAX_RETRIES", DEFAULT_RPC_MAX_RETRIES)))


def use_concurrency() -> bool:
    """Return False only when TXLENS_CONCURRENT is explicitly disabled (0/false/no/off)."""
    load_txlens_env()
    raw = (os.getenv("TXLENS_CONCURRENT") or "").strip().lower()
    return raw not in ("0", "false", "no", "off")


def mask_rpc_url(rpc: str) -> str:
    """Mask API key in URL if present."""
    if "api-key=" in rpc:
        return rpc.split("api-key=")[0] + "api-key=***"
    return rpc
