"""
Analyze one Solana transaction and print the report as JSON.

How to run:
    From project root (with .env configured):
        python -m backend_txlens.tools.analyze_transaction <signature>
        python -m backend_txlens.tools.analyze_transaction <signature> --network devnet --sequential
    Or, after pip install -e .:
        txlens-analyze <signature>

Env vars (see backend_txlens/config/env.py):
    SOLANA_RPC_URL / HELIUS_API_KEY, SOLANA_NETWORK, TXLENS_METADATA_TTL_SEC,
    TXLENS_RPC_TIMEOUT_SEC, TXLENS_RPC_MAX_RETRIES, TXLENS_CONCURRENT

Output: report JSON on stdout; structured logs on stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from backend_txlens.analytics.transaction_report import analyze_signature
from backend_txlens.config import get_settings
from backend_txlens.config.env import NETWORK_NAMES, mask_rpc_url, public_rpc_url
from backend_txlens.core.exceptions import TxLensError
from backend_txlens.interpreter.processor import InstructionProcessor
from backend_txlens.solana_listener.rpc import SolanaRpcClient
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)


async def run(
    signature: str,
    *,
    rpc_url: str | None = None,
    network: str | None = None,
    concurrent: bool | None = None,
) -> dict[str, Any]:
    """Fetch and analyze signature; return the report dict."""
    settings = get_settings()
    network = network or settings.network
    if rpc_url is None:
        rpc_url = settings.rpc_url if network == settings.network else public_rpc_url(network)
    if concurrent is None:
        concurrent = settings.concurrent
    logger.info(
        "analyze_transaction_start",
        signature=signature,
        network=network,
        rpc=mask_rpc_url(rpc_url),
        concurrent=concurrent,
    )
    async with SolanaRpcClient(
        rpc_url,
        request_timeout_sec=settings.rpc_timeout_sec,
        max_retries=settings.rpc_max_retries,
    ) as client:
        processor = InstructionProcessor.from_provider(
            client,
            ttl_sec=settings.metadata_ttl_sec,
            concurrent=concurrent,
        )
        report = await analyze_signature(
            signature,
            client,
            processor,
            network_name=NETWORK_NAMES.get(network, network),
            cluster=network,
        )
    return report.to_dict()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Interpret a Solana transaction: programs, instructions, transfers, complexity and risk.",
    )
    parser.add_argument("signature", help="Transaction signature (base58)")
    parser.add_argument("--rpc-url", default=None, help="RPC endpoint (default: from env)")
    parser.add_argument(
        "--network",
        choices=sorted(NETWORK_NAMES),
        default=None,
        help="Cluster (default: SOLANA_NETWORK or mainnet)",
    )
    parser.add_argument("--sequential", action="store_true", help="Process instructions one at a time")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    args = parser.parse_args(argv)
    try:
        report = asyncio.run(
            run(
                args.signature,
                rpc_url=args.rpc_url,
                network=args.network,
                concurrent=False if args.sequential else None,
            )
        )
    except TxLensError as e:
        logger.error("analyze_transaction_failed", signature=args.signature, error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1
    print(json.dumps(report, indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
