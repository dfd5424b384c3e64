"""
Transaction report: the analysis envelope around the instruction interpreter.

Adds network and transaction facts, native transfers inferred from balance
deltas, program deployment detection, an executable check of every program
interacted with, and a summary with complexity score and risk level.
Complexity: 2 per transfer + 3 per program + 2 per security warning + 5 when
more than one action type; <=5 Simple, <=15 Moderate, <=30 Complex, else
Very Complex. Risk factors: >3 programs, a swap, >5 transfers, >1 action
type, 2 for any security warning; 0 -> Low, 1-2 -> Medium, 3+ -> High.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from backend_txlens.core.exceptions import TransactionNotFoundError
from backend_txlens.interpreter.models import (
    NATIVE_DECIMALS,
    NATIVE_SOL,
    TOKEN_TYPE_NATIVE,
    AssetMetadata,
    ExtractionResult,
    TransactionInput,
    Transfer,
    format_amount,
)
from backend_txlens.interpreter.processor import InstructionProcessor
from backend_txlens.interpreter.programs import BPF_UPGRADEABLE_LOADER_ID
from backend_txlens.interpreter.transfers import TRANSFER_LABELS
from backend_txlens.solana_listener.parser import parse_transaction
from backend_txlens.solana_listener.rpc import SolanaRpcClient
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)

CURRENCY = "SOL"
UNKNOWN = "unknown"
PROGRAM_DEPLOYMENT = "Program Deployment"
SWAP_MARKER = "Swap"
SECURITY_WARNING = "Warning"

COMPLEXITY_SIMPLE = "Simple"
COMPLEXITY_MODERATE = "Moderate"
COMPLEXITY_COMPLEX = "Complex"
COMPLEXITY_VERY_COMPLEX = "Very Complex"

RISK_LOW = "Low"
RISK_MEDIUM = "Medium"
RISK_HIGH = "High"


class ProgramVerifier(Protocol):
    """Anything exposing async is_executable(address) -> bool (SolanaRpcClient does)."""

    async def is_executable(self, address: str) -> bool:
        ...


@dataclass
class TransactionReport:
    network: dict[str, Any]
    transaction: dict[str, Any]
    action_types: list[str] = field(default_factory=list)
    transfers: list[Transfer] = field(default_factory=list)
    actions: list[Any] = field(default_factory=list)
    interactions: list[str] = field(default_factory=list)
    other_instructions: list[Any] = field(default_factory=list)
    security_info: list[dict[str, str]] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "network": dict(self.network),
            "transaction": dict(self.transaction),
            "action_types": list(self.action_types),
            "transfers": [t.to_dict() for t in self.transfers],
            "actions": [a.to_dict() for a in self.actions],
            "interactions": list(self.interactions),
            "other_instructions": [o.to_dict() for o in self.other_instructions],
            "security_info": [dict(s) for s in self.security_info],
            "summary": dict(self.summary),
        }


def balance_delta_transfers(tx: TransactionInput) -> list[Transfer]:
    """
    Native movements from pre/post balances, one per changed account.
    The fee payer (index 0) is excluded since its delta includes the fee.
    """
    keys = tx.account_keys
    pre, post = tx.pre_balances, tx.post_balances
    if not keys or len(pre) != len(post):
        return []
    transfers: list[Transfer] = []
    for i in range(1, min(len(keys), len(pre))):
        diff = post[i] - pre[i]
        if diff == 0:
            continue
        transfers.append(
            Transfer(
                token_type=TOKEN_TYPE_NATIVE,
                asset=NATIVE_SOL,
                from_address=keys[i] if diff < 0 else None,
                to_address=keys[i] if diff > 0 else None,
                value=format_amount(abs(diff), NATIVE_DECIMALS),
            )
        )
    return transfers


def has_program_deployment(tx: TransactionInput) -> bool:
    return any(getattr(ix, "program_id", None) == BPF_UPGRADEABLE_LOADER_ID for ix in tx.instructions)


def _asset_key(transfer: Transfer) -> str:
    if isinstance(transfer.asset, AssetMetadata):
        return transfer.asset.address
    return transfer.asset.symbol


def calculate_complexity_score(
    transfer_count: int,
    program_count: int,
    action_type_count: int,
    security_warning_count: int = 0,
) -> str:
    score = transfer_count * 2 + program_count * 3 + security_warning_count * 2
    if action_type_count > 1:
        score += 5
    if score <= 5:
        return COMPLEXITY_SIMPLE
    if score <= 15:
        return COMPLEXITY_MODERATE
    if score <= 30:
        return COMPLEXITY_COMPLEX
    return COMPLEXITY_VERY_COMPLEX


def calculate_risk_level(
    transfer_count: int,
    program_count: int,
    action_types: list[str],
    security_info: list[dict[str, str]] | None = None,
) -> str:
    risk_factors = 0
    if program_count > 3:
        risk_factors += 1
    if any(SWAP_MARKER in t for t in action_types):
        risk_factors += 1
    if transfer_count > 5:
        risk_factors += 1
    if len(action_types) > 1:
        risk_factors += 1
    if any(entry.get("type") == SECURITY_WARNING for entry in security_info or ()):
        risk_factors += 2
    if risk_factors == 0:
        return RISK_LOW
    if risk_factors <= 2:
        return RISK_MEDIUM
    return RISK_HIGH


async def verify_programs(addresses: list[str], verifier: ProgramVerifier) -> list[dict[str, str]]:
    """
    One warning per address that is not an executable program account.
    Lookup failures are logged and the address is skipped.
    """

    async def check(address: str) -> dict[str, str] | None:
        try:
            executable = await verifier.is_executable(address)
        except Exception as e:
            logger.warning("program_verification_failed", address=address, error=str(e))
            return None
        if executable:
            return None
        return {"type": SECURITY_WARNING, "message": f"Address {address} is not an executable program"}

    results = await asyncio.gather(*(check(a) for a in addresses))
    return [r for r in results if r is not None]


def _iso_block_time(block_time: int | None) -> str:
    if block_time is None:
        return UNKNOWN
    try:
        return datetime.fromtimestamp(block_time, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return UNKNOWN


def build_report(
    tx: TransactionInput,
    extracted: ExtractionResult,
    *,
    network_name: str,
    cluster: str,
    security_info: list[dict[str, str]] | None = None,
) -> TransactionReport:
    """Assemble the envelope from an already-computed extraction result."""
    native = balance_delta_transfers(tx)
    report = TransactionReport(
        network={
            "name": network_name,
            "cluster": cluster,
            "currency": CURRENCY,
            "slot": tx.slot,
            "block_time": _iso_block_time(tx.block_time),
        },
        transaction={
            "signature": tx.signature,
            "fee_payer": tx.account_keys[0] if tx.account_keys else None,
            "recent_blockhash": tx.recent_blockhash,
            "status": "Failed" if tx.err else "Success",
            "fee": format_amount(tx.fee, NATIVE_DECIMALS) if tx.fee is not None else UNKNOWN,
            "compute_units": str(tx.compute_units) if tx.compute_units is not None else UNKNOWN,
        },
    )
    report.action_types = [TRANSFER_LABELS[TOKEN_TYPE_NATIVE]] * len(native) + list(extracted.types)
    report.transfers = native + list(extracted.transfers)
    report.actions = list(extracted.actions)
    report.interactions = list(extracted.program_interactions)
    report.other_instructions = list(extracted.other_instructions)
    report.security_info = list(security_info or [])
    if has_program_deployment(tx):
        report.action_types.append(PROGRAM_DEPLOYMENT)

    report.summary = {
        "total_transfers": len(report.transfers),
        "unique_tokens": len({_asset_key(t) for t in report.transfers}),
        "unique_programs": len(report.interactions),
        "complexity_score": calculate_complexity_score(
            len(report.transfers),
            len(report.interactions),
            len(report.action_types),
            len(report.security_info),
        ),
        "risk_level": calculate_risk_level(
            len(report.transfers), len(report.interactions), report.action_types, report.security_info
        ),
    }
    return report


async def analyze_transaction(
    tx: TransactionInput,
    processor: InstructionProcessor,
    *,
    network_name: str,
    cluster: str,
    verifier: ProgramVerifier | None = None,
) -> TransactionReport:
    """Interpret tx; with a verifier, every program interacted with is checked for executability."""
    extracted = await processor.classify_and_extract(tx)
    security_info: list[dict[str, str]] = []
    if verifier is not None:
        security_info = await verify_programs(extracted.program_interactions, verifier)
    report = build_report(tx, extracted, network_name=network_name, cluster=cluster, security_info=security_info)
    logger.info(
        "transaction_analyzed",
        signature=tx.signature,
        cluster=cluster,
        transfer_count=report.summary["total_transfers"],
        complexity=report.summary["complexity_score"],
        risk_level=report.summary["risk_level"],
        security_warnings=len(report.security_info),
    )
    return report


async def analyze_signature(
    signature: str,
    client: SolanaRpcClient,
    processor: InstructionProcessor,
    *,
    network_name: str,
    cluster: str,
    check_programs: bool = True,
) -> TransactionReport:
    """
    Fetch a transaction by signature and analyze it. Raises TransactionNotFoundError.
    check_programs: check interacted programs for executability with the same client.
    """
    raw = await client.get_parsed_transaction(signature)
    tx = parse_transaction(raw, signature=signature) if raw else None
    if tx is None:
        raise TransactionNotFoundError(signature)
    return await analyze_transaction(
        tx,
        processor,
        network_name=network_name,
        cluster=cluster,
        verifier=client if check_programs else None,
    )
