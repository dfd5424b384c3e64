"""
Solana transaction adapter: raw jsonParsed getTransaction payload to TransactionInput.

Purely structural. Resolves account keys (including versioned-transaction
loaded addresses), wraps each instruction in its parsed / opaque shape,
associates inner instructions to their parent index and rebuilds CPI nesting
from stackHeight, and collects balance snapshots plus the token account ->
mint hints taken from pre/post token balances.
"""

from __future__ import annotations

from typing import Any

from backend_txlens.interpreter.models import RawInstruction, TransactionInput, instruction_from_rpc
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)


def _get_account_keys(
    message: dict[str, Any],
    meta: dict[str, Any] | None = None,
) -> list[str]:
    """
    Resolve accountKeys to a list of base58 strings (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (writable + readonly).
    """
    keys = message.get("accountKeys")
    if not keys:
        return []
    if isinstance(keys[0], str):
        out = list(keys)
    else:
        out = [k.get("pubkey", "") for k in keys if isinstance(k, dict)]
    loaded = (meta or {}).get("loadedAddresses") or {}
    # jsonParsed accountKeys already include loaded addresses (with a "source" field)
    if keys and isinstance(keys[0], dict) and any(k.get("source") == "lookupTable" for k in keys if isinstance(k, dict)):
        return out
    for role in ("writable", "readonly"):
        for addr in loaded.get(role) or []:
            out.append(addr if isinstance(addr, str) else getattr(addr, "pubkey", ""))
    return out


def _get_message_and_meta(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Return (transaction.message, meta) from getTransaction-style result."""
    tx_obj = raw.get("transaction")
    if not tx_obj or not isinstance(tx_obj, dict):
        return None, None
    message = tx_obj.get("message")
    if not message or not isinstance(message, dict):
        return None, None
    meta = raw.get("meta")
    if not isinstance(meta, dict):
        meta = None
    return message, meta


def _nest_by_stack_height(flat: list[RawInstruction]) -> list[RawInstruction]:
    """
    Rebuild CPI nesting from stackHeight: an instruction becomes the child of the
    closest preceding instruction with a smaller stack height. Instructions
    without stackHeight (older RPC nodes) stay flat.
    """
    roots: list[RawInstruction] = []
    stack: list[tuple[int, RawInstruction]] = []
    for ix in flat:
        height = ix.stack_height
        if not isinstance(height, int):
            roots.append(ix)
            stack.clear()
            continue
        while stack and stack[-1][0] >= height:
            stack.pop()
        if stack:
            stack[-1][1].inner.append(ix)
        else:
            roots.append(ix)
        stack.append((height, ix))
    return roots


def _inner_by_parent(meta: dict[str, Any] | None) -> dict[int, list[RawInstruction]]:
    """meta.innerInstructions -> parent index -> ordered (nested) child list."""
    flat_by_parent: dict[int, list[RawInstruction]] = {}
    for block in (meta or {}).get("innerInstructions") or []:
        if not isinstance(block, dict):
            continue
        try:
            parent = int(block.get("index"))
        except (TypeError, ValueError):
            logger.debug("parser_inner_block_without_index")
            continue
        children = flat_by_parent.setdefault(parent, [])
        for item in block.get("instructions") or []:
            ix = instruction_from_rpc(item)
            if ix is not None:
                children.append(ix)
    return {parent: _nest_by_stack_height(children) for parent, children in flat_by_parent.items()}


def _token_account_mints(account_keys: list[str], meta: dict[str, Any] | None) -> dict[str, str]:
    mints: dict[str, str] = {}
    for field_name in ("preTokenBalances", "postTokenBalances"):
        for balance in (meta or {}).get(field_name) or []:
            if not isinstance(balance, dict):
                continue
            idx = balance.get("accountIndex")
            mint = balance.get("mint")
            if isinstance(idx, int) and 0 <= idx < len(account_keys) and mint:
                mints.setdefault(account_keys[idx], mint)
    return mints


def _int_list(values: Any) -> list[int]:
    out: list[int] = []
    for v in values or []:
        try:
            out.append(int(v))
        except (TypeError, ValueError):
            out.append(0)
    return out


def parse_transaction(raw: dict[str, Any], signature: str | None = None) -> TransactionInput | None:
    """
    Adapt a single jsonParsed getTransaction result.

    Returns None if the payload has no transaction message.
    """
    if not isinstance(raw, dict):
        return None
    message, meta = _get_message_and_meta(raw)
    if not message:
        return None

    account_keys = _get_account_keys(message, meta)
    # Unrecognized items are kept as-is so inner-instruction parent indexes stay aligned;
    # the normalizer turns them into "Unknown Instruction" details.
    instructions: list[Any] = []
    for item in message.get("instructions") or []:
        ix = instruction_from_rpc(item)
        if ix is None:
            logger.debug("parser_instruction_unrecognized", item_type=type(item).__name__)
            instructions.append(item)
            continue
        instructions.append(ix)

    if signature is None:
        sig_list = (raw.get("transaction") or {}).get("signatures") or []
        signature = sig_list[0] if isinstance(sig_list, list) and sig_list else None

    slot = raw.get("slot")
    block_time = raw.get("blockTime")
    if block_time is not None and not isinstance(block_time, int):
        try:
            block_time = int(block_time)
        except (TypeError, ValueError):
            block_time = None

    meta = meta or {}
    return TransactionInput(
        instructions=instructions,
        inner_instructions=_inner_by_parent(meta),
        account_keys=account_keys,
        pre_balances=_int_list(meta.get("preBalances")),
        post_balances=_int_list(meta.get("postBalances")),
        token_account_mints=_token_account_mints(account_keys, meta),
        signature=signature,
        slot=int(slot) if slot is not None else None,
        block_time=block_time,
        fee=meta.get("fee"),
        compute_units=meta.get("computeUnitsConsumed"),
        err=meta.get("err"),
        recent_blockhash=message.get("recentBlockhash"),
    )
