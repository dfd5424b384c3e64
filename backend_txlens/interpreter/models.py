"""
Data models for the instruction interpreter.

Input side: the two instruction shapes delivered by an upstream decoder
(jsonParsed RPC encoding) and the TransactionInput wrapper.
Output side: InstructionDetail, AssetMetadata, Transfer and ExtractionResult.
Every output model has to_dict() returning plain, tree-shaped, JSON-safe data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from types import MappingProxyType
from typing import Any, Mapping, Union

# Asset kinds; (address, kind) is the metadata cache key
KIND_FUNGIBLE = "fungible"
KIND_NFT = "nft"

TOKEN_TYPE_NATIVE = "Native"
TOKEN_TYPE_SPL = "SPL"
TOKEN_TYPE_NFT = "NFT"

UNKNOWN_INSTRUCTION = "Unknown Instruction"

LAMPORTS_PER_SOL = 1_000_000_000
NATIVE_DECIMALS = 9


def format_amount(raw: int | str | Decimal, decimals: int) -> str:
    """Scale a raw integer amount by 10^decimals; plain decimal string, no exponent, no trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = 80
        value = Decimal(raw) / (Decimal(10) ** int(decimals))
        return format_decimal(value)


def format_decimal(value: Decimal) -> str:
    """'2.50' -> '2.5', '1E+2' -> '100', '0E-9' -> '0'."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


# --- Input shapes ---


@dataclass
class ParsedInstruction:
    """
    Structurally parsed instruction: program name, decoded type tag and a
    named-parameter mapping (jsonParsed "parsed": {"type": ..., "info": {...}}).
    """

    program_id: str
    program: str | None
    type: str | None
    info: Mapping[str, Any]
    inner: list["RawInstruction"] = field(default_factory=list)
    """Nested instructions invoked by this one (rebuilt from stackHeight)."""
    stack_height: int | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "ParsedInstruction":
        parsed = item.get("parsed")
        if isinstance(parsed, dict):
            ix_type = parsed.get("type")
            info = parsed.get("info")
            if not isinstance(info, dict):
                info = {} if info is None else {"data": info}
        else:
            # spl-memo delivers the memo text directly as "parsed"
            ix_type = None
            info = {} if parsed is None else {"data": parsed}
        return cls(
            program_id=str(item.get("programId") or ""),
            program=item.get("program"),
            type=str(ix_type) if ix_type is not None else None,
            info=info,
            stack_height=item.get("stackHeight"),
        )


@dataclass
class OpaqueInstruction:
    """Partially decoded instruction: base58 payload plus account references."""

    program_id: str
    data: str
    accounts: list[Any] = field(default_factory=list)
    inner: list["RawInstruction"] = field(default_factory=list)
    stack_height: int | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "OpaqueInstruction":
        data = item.get("data")
        accounts = item.get("accounts")
        return cls(
            program_id=str(item.get("programId") or ""),
            data=data if isinstance(data, str) else "",
            accounts=list(accounts) if isinstance(accounts, (list, tuple)) else [],
            stack_height=item.get("stackHeight"),
        )


RawInstruction = Union[ParsedInstruction, OpaqueInstruction]


def instruction_from_rpc(item: Any) -> RawInstruction | None:
    """Build the matching input shape from one jsonParsed instruction dict; None if not a usable dict."""
    if isinstance(item, (ParsedInstruction, OpaqueInstruction)):
        return item
    if not isinstance(item, dict):
        return None
    try:
        if "parsed" in item:
            return ParsedInstruction.from_rpc_item(item)
        return OpaqueInstruction.from_rpc_item(item)
    except (TypeError, ValueError):
        return None


@dataclass
class TransactionInput:
    """
    Everything the interpreter consumes for one transaction.

    inner_instructions associates ordered child lists to the index of their
    top-level parent. Balance snapshots are lamports per account key index.
    """

    instructions: list[RawInstruction]
    inner_instructions: dict[int, list[RawInstruction]] = field(default_factory=dict)
    account_keys: list[str] = field(default_factory=list)
    pre_balances: list[int] = field(default_factory=list)
    post_balances: list[int] = field(default_factory=list)
    token_account_mints: dict[str, str] = field(default_factory=dict)
    """Token account -> mint, from pre/post token balances."""
    signature: str | None = None
    slot: int | None = None
    block_time: int | None = None
    fee: int | None = None
    compute_units: int | None = None
    err: Any = None
    recent_blockhash: str | None = None


# --- Registry ---


@dataclass(frozen=True)
class ProgramDescriptor:
    """Known program: display name and instruction-tag -> label table ("default" fallback)."""

    id: str
    name: str
    instruction_labels: Mapping[str, str]
    category: str | None = None
    """jsonParsed program name ("system", "spl-token", ...) used for transfer dispatch."""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "instruction_labels", MappingProxyType(dict(self.instruction_labels))
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "instruction_labels": dict(self.instruction_labels),
            "category": self.category,
        }


# --- Output ---


@dataclass
class InstructionDetail:
    """
    Uniform record for one instruction.

    params is an open mapping: whatever named parameters the decoder produced,
    passed through unchanged, so new instruction fields flow through without a
    schema change.
    """

    program_id: str
    program_name: str
    instruction_name: str
    params: dict[str, Any] = field(default_factory=dict)
    children: list["InstructionDetail"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_id": self.program_id,
            "program_name": self.program_name,
            "instruction_name": self.instruction_name,
            "params": _plain(self.params),
            "inner_instructions": [c.to_dict() for c in self.children],
        }


@dataclass
class AssetMetadata:
    """Resolved token / NFT metadata. error is set when the mint lookup failed."""

    address: str
    kind: str
    fetched_at: float
    decimals: int | None = None
    supply: str | None = None
    """Raw u64 supply as a decimal string."""
    is_initialized: bool | None = None
    name: str | None = None
    symbol: str | None = None
    uri: str | None = None
    seller_fee_basis_points: int | None = None
    creators: list[dict[str, Any]] | None = None
    collection: dict[str, Any] | None = None
    uses: dict[str, Any] | None = None
    is_nft: bool | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "kind": self.kind,
            "fetched_at": self.fetched_at,
        }
        optional = {
            "decimals": self.decimals,
            "supply": self.supply,
            "is_initialized": self.is_initialized,
            "name": self.name,
            "symbol": self.symbol,
            "uri": self.uri,
            "seller_fee_basis_points": self.seller_fee_basis_points,
            "creators": [dict(c) for c in self.creators] if self.creators is not None else None,
            "collection": dict(self.collection) if self.collection is not None else None,
            "uses": dict(self.uses) if self.uses is not None else None,
            "is_nft": self.is_nft,
            "error": self.error,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out


@dataclass(frozen=True)
class NativeAsset:
    """Fixed descriptor for the native coin."""

    symbol: str = "SOL"
    name: str = "Solana"
    decimals: int = NATIVE_DECIMALS

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "name": self.name, "decimals": self.decimals}


NATIVE_SOL = NativeAsset()


@dataclass
class Transfer:
    """Normalized asset movement. value is decimal-normalized, never a raw amount."""

    token_type: str
    asset: AssetMetadata | NativeAsset
    from_address: str | None
    to_address: str | None
    value: str | None = None
    token_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "token_type": self.token_type,
            "asset": self.asset.to_dict(),
            "from": self.from_address,
            "to": self.to_address,
        }
        if self.value is not None:
            out["value"] = self.value
        if self.token_id is not None:
            out["token_id"] = self.token_id
        return out


@dataclass
class ExtractionResult:
    """Aggregated interpretation of one transaction, in instruction encounter order."""

    program_interactions: list[str] = field(default_factory=list)
    actions: list[InstructionDetail] = field(default_factory=list)
    other_instructions: list[InstructionDetail] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    transfers: list[Transfer] = field(default_factory=list)

    def add_program(self, program_id: str) -> None:
        """Record a program interaction; first occurrence wins, no duplicates."""
        if program_id not in self.program_interactions:
            self.program_interactions.append(program_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_interactions": list(self.program_interactions),
            "actions": [a.to_dict() for a in self.actions],
            "other_instructions": [o.to_dict() for o in self.other_instructions],
            "types": list(self.types),
            "transfers": [t.to_dict() for t in self.transfers],
        }


def _plain(value: Any) -> Any:
    """Copy params into plain dict/list/scalar form (no shared references, no custom objects)."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, bytes):
        return value.hex()
    return str(value)
