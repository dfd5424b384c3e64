"""
Transfer extractor: recognized parsed instructions to Transfer records.

Dispatch is by jsonParsed program category:
- system: transfer / transferWithSeed -> Native (lamports / 10^9).
- spl-token, spl-token-2022: transfer / transferChecked -> SPL, and
  independently -> NFT when tokenAmount.decimals == 0 and the display amount is 1.
  Both can fire for the same instruction.

Every field is read through an explicit precedence tuple. A recognized
instruction missing a required field yields no transfer (logged); metadata
failures fall back to the default decimals.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from backend_txlens.core.exceptions import MalformedInstructionError
from backend_txlens.interpreter.models import (
    KIND_FUNGIBLE,
    KIND_NFT,
    NATIVE_DECIMALS,
    NATIVE_SOL,
    TOKEN_TYPE_NATIVE,
    TOKEN_TYPE_NFT,
    TOKEN_TYPE_SPL,
    ParsedInstruction,
    Transfer,
    format_amount,
    format_decimal,
)
from backend_txlens.interpreter.programs import (
    CATEGORY_SPL_TOKEN,
    CATEGORY_SPL_TOKEN_2022,
    CATEGORY_SYSTEM,
    ProgramRegistry,
    default_registry,
)
from backend_txlens.metadata.resolver import TokenMetadataResolver
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)

NATIVE_TRANSFER_TYPES = frozenset({"transfer", "transferWithSeed"})
TOKEN_TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})
TOKEN_CATEGORIES = frozenset({CATEGORY_SPL_TOKEN, CATEGORY_SPL_TOKEN_2022})

# Field precedence, first present wins
NATIVE_FROM_FIELDS = ("source", "from")
NATIVE_TO_FIELDS = ("destination", "to")
NATIVE_AMOUNT_FIELDS = ("lamports",)
TOKEN_MINT_FIELDS = ("mint", "token")
TOKEN_FROM_FIELDS = ("authority", "multisigAuthority", "source")
TOKEN_TO_FIELDS = ("destination",)
TOKEN_ACCOUNT_FIELDS = ("source", "destination")
DISPLAY_AMOUNT_FIELDS = ("uiAmountString", "uiAmount")
RAW_AMOUNT_FIELDS = ("amount",)

DEFAULT_TOKEN_DECIMALS = 9

TRANSFER_LABELS = {
    TOKEN_TYPE_NATIVE: "Native Transfer",
    TOKEN_TYPE_SPL: "Token Transfer",
    TOKEN_TYPE_NFT: "NFT Transfer",
}


def first_present(mapping: Mapping[str, Any] | None, fields: tuple[str, ...]) -> Any | None:
    """Return the value of the first field present (not None, not empty string)."""
    if not isinstance(mapping, Mapping):
        return None
    for name in fields:
        value = mapping.get(name)
        if value is not None and value != "":
            return value
    return None


def require(mapping: Mapping[str, Any] | None, fields: tuple[str, ...]) -> Any:
    value = first_present(mapping, fields)
    if value is None:
        raise MalformedInstructionError(f"missing field: {'|'.join(fields)}", field=fields[0])
    return value


def to_decimal(value: Any) -> Decimal:
    """Amount field (int, numeric string or float) -> finite Decimal; MalformedInstructionError otherwise."""
    if isinstance(value, bool):
        raise MalformedInstructionError(f"invalid amount: {value!r}")
    try:
        result = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise MalformedInstructionError(f"invalid amount: {value!r}") from e
    if not result.is_finite():
        raise MalformedInstructionError(f"invalid amount: {value!r}")
    return result


def _token_amount(info: Mapping[str, Any]) -> Mapping[str, Any] | None:
    token_amount = info.get("tokenAmount")
    return token_amount if isinstance(token_amount, Mapping) else None


def display_amount(info: Mapping[str, Any]) -> Decimal | None:
    """tokenAmount display value (uiAmountString, then uiAmount) if supplied."""
    value = first_present(_token_amount(info), DISPLAY_AMOUNT_FIELDS)
    return to_decimal(value) if value is not None else None


def raw_amount(info: Mapping[str, Any]) -> Decimal:
    """Raw integer amount: info.amount, then tokenAmount.amount."""
    value = first_present(info, RAW_AMOUNT_FIELDS)
    if value is None:
        value = first_present(_token_amount(info), RAW_AMOUNT_FIELDS)
    if value is None:
        raise MalformedInstructionError("missing field: amount", field="amount")
    return to_decimal(value)


def is_nft_transfer(info: Mapping[str, Any]) -> bool:
    """Heuristic: tokenAmount.decimals == 0 and display amount == 1."""
    token_amount = _token_amount(info)
    if token_amount is None:
        return False
    decimals = token_amount.get("decimals")
    if isinstance(decimals, bool) or decimals != 0:
        return False
    try:
        amount = display_amount(info)
    except MalformedInstructionError:
        return False
    return amount is not None and amount == 1


class TransferExtractor:
    """Builds Transfer records; uses the metadata resolver for SPL / NFT assets."""

    def __init__(
        self,
        resolver: TokenMetadataResolver,
        registry: ProgramRegistry | None = None,
    ) -> None:
        self._resolver = resolver
        self._registry = registry or default_registry()

    def category(self, instruction: ParsedInstruction) -> str | None:
        if instruction.program:
            return instruction.program
        return self._registry.lookup(instruction.program_id).category

    async def extract(
        self,
        instruction: ParsedInstruction,
        mint_hints: Mapping[str, str] | None = None,
    ) -> list[Transfer]:
        """
        Return zero or more transfers for one parsed instruction.

        mint_hints maps token account -> mint (from the transaction's token
        balances); plain spl-token transfers do not carry the mint.
        """
        if not isinstance(instruction, ParsedInstruction):
            return []
        category = self.category(instruction)
        info = instruction.info if isinstance(instruction.info, Mapping) else {}
        transfers: list[Transfer] = []

        if category == CATEGORY_SYSTEM:
            native = self._native(instruction, info)
            if native is not None:
                transfers.append(native)
        elif category in TOKEN_CATEGORIES and instruction.type in TOKEN_TRANSFER_TYPES:
            token = await self._fungible(instruction, info, mint_hints)
            if token is not None:
                transfers.append(token)
            nft = await self._nft(instruction, info, mint_hints)
            if nft is not None:
                transfers.append(nft)
        return transfers

    def _native(self, instruction: ParsedInstruction, info: Mapping[str, Any]) -> Transfer | None:
        if instruction.type not in NATIVE_TRANSFER_TYPES:
            return None
        try:
            lamports = to_decimal(require(info, NATIVE_AMOUNT_FIELDS))
            return Transfer(
                token_type=TOKEN_TYPE_NATIVE,
                asset=NATIVE_SOL,
                from_address=require(info, NATIVE_FROM_FIELDS),
                to_address=require(info, NATIVE_TO_FIELDS),
                value=format_amount(lamports, NATIVE_DECIMALS),
            )
        except MalformedInstructionError as e:
            logger.debug("transfer_malformed", kind="native", program_id=instruction.program_id, error=str(e))
            return None

    def _mint(self, info: Mapping[str, Any], mint_hints: Mapping[str, str] | None) -> str:
        mint = first_present(info, TOKEN_MINT_FIELDS)
        if mint is None and mint_hints:
            for account_field in TOKEN_ACCOUNT_FIELDS:
                account = info.get(account_field)
                if account and account in mint_hints:
                    mint = mint_hints[account]
                    break
        if mint is None:
            raise MalformedInstructionError("missing field: mint|token", field="mint")
        return str(mint)

    async def _fungible(
        self,
        instruction: ParsedInstruction,
        info: Mapping[str, Any],
        mint_hints: Mapping[str, str] | None,
    ) -> Transfer | None:
        try:
            mint = self._mint(info, mint_hints)
            from_address = require(info, TOKEN_FROM_FIELDS)
            to_address = require(info, TOKEN_TO_FIELDS)
            shown = display_amount(info)
            raw = raw_amount(info) if shown is None else None
        except MalformedInstructionError as e:
            logger.debug("transfer_malformed", kind="spl", program_id=instruction.program_id, error=str(e))
            return None

        asset = await self._resolver.resolve(mint, KIND_FUNGIBLE)
        if shown is not None:
            value = format_decimal(shown)
        else:
            decimals = asset.decimals if asset.decimals is not None else DEFAULT_TOKEN_DECIMALS
            value = format_amount(raw, decimals)
        return Transfer(
            token_type=TOKEN_TYPE_SPL,
            asset=asset,
            from_address=from_address,
            to_address=to_address,
            value=value,
        )

    async def _nft(
        self,
        instruction: ParsedInstruction,
        info: Mapping[str, Any],
        mint_hints: Mapping[str, str] | None,
    ) -> Transfer | None:
        if not is_nft_transfer(info):
            return None
        try:
            mint = self._mint(info, mint_hints)
            from_address = require(info, TOKEN_FROM_FIELDS)
            to_address = require(info, TOKEN_TO_FIELDS)
        except MalformedInstructionError as e:
            logger.debug("transfer_malformed", kind="nft", program_id=instruction.program_id, error=str(e))
            return None
        asset = await self._resolver.resolve(mint, KIND_NFT)
        return Transfer(
            token_type=TOKEN_TYPE_NFT,
            asset=asset,
            from_address=from_address,
            to_address=to_address,
            token_id=mint,
        )
