"""
Binary account layouts: SPL Token Mint and Metaplex Token Metadata.

Decoders take raw account bytes (as returned by getAccountInfo) and raise
DecodeError on anything they cannot read. Layouts:

SPL Mint (82 bytes, Token-2022 mints share the base layout):
    mint_authority COption<Pubkey> (4 + 32), supply u64, decimals u8,
    is_initialized bool, freeze_authority COption<Pubkey> (4 + 32).

Metaplex Metadata (Borsh):
    key u8, update_authority(32), mint(32), name, symbol, uri (u32 len + bytes,
    null padded), seller_fee_basis_points u16, creators Option<Vec<Creator(32 + 1 + 1)>>,
    primary_sale_happened bool, is_mutable bool, edition_nonce Option<u8>,
    token_standard Option<u8>, collection Option<(verified bool, key 32)>,
    uses Option<(use_method u8, remaining u64, total u64)>.
The trailing Option fields are missing on old accounts; they decode to None.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

from solders.pubkey import Pubkey

from backend_txlens.core.exceptions import DecodeError
from backend_txlens.interpreter.programs import METADATA_PROGRAM_ID

MINT_LAYOUT = struct.Struct("<I32sQBBI32s")
MINT_ACCOUNT_LEN = MINT_LAYOUT.size  # 82

PUBKEY_LEN = 32
METADATA_SEED = b"metadata"
MAX_CREATORS = 5
# Metaplex caps: name 32, symbol 10, uri 200 bytes; allow slack for padded strings
MAX_STRING_LEN = 1024

TOKEN_STANDARDS = {
    0: "NonFungible",
    1: "FungibleAsset",
    2: "Fungible",
    3: "NonFungibleEdition",
    4: "ProgrammableNonFungible",
    5: "ProgrammableNonFungibleEdition",
}
USE_METHODS = {0: "Burn", 1: "Multiple", 2: "Single"}


def pubkey_to_str(raw: bytes) -> str:
    """32 raw bytes -> base58 address."""
    if len(raw) != PUBKEY_LEN:
        raise DecodeError(f"pubkey must be {PUBKEY_LEN} bytes, got {len(raw)}")
    return str(Pubkey.from_bytes(raw))


def metadata_pda(mint_address: str) -> str:
    """Return the Metaplex metadata PDA for a mint: seeds ['metadata', program_id, mint]."""
    program_id = Pubkey.from_string(METADATA_PROGRAM_ID)
    mint = Pubkey.from_string(mint_address)
    seeds = [METADATA_SEED, bytes(program_id), bytes(mint)]
    pda, _bump = Pubkey.find_program_address(seeds, program_id)
    return str(pda)


@dataclass(frozen=True)
class MintInfo:
    supply: int
    decimals: int
    is_initialized: bool
    mint_authority: str | None = None
    freeze_authority: str | None = None


def decode_mint(data: bytes) -> MintInfo:
    """Decode an SPL Token (or Token-2022) mint account."""
    if data is None or len(data) < MINT_ACCOUNT_LEN:
        raise DecodeError(
            f"mint account too short: {0 if data is None else len(data)} < {MINT_ACCOUNT_LEN}"
        )
    (
        authority_tag,
        authority,
        supply,
        decimals,
        initialized,
        freeze_tag,
        freeze,
    ) = MINT_LAYOUT.unpack_from(data, 0)
    if authority_tag not in (0, 1) or freeze_tag not in (0, 1) or initialized not in (0, 1):
        raise DecodeError("not a mint account (bad option tags)")
    return MintInfo(
        supply=supply,
        decimals=decimals,
        is_initialized=bool(initialized),
        mint_authority=pubkey_to_str(authority) if authority_tag == 1 else None,
        freeze_authority=pubkey_to_str(freeze) if freeze_tag == 1 else None,
    )


@dataclass(frozen=True)
class Creator:
    address: str
    verified: bool
    share: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "verified": self.verified, "share": self.share}


@dataclass(frozen=True)
class Collection:
    key: str
    verified: bool

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "verified": self.verified}


@dataclass(frozen=True)
class Uses:
    use_method: str
    remaining: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"use_method": self.use_method, "remaining": self.remaining, "total": self.total}


@dataclass(frozen=True)
class TokenMetadata:
    update_authority: str
    mint: str
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: list[Creator] = field(default_factory=list)
    primary_sale_happened: bool = False
    is_mutable: bool = False
    edition_nonce: int | None = None
    token_standard: str | None = None
    collection: Collection | None = None
    uses: Uses | None = None


class _BorshReader:
    """Cursor over Borsh-encoded bytes; every short read raises DecodeError."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.pos = 0

    def _take(self, n: int) -> bytes:
        end = self.pos + n
        if n < 0 or end > len(self._data):
            raise DecodeError(f"unexpected end of data at offset {self.pos} (need {n})")
        out = self._data[self.pos : end]
        self.pos = end
        return out

    def u8(self) -> int:
        return self._take(1)[0]

    def u16(self) -> int:
        return struct.unpack("<H", self._take(2))[0]

    def u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def boolean(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise DecodeError(f"invalid bool {value} at offset {self.pos - 1}")
        return value == 1

    def pubkey(self) -> str:
        return pubkey_to_str(self._take(PUBKEY_LEN))

    def string(self) -> str:
        length = self.u32()
        if length > MAX_STRING_LEN:
            raise DecodeError(f"string length {length} exceeds {MAX_STRING_LEN}")
        raw = self._take(length)
        return raw.decode("utf-8", errors="replace").rstrip("\x00").strip()

    def option_tag(self) -> bool:
        """Read an Option discriminant; False (None) once the buffer is exhausted."""
        if self.pos >= len(self._data):
            return False
        tag = self.u8()
        if tag not in (0, 1):
            raise DecodeError(f"invalid option tag {tag} at offset {self.pos - 1}")
        return tag == 1


def decode_metadata(data: bytes) -> TokenMetadata:
    """Decode a Metaplex Token Metadata account."""
    if not data:
        raise DecodeError("empty metadata account")
    reader = _BorshReader(bytes(data))
    reader.u8()  # account key discriminator
    update_authority = reader.pubkey()
    mint = reader.pubkey()
    name = reader.string()
    symbol = reader.string()
    uri = reader.string()
    seller_fee = reader.u16()

    creators: list[Creator] = []
    if reader.option_tag():
        count = reader.u32()
        if count > MAX_CREATORS:
            raise DecodeError(f"creator count {count} exceeds {MAX_CREATORS}")
        for _ in range(count):
            creators.append(
                Creator(address=reader.pubkey(), verified=reader.boolean(), share=reader.u8())
            )
    primary_sale = reader.boolean()
    is_mutable = reader.boolean()

    edition_nonce: int | None = None
    token_standard: str | None = None
    collection: Collection | None = None
    uses: Uses | None = None
    try:
        if reader.option_tag():
            edition_nonce = reader.u8()
        if reader.option_tag():
            standard = reader.u8()
            token_standard = TOKEN_STANDARDS.get(standard, str(standard))
        if reader.option_tag():
            verified = reader.boolean()
            collection = Collection(key=reader.pubkey(), verified=verified)
        if reader.option_tag():
            method = reader.u8()
            uses = Uses(
                use_method=USE_METHODS.get(method, str(method)),
                remaining=reader.u64(),
                total=reader.u64(),
            )
    except DecodeError:
        # Trailing fields are optional; keep what was read.
        pass

    return TokenMetadata(
        update_authority=update_authority,
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=seller_fee,
        creators=creators,
        primary_sale_happened=primary_sale,
        is_mutable=is_mutable,
        edition_nonce=edition_nonce,
        token_standard=token_standard,
        collection=collection,
        uses=uses,
    )
