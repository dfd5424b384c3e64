"""
Pytest fixtures for TxLens tests. In-memory account provider, fake clock, and
builders for raw SPL mint / Metaplex metadata accounts and jsonParsed instructions.
"""

from __future__ import annotations

import struct
from typing import Any

import pytest

from backend_txlens.metadata.layouts import MINT_LAYOUT

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WSOL_MINT = "So11111111111111111111111111111111111111112"
NFT_MINT = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
WALLET_A = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
WALLET_B = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"

SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


class FakeAccountProvider:
    """Sync get_account_info over a dict; records every requested address."""

    def __init__(self, accounts: dict[str, bytes] | None = None, failing: set[str] | None = None):
        self.accounts = dict(accounts or {})
        self.failing = set(failing or ())
        self.calls: list[str] = []

    def get_account_info(self, address: str) -> bytes | None:
        self.calls.append(address)
        if address in self.failing:
            raise RuntimeError(f"rpc down for {address}")
        return self.accounts.get(address)


class AsyncFakeAccountProvider(FakeAccountProvider):
    """Async variant; yields to the loop before answering."""

    async def get_account_info(self, address: str) -> bytes | None:  # type: ignore[override]
        import asyncio

        await asyncio.sleep(0)
        return super().get_account_info(address)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def mint_bytes(decimals: int, supply: int = 1_000_000, initialized: bool = True) -> bytes:
    """82-byte SPL mint account without mint / freeze authority."""
    return MINT_LAYOUT.pack(0, b"\x00" * 32, supply, decimals, 1 if initialized else 0, 0, b"\x00" * 32)


def _borsh_string(value: str, pad_to: int = 0) -> bytes:
    raw = value.encode("utf-8")
    if pad_to:
        raw = raw.ljust(pad_to, b"\x00")
    return struct.pack("<I", len(raw)) + raw


def metadata_bytes(
    name: str,
    symbol: str,
    uri: str = "",
    *,
    seller_fee: int = 500,
    creators: list[tuple[bytes, bool, int]] | None = None,
    collection: tuple[bool, bytes] | None = None,
    uses: tuple[int, int, int] | None = None,
    with_trailing_options: bool = True,
) -> bytes:
    """Borsh-encoded Metaplex Metadata account (names padded like on-chain accounts)."""
    out = bytes([4]) + bytes(range(32)) + bytes(range(32, 64))
    out += _borsh_string(name, pad_to=32) + _borsh_string(symbol, pad_to=10) + _borsh_string(uri, pad_to=200)
    out += struct.pack("<H", seller_fee)
    if creators:
        out += b"\x01" + struct.pack("<I", len(creators))
        for key, verified, share in creators:
            out += key + bytes([1 if verified else 0, share])
    else:
        out += b"\x00"
    out += b"\x01\x01"  # primary_sale_happened, is_mutable
    if not with_trailing_options:
        return out
    out += b"\x01\xfe"  # edition_nonce Some(254)
    out += b"\x01\x00"  # token_standard Some(NonFungible)
    if collection:
        out += b"\x01" + bytes([1 if collection[0] else 0]) + collection[1]
    else:
        out += b"\x00"
    if uses:
        out += b"\x01" + bytes([uses[0]]) + struct.pack("<QQ", uses[1], uses[2])
    else:
        out += b"\x00"
    return out


def system_transfer(source: str, destination: str, lamports: Any) -> dict[str, Any]:
    return {
        "program": "system",
        "programId": SYSTEM_PROGRAM,
        "parsed": {"type": "transfer", "info": {"source": source, "destination": destination, "lamports": lamports}},
        "stackHeight": None,
    }


def token_transfer_checked(mint: str, amount: str, decimals: int, ui_amount_string: str) -> dict[str, Any]:
    return {
        "program": "spl-token",
        "programId": TOKEN_PROGRAM,
        "parsed": {
            "type": "transferChecked",
            "info": {
                "authority": WALLET_A,
                "source": "SrcTokenAccount1111111111111111111111111111",
                "destination": "DstTokenAccount1111111111111111111111111111",
                "mint": mint,
                "tokenAmount": {
                    "amount": amount,
                    "decimals": decimals,
                    "uiAmount": float(ui_amount_string),
                    "uiAmountString": ui_amount_string,
                },
            },
        },
    }


def opaque(program_id: str, data: str = "", accounts: list[str] | None = None) -> dict[str, Any]:
    return {"programId": program_id, "data": data, "accounts": list(accounts or [])}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeAccountProvider()


@pytest.fixture
def clean_settings(monkeypatch):
    """Clear env-driven settings and the get_settings cache around a test."""
    from backend_txlens.config import get_settings

    for name in (
        "SOLANA_NETWORK",
        "SOLANA_CLUSTER",
        "SOLANA_RPC_URL",
        "HELIUS_API_KEY",
        "TXLENS_METADATA_TTL_SEC",
        "TXLENS_RPC_TIMEOUT_SEC",
        "TXLENS_RPC_MAX_RETRIES",
        "TXLENS_CONCURRENT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()
