"""
Tests for SPL mint and Metaplex metadata account decoding (metadata/layouts.py).
"""

from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from backend_txlens.core.exceptions import DecodeError
from backend_txlens.metadata.layouts import (
    MINT_ACCOUNT_LEN,
    decode_metadata,
    decode_mint,
    metadata_pda,
    pubkey_to_str,
)

from conftest import USDC_MINT, WSOL_MINT, metadata_bytes, mint_bytes


def test_decode_mint():
    info = decode_mint(mint_bytes(decimals=6, supply=123_456_789))
    assert info.decimals == 6
    assert info.supply == 123_456_789
    assert info.is_initialized is True
    assert info.mint_authority is None
    assert info.freeze_authority is None


def test_decode_mint_with_authority_and_extension_bytes():
    authority = Pubkey.from_string(USDC_MINT)
    data = bytearray(mint_bytes(decimals=0, supply=1))
    data[0:4] = (1).to_bytes(4, "little")
    data[4:36] = bytes(authority)
    data += b"\x00" * 83  # Token-2022 extension area
    info = decode_mint(bytes(data))
    assert info.mint_authority == USDC_MINT
    assert info.supply == 1


def test_decode_mint_rejects_short_or_garbage_data():
    assert MINT_ACCOUNT_LEN == 82
    with pytest.raises(DecodeError):
        decode_mint(b"\x00" * 10)
    with pytest.raises(DecodeError):
        decode_mint(b"\x07" * MINT_ACCOUNT_LEN)


def test_decode_metadata_full():
    creator_key = bytes(Pubkey.from_string(WSOL_MINT))
    collection_key = bytes(Pubkey.from_string(USDC_MINT))
    data = metadata_bytes(
        "Test NFT",
        "TNFT",
        "https://example.com/nft.json",
        seller_fee=250,
        creators=[(creator_key, True, 100)],
        collection=(True, collection_key),
        uses=(1, 3, 5),
    )
    meta = decode_metadata(data)
    assert meta.name == "Test NFT"
    assert meta.symbol == "TNFT"
    assert meta.uri == "https://example.com/nft.json"
    assert meta.seller_fee_basis_points == 250
    assert [c.to_dict() for c in meta.creators] == [{"address": WSOL_MINT, "verified": True, "share": 100}]
    assert meta.primary_sale_happened is True
    assert meta.edition_nonce == 254
    assert meta.token_standard == "NonFungible"
    assert meta.collection.to_dict() == {"key": USDC_MINT, "verified": True}
    assert meta.uses.to_dict() == {"use_method": "Multiple", "remaining": 3, "total": 5}


def test_decode_metadata_old_account_without_trailing_options():
    meta = decode_metadata(metadata_bytes("USD Coin", "USDC", with_trailing_options=False))
    assert meta.name == "USD Coin"
    assert meta.symbol == "USDC"
    assert meta.creators == []
    assert meta.edition_nonce is None
    assert meta.collection is None
    assert meta.uses is None


def test_decode_metadata_truncated_header():
    data = metadata_bytes("USD Coin", "USDC")
    with pytest.raises(DecodeError):
        decode_metadata(data[:50])
    with pytest.raises(DecodeError):
        decode_metadata(b"")


def test_metadata_pda_is_deterministic():
    pda = metadata_pda(USDC_MINT)
    assert pda == metadata_pda(USDC_MINT)
    assert pda != metadata_pda(WSOL_MINT)
    assert pda != USDC_MINT


def test_pubkey_to_str_length():
    assert pubkey_to_str(bytes(Pubkey.from_string(WSOL_MINT))) == WSOL_MINT
    with pytest.raises(DecodeError):
        pubkey_to_str(b"\x01" * 31)
