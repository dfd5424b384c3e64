"""
Tests for the TTL-cached token metadata resolver (metadata/resolver.py).

Account lookups go through in-memory fake providers; time through a fake clock.
"""

from __future__ import annotations

import asyncio
import threading

import pytest

from backend_txlens.core.exceptions import ProviderUnavailableError
from backend_txlens.interpreter.models import KIND_FUNGIBLE, KIND_NFT
from backend_txlens.metadata.layouts import metadata_pda
from backend_txlens.metadata.resolver import METADATA_FETCH_ERROR, TokenMetadataResolver

from conftest import (
    USDC_MINT,
    WSOL_MINT,
    AsyncFakeAccountProvider,
    FakeAccountProvider,
    metadata_bytes,
    mint_bytes,
)


def _resolve(resolver: TokenMetadataResolver, address: str, kind: str = KIND_FUNGIBLE):
    return asyncio.run(resolver.resolve(address, kind))


def test_resolve_mint_and_metaplex(clock):
    provider = FakeAccountProvider(
        {
            USDC_MINT: mint_bytes(decimals=6, supply=10**18),
            metadata_pda(USDC_MINT): metadata_bytes("USD Coin", "USDC", "https://example.com/usdc.json"),
        }
    )
    resolver = TokenMetadataResolver(provider, clock=clock)
    asset = _resolve(resolver, USDC_MINT)
    assert asset.address == USDC_MINT
    assert asset.kind == KIND_FUNGIBLE
    assert asset.decimals == 6
    assert asset.supply == str(10**18)
    assert asset.is_initialized is True
    assert asset.name == "USD Coin"
    assert asset.symbol == "USDC"
    assert asset.uri == "https://example.com/usdc.json"
    assert asset.fetched_at == clock.now
    assert asset.error is None
    assert asset.is_nft is None


def test_missing_metaplex_account_omits_descriptive_fields(clock):
    provider = FakeAccountProvider({WSOL_MINT: mint_bytes(decimals=9)})
    asset = _resolve(TokenMetadataResolver(provider, clock=clock), WSOL_MINT)
    assert asset.decimals == 9
    assert asset.name is None
    assert "name" not in asset.to_dict()


def test_two_resolutions_within_ttl_do_one_lookup(clock):
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)})
    resolver = TokenMetadataResolver(provider, ttl_sec=3600, clock=clock)
    first = _resolve(resolver, USDC_MINT)
    clock.advance(3599)
    second = _resolve(resolver, USDC_MINT)
    assert second is first
    assert provider.calls.count(USDC_MINT) == 1


def test_entry_expires_after_ttl(clock):
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)})
    resolver = TokenMetadataResolver(provider, ttl_sec=3600, clock=clock)
    first = _resolve(resolver, USDC_MINT)
    clock.advance(3600)
    assert resolver.cached(USDC_MINT) is None
    second = _resolve(resolver, USDC_MINT)
    assert second is not first
    assert second.fetched_at == first.fetched_at + 3600
    assert provider.calls.count(USDC_MINT) == 2


def test_missing_mint_returns_error_marked_result_and_caches_it(clock):
    provider = FakeAccountProvider()
    resolver = TokenMetadataResolver(provider, clock=clock)
    asset = _resolve(resolver, USDC_MINT)
    assert asset.error == METADATA_FETCH_ERROR
    assert asset.decimals is None
    assert asset.to_dict() == {
        "address": USDC_MINT,
        "kind": KIND_FUNGIBLE,
        "fetched_at": clock.now,
        "error": METADATA_FETCH_ERROR,
    }
    _resolve(resolver, USDC_MINT)
    assert provider.calls == [USDC_MINT]


def test_provider_exception_is_absorbed(clock):
    provider = FakeAccountProvider(failing={USDC_MINT})
    asset = _resolve(TokenMetadataResolver(provider, clock=clock), USDC_MINT)
    assert asset.error == METADATA_FETCH_ERROR


def test_undecodable_mint_is_absorbed(clock):
    provider = FakeAccountProvider({USDC_MINT: b"\x01\x02"})
    asset = _resolve(TokenMetadataResolver(provider, clock=clock), USDC_MINT)
    assert asset.error == METADATA_FETCH_ERROR


def test_metaplex_failure_keeps_mint_fields(clock):
    pda = metadata_pda(USDC_MINT)
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)}, failing={pda})
    asset = _resolve(TokenMetadataResolver(provider, clock=clock), USDC_MINT)
    assert asset.error is None
    assert asset.decimals == 6
    assert asset.name is None


def test_kinds_have_separate_cache_slots(clock):
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=0, supply=1)})
    resolver = TokenMetadataResolver(provider, clock=clock)
    fungible = _resolve(resolver, USDC_MINT, KIND_FUNGIBLE)
    nft = _resolve(resolver, USDC_MINT, KIND_NFT)
    assert fungible is not nft
    assert nft.kind == KIND_NFT
    assert nft.is_nft is True
    assert provider.calls.count(USDC_MINT) == 2
    assert len(resolver) == 2


def test_nft_kind_with_fungible_mint(clock):
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=6, supply=500)})
    nft = _resolve(TokenMetadataResolver(provider, clock=clock), USDC_MINT, KIND_NFT)
    assert nft.is_nft is False


def test_clear_cache(clock):
    provider = FakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)})
    resolver = TokenMetadataResolver(provider, clock=clock)
    _resolve(resolver, USDC_MINT)
    resolver.clear_cache()
    assert len(resolver) == 0
    _resolve(resolver, USDC_MINT)
    assert provider.calls.count(USDC_MINT) == 2


def test_async_provider_and_single_flight(clock):
    provider = AsyncFakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)})
    resolver = TokenMetadataResolver(provider, clock=clock)

    async def both():
        return await asyncio.gather(resolver.resolve(USDC_MINT), resolver.resolve(USDC_MINT))

    first, second = asyncio.run(both())
    assert first is second
    assert provider.calls.count(USDC_MINT) == 1


def test_sync_provider_does_not_block_the_event_loop(clock):
    released = threading.Event()

    class BlockingProvider(FakeAccountProvider):
        def get_account_info(self, address):
            # only released by a coroutine, so the loop must keep running meanwhile
            if not released.wait(timeout=5):
                raise RuntimeError("event loop blocked")
            return super().get_account_info(address)

    resolver = TokenMetadataResolver(BlockingProvider({USDC_MINT: mint_bytes(decimals=6)}), clock=clock)

    async def release():
        await asyncio.sleep(0)
        released.set()

    async def both():
        meta, _ = await asyncio.gather(resolver.resolve(USDC_MINT), release())
        return meta

    meta = asyncio.run(both())
    assert meta.error is None
    assert meta.decimals == 6


def test_without_single_flight_each_call_fetches(clock):
    provider = AsyncFakeAccountProvider({USDC_MINT: mint_bytes(decimals=6)})
    resolver = TokenMetadataResolver(provider, clock=clock, single_flight=False)

    async def both():
        return await asyncio.gather(resolver.resolve(USDC_MINT), resolver.resolve(USDC_MINT))

    asyncio.run(both())
    assert provider.calls.count(USDC_MINT) == 2


def test_constructor_requires_provider():
    with pytest.raises(ProviderUnavailableError):
        TokenMetadataResolver(None)  # type: ignore[arg-type]
    with pytest.raises(ProviderUnavailableError):
        TokenMetadataResolver(object())  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        TokenMetadataResolver(FakeAccountProvider(), ttl_sec=0)


def test_unknown_kind_rejected(clock):
    resolver = TokenMetadataResolver(FakeAccountProvider(), clock=clock)
    with pytest.raises(ValueError):
        _resolve(resolver, USDC_MINT, "semi-fungible")
