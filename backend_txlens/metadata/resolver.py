"""
Token metadata resolver with a TTL cache keyed by (address, kind).

Resolution does a mandatory mint lookup (decimals, supply, initialized) and an
optional Metaplex metadata lookup (name, symbol, uri, creators, collection,
uses). A failed mint lookup yields an error-marked AssetMetadata instead of
raising. Every result, including failures, is written to the cache.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable

from backend_txlens.core.exceptions import AccountLookupError, DecodeError, ProviderUnavailableError
from backend_txlens.interpreter.models import KIND_FUNGIBLE, KIND_NFT, AssetMetadata
from backend_txlens.metadata.layouts import (
    MintInfo,
    TokenMetadata,
    decode_metadata,
    decode_mint,
    metadata_pda,
)
from backend_txlens.solana_listener.rpc import AccountLookupProvider
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SEC = 3600.0
METADATA_FETCH_ERROR = "Failed to fetch metadata"

CacheKey = tuple[str, str]


class TokenMetadataResolver:
    """
    Resolves AssetMetadata through an account lookup provider and caches it.

    One instance is meant to be shared (process or request scope) by every
    interpreter that should see the same cache; pass it in explicitly.
    """

    def __init__(
        self,
        provider: AccountLookupProvider,
        *,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.time,
        single_flight: bool = True,
    ) -> None:
        if provider is None or not callable(getattr(provider, "get_account_info", None)):
            raise ProviderUnavailableError("account lookup provider must expose get_account_info(address)")
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._provider = provider
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._single_flight = single_flight
        self._cache: dict[CacheKey, AssetMetadata] = {}
        self._inflight: dict[CacheKey, asyncio.Task[AssetMetadata]] = {}

    @property
    def provider(self) -> AccountLookupProvider:
        return self._provider

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def __len__(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        """Drop every cached entry immediately."""
        dropped = len(self._cache)
        self._cache.clear()
        logger.info("metadata_cache_cleared", dropped=dropped)

    def cached(self, address: str, kind: str = KIND_FUNGIBLE) -> AssetMetadata | None:
        """Return the cached entry if present and fresh, else None. Never fetches."""
        entry = self._cache.get((address, kind))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self._ttl_sec:
            return None
        return entry

    async def resolve(self, address: str, kind: str = KIND_FUNGIBLE) -> AssetMetadata:
        """
        Return metadata for (address, kind).

        Fresh cache entries are returned verbatim, including cached failures.
        Never raises for lookup or decode failures.
        """
        if kind not in (KIND_FUNGIBLE, KIND_NFT):
            raise ValueError(f"unknown asset kind: {kind!r}")
        hit = self.cached(address, kind)
        if hit is not None:
            logger.debug("metadata_cache_hit", address=address, kind=kind)
            return hit

        key = (address, kind)
        if not self._single_flight:
            return await self._fetch_and_store(address, kind)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(address, kind))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        return await asyncio.shield(task)

    async def _fetch_and_store(self, address: str, kind: str) -> AssetMetadata:
        result = await self._fetch(address, kind)
        self._cache[(address, kind)] = result
        return result

    async def _fetch(self, address: str, kind: str) -> AssetMetadata:
        now = self._clock()
        try:
            mint = await self._fetch_mint(address)
        except (AccountLookupError, DecodeError) as e:
            logger.warning("metadata_mint_lookup_failed", address=address, kind=kind, error=str(e))
            return AssetMetadata(address=address, kind=kind, fetched_at=now, error=METADATA_FETCH_ERROR)

        result = AssetMetadata(
            address=address,
            kind=kind,
            fetched_at=now,
            decimals=mint.decimals,
            supply=str(mint.supply),
            is_initialized=mint.is_initialized,
        )

        metaplex = await self._fetch_metaplex(address)
        if metaplex is not None:
            result.name = metaplex.name
            result.symbol = metaplex.symbol
            result.uri = metaplex.uri
            result.seller_fee_basis_points = metaplex.seller_fee_basis_points
            result.creators = [c.to_dict() for c in metaplex.creators]
            result.collection = metaplex.collection.to_dict() if metaplex.collection else None
            result.uses = metaplex.uses.to_dict() if metaplex.uses else None

        if kind == KIND_NFT:
            result.is_nft = mint.decimals == 0 and mint.supply == 1

        logger.debug(
            "metadata_resolved",
            address=address,
            kind=kind,
            decimals=mint.decimals,
            has_metaplex=metaplex is not None,
        )
        return result

    async def _fetch_mint(self, address: str) -> MintInfo:
        data = await self._get_account_info(address)
        if data is None:
            raise AccountLookupError("mint account not found", address=address)
        return decode_mint(data)

    async def _fetch_metaplex(self, address: str) -> TokenMetadata | None:
        """Metaplex metadata is optional: any failure just omits the descriptive fields."""
        try:
            pda = metadata_pda(address)
        except ValueError as e:
            logger.debug("metadata_pda_failed", address=address, error=str(e))
            return None
        try:
            data = await self._get_account_info(pda)
        except AccountLookupError as e:
            logger.debug("metadata_metaplex_lookup_failed", address=address, error=str(e))
            return None
        if data is None:
            return None
        try:
            return decode_metadata(data)
        except DecodeError as e:
            logger.debug("metadata_metaplex_decode_failed", address=address, error=str(e))
            return None

    async def _get_account_info(self, address: str) -> bytes | None:
        """
        Call the provider; normalize provider errors to AccountLookupError.
        Sync providers run in a worker thread so blocking I/O does not stall the loop.
        """
        lookup = self._provider.get_account_info
        try:
            if inspect.iscoroutinefunction(lookup):
                result: Any = await lookup(address)
            else:
                result = await asyncio.to_thread(lookup, address)
                if inspect.isawaitable(result):
                    result = await result
        except AccountLookupError:
            raise
        except Exception as e:
            raise AccountLookupError(f"account lookup failed: {e}", address=address) from e
        if result is None:
            return None
        return bytes(result)
