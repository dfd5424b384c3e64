"""
Solana JSON-RPC account lookup provider.

The interpreter core only needs one capability, get_account_info(address)
returning raw account bytes or None. SolanaRpcClient implements it over a
single HTTP endpoint with httpx, retrying transport errors with exponential
backoff. It also fetches jsonParsed transactions and checks whether an
address is an executable program for the CLI report. Endpoint
selection / failover across several RPCs is left to the caller.
"""

from __future__ import annotations

import asyncio
import base64
import itertools
from typing import Any, Protocol, runtime_checkable

import httpx

from backend_txlens.core.exceptions import AccountLookupError
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)

# JSON-RPC request id counter
_request_ids = itertools.count(1)


@runtime_checkable
class AccountLookupProvider(Protocol):
    """Anything exposing get_account_info(address) -> bytes | None (sync or async)."""

    def get_account_info(self, address: str) -> Any:
        ...


def build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": next(_request_ids),
        "method": method,
        "params": params,
    }


def decode_account_data(data: Any) -> bytes | None:
    """Normalize getAccountInfo value.data (["<b64>", "base64"] or "<b64>") to bytes."""
    if data is None:
        return None
    if isinstance(data, (list, tuple)):
        if not data:
            return None
        encoded = data[0]
        encoding = data[1] if len(data) > 1 else "base64"
        if encoding != "base64":
            raise AccountLookupError(f"unsupported account data encoding: {encoding}")
        data = encoded
    if isinstance(data, str):
        try:
            return base64.b64decode(data, validate=True)
        except ValueError as e:
            raise AccountLookupError(f"invalid base64 account data: {e}") from e
    raise AccountLookupError(f"unexpected account data type: {type(data).__name__}")


class SolanaRpcClient:
    """
    Async JSON-RPC client for one Solana endpoint.

    Use as an async context manager, or call aclose() when done. A client
    passed in via http_client is not closed by this object.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        request_timeout_sec: float = 30.0,
        max_retries: int = 3,
        min_retry_delay_sec: float = 0.5,
        max_retry_delay_sec: float = 8.0,
        commitment: str = "confirmed",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            rpc_url: Solana RPC HTTP endpoint (e.g. https://api.mainnet-beta.solana.com).
            request_timeout_sec: HTTP timeout for each RPC request.
            max_retries: Attempts per call before giving up (transport / HTTP errors only).
            min_retry_delay_sec: Initial delay for exponential backoff.
            max_retry_delay_sec: Cap for backoff delay.
            commitment: Commitment level sent with every request.
            http_client: Optional preconfigured httpx.AsyncClient (tests use MockTransport).
        """
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._rpc_url = rpc_url.rstrip("/")
        self._max_retries = max_retries
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._commitment = commitment
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(request_timeout_sec))

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_account_info(self, address: str) -> bytes | None:
        """Return raw account bytes, or None when the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            return None
        return decode_account_data(value.get("data"))

    async def is_executable(self, address: str) -> bool:
        """Whether address holds an executable (program) account; False when it does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "dataSlice": {"offset": 0, "length": 0}, "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            return False
        return value.get("executable") is True

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        """getTransaction with jsonParsed encoding; None when the signature is unknown."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": self._commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
            allow_null=True,
        )
        return result if isinstance(result, dict) else None

    async def _call(self, method: str, params: list[Any], *, allow_null: bool = False) -> Any:
        """Perform one JSON-RPC call with retry; raise AccountLookupError when it cannot complete."""
        delay = self._min_retry_delay
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.post(self._rpc_url, json=build_rpc_body(method, params))
                resp.raise_for_status()
                data = resp.json()
                break
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    error=str(e),
                )
                if attempt + 1 < self._max_retries:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, self._max_retry_delay)
        else:
            logger.error("rpc_give_up", method=method, max_retries=self._max_retries, error=str(last_error))
            raise AccountLookupError(f"{method} failed after {self._max_retries} attempts: {last_error}")

        if not isinstance(data, dict):
            raise AccountLookupError(f"Solana RPC returned a malformed response for {method}")
        if "error" in data:
            err = data["error"]
            raise AccountLookupError(
                f"Solana RPC error: {err.get('message', err)} (code={err.get('code')})"
            )
        result = data.get("result")
        if result is None and not allow_null:
            raise AccountLookupError(f"Solana RPC returned no result for {method}")
        return result
