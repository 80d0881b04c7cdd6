"""JSON-RPC over HTTP with retries, plus helpers for hex quantities."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from .errors import ProviderError

_BLOCK_TAGS = frozenset({"latest", "earliest", "pending", "safe", "finalized"})
_RETRYABLE_RPC_CODES = frozenset({429, -32005})


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings: number of retries and the initial backoff in milliseconds."""

    max_retries: int = 10
    initial_backoff: int = 500

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (counted from 0)."""
        return self.initial_backoff * (2**attempt) / 1000.0


def to_hex_quantity(value: int) -> str:
    """Encode a non-negative integer as a JSON-RPC hex quantity."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError("quantities cannot be negative")
    return hex(value)


def parse_quantity(value: int | str) -> int:
    """Decode a JSON-RPC hex quantity (integers pass through)."""
    if isinstance(value, bool):
        raise TypeError("expected a quantity, got bool")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("quantities cannot be negative")
        return value
    if not isinstance(value, str):
        raise TypeError(f"expected a quantity, got {type(value).__name__}")
    if not value.lower().startswith("0x"):
        raise ValueError(f"not a hex quantity: {value!r}")
    try:
        return int(value[2:], 16)
    except ValueError as exc:
        raise ValueError(f"not a hex quantity: {value!r}") from exc


def block_tag(block: int | str | None) -> str:
    """Render a block number or tag as a JSON-RPC block parameter."""
    if block is None:
        return "latest"
    if isinstance(block, str):
        if block in _BLOCK_TAGS:
            return block
        return to_hex_quantity(parse_quantity(block))
    return to_hex_quantity(block)


class JsonRpcProvider:
    """Sends JSON-RPC requests to a node, retrying on rate limits and transient failures."""

    def __init__(
        self,
        url: str,
        retry_policy: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.retry_policy = retry_policy or RetryPolicy()
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=60.0)
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        """Call ``method`` with ``params`` and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params or []),
        }
        for attempt in itertools.count():
            failure = await self._attempt(payload)
            if not isinstance(failure, ProviderError):
                return failure.result
            if attempt >= self.retry_policy.max_retries:
                raise failure
            await asyncio.sleep(self.retry_policy.delay(attempt))
        raise AssertionError("unreachable")

    async def _attempt(self, payload: dict[str, Any]) -> "_Success | ProviderError":
        """Send once; return a success, return a retryable error, or raise a fatal one."""
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.TransportError as exc:
            return ProviderError(f"transport error: {exc}")
        status = response.status_code
        if status == 429 or status >= 500:
            return ProviderError(f"http status {status}", code=status)
        if status >= 400:
            raise ProviderError(f"http status {status}", code=status)
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError("invalid json response") from exc
        if not isinstance(body, dict):
            raise ProviderError("invalid json-rpc response")
        if "error" in body:
            error = body["error"] or {}
            rpc_error = ProviderError(
                str(error.get("message", "unknown error")),
                code=error.get("code"),
                data=error.get("data"),
            )
            if rpc_error.code in _RETRYABLE_RPC_CODES:
                return rpc_error
            raise rpc_error
        if "result" not in body:
            raise ProviderError("json-rpc response has no result")
        return _Success(body["result"])

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "JsonRpcProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


@dataclass(frozen=True)
class _Success:
    result: Any