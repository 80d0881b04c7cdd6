import json

import httpx
import pytest
import respx

from frostrpc.errors import ProviderError
from frostrpc.provider import (
    JsonRpcProvider,
    RetryPolicy,
    block_tag,
    parse_quantity,
    to_hex_quantity,
)

URL = "http://localhost:8545"
NO_WAIT = RetryPolicy(max_retries=3, initial_backoff=0)


def _ok(result):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def _rpc_error(code, message):
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}
    )


@pytest.mark.parametrize("value", [0, 1, 255, 10**18, 2**256 - 1])
def test_quantity_round_trip(value):
    assert parse_quantity(to_hex_quantity(value)) == value


def test_zero_quantity_encoding():
    assert to_hex_quantity(0) == "0x0"


def test_negative_quantity_rejected():
    with pytest.raises(ValueError):
        to_hex_quantity(-1)


@pytest.mark.parametrize("text", ["0x", "12", "0xzz"])
def test_invalid_quantities_rejected(text):
    with pytest.raises(ValueError):
        parse_quantity(text)


def test_block_tag_forms():
    assert block_tag(None) == "latest"
    assert block_tag("finalized") == "finalized"
    assert block_tag(123456) == to_hex_quantity(123456)
    assert block_tag("0X0a") == to_hex_quantity(10)


def test_block_tag_rejects_unknown_name():
    with pytest.raises(ValueError):
        block_tag("bogus")


def test_retry_policy_defaults_and_backoff_growth():
    policy = RetryPolicy()
    assert policy.max_retries == 10
    assert policy.initial_backoff == 500
    assert policy.delay(1) == 2 * policy.delay(0)


@pytest.mark.asyncio
async def test_request_returns_result_and_sends_payload():
    with respx.mock:
        route = respx.post(URL).mock(return_value=_ok("0x10"))
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            result = await provider.request("eth_blockNumber", [])
    assert result == "0x10"
    body = json.loads(route.calls.last.request.content)
    assert body["method"] == "eth_blockNumber"
    assert body["params"] == []
    assert body["jsonrpc"] == "2.0"


@pytest.mark.asyncio
async def test_request_ids_increase():
    with respx.mock:
        route = respx.post(URL).mock(return_value=_ok(None))
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            await provider.request("eth_chainId", [])
            await provider.request("eth_chainId", [])
    ids = [json.loads(call.request.content)["id"] for call in route.calls]
    assert ids[1] > ids[0]


@pytest.mark.asyncio
async def test_rate_limited_http_is_retried():
    with respx.mock:
        route = respx.post(URL).mock(side_effect=[httpx.Response(429), _ok("0x1")])
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            result = await provider.request("eth_chainId", [])
    assert result == "0x1"
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_retries_exhausted_raises():
    with respx.mock:
        route = respx.post(URL).mock(return_value=httpx.Response(429))
        provider = JsonRpcProvider(URL, RetryPolicy(max_retries=1, initial_backoff=0))
        with pytest.raises(ProviderError):
            await provider.request("eth_chainId", [])
        await provider.close()
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_retryable_rpc_error_then_success():
    with respx.mock:
        route = respx.post(URL).mock(
            side_effect=[_rpc_error(-32005, "limit exceeded"), _ok([])]
        )
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            result = await provider.request("eth_getLogs", [{}])
    assert result == []
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_non_retryable_rpc_error_raises_immediately():
    with respx.mock:
        route = respx.post(URL).mock(return_value=_rpc_error(-32601, "method not found"))
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            with pytest.raises(ProviderError) as info:
                await provider.request("debug_nothing", [])
    assert info.value.code == -32601
    assert info.value.message == "method not found"
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_transport_errors_retried_then_raised():
    with respx.mock:
        route = respx.post(URL).mock(side_effect=httpx.ConnectError("refused"))
        async with JsonRpcProvider(URL, RetryPolicy(max_retries=2, initial_backoff=0)) as provider:
            with pytest.raises(ProviderError, match="transport error"):
                await provider.request("eth_chainId", [])
    assert route.call_count == 3


@pytest.mark.asyncio
async def test_client_error_status_not_retried():
    with respx.mock:
        route = respx.post(URL).mock(return_value=httpx.Response(404))
        async with JsonRpcProvider(URL, NO_WAIT) as provider:
            with pytest.raises(ProviderError):
                await provider.request("eth_chainId", [])
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_external_client_left_open():
    client = httpx.AsyncClient()
    with respx.mock:
        respx.post(URL).mock(return_value=_ok("0x5"))
        async with JsonRpcProvider(URL, NO_WAIT, client) as provider:
            assert await provider.request("eth_chainId", []) == "0x5"
    assert client.is_closed is False
    await client.aclose()
    assert client.is_closed is True