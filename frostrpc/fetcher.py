"""Node access with concurrency and rate limits, covering standard, trace and debug methods."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence

from .errors import ProviderError, err
from .geth import (
    DiffMode,
    call_tracer_options,
    extract_call_frames,
    extract_default_frames,
    extract_diffs,
    extract_four_byte_frames,
    extract_js_results,
    extract_prestate_frames,
    four_byte_options,
    js_tracer_options,
    prestate_options,
)
from .limits import RequestGate
from .provider import JsonRpcProvider, block_tag, parse_quantity

BytesLike = bytes | bytearray | memoryview | str
BlockRef = int | str | None
TraceResult = tuple[int | None, list[bytes | None], list[Any]]


def _raw_bytes(value: BytesLike, what: str) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        try:
            return bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"invalid {what}: {value!r}") from exc
    raise TypeError(f"{what} must be bytes or a hex string, got {type(value).__name__}")


def _fixed_hex(value: BytesLike, size: int, what: str) -> str:
    raw = _raw_bytes(value, what)
    if len(raw) != size:
        raise ValueError(f"{what} must be {size} bytes, got {len(raw)}")
    return "0x" + raw.hex()


def _hash_hex(value: BytesLike) -> str:
    return _fixed_hex(value, 32, "hash")


def _address_hex(value: BytesLike) -> str:
    return _fixed_hex(value, 20, "address")


def _decode_data(value: Any) -> bytes:
    if not isinstance(value, str) or value[:2].lower() != "0x":
        raise ProviderError(f"invalid data in response: {value!r}")
    try:
        return bytes.fromhex(value[2:])
    except ValueError as exc:
        raise ProviderError(f"invalid data in response: {value!r}") from exc


def _decode_quantity(value: Any) -> int:
    try:
        return parse_quantity(value)
    except (TypeError, ValueError) as exc:
        raise ProviderError(f"invalid quantity in response: {value!r}") from exc


def _tx_hash_bytes(entry: Any) -> bytes:
    if isinstance(entry, Mapping):
        entry = entry.get("hash")
    return _decode_data(entry)


def _block_tx_hashes(block: Mapping[str, Any]) -> list[bytes | None]:
    return [_tx_hash_bytes(entry) for entry in block.get("transactions") or []]


def _unwrap_trace(item: Any) -> Any:
    """Strip the per-transaction wrapper that block tracing puts around each result."""
    if isinstance(item, dict) and item:
        keys = set(item)
        if "result" in item and keys <= {"txHash", "result"}:
            return item["result"]
        if "error" in item and keys <= {"txHash", "error"}:
            raise ProviderError(str(item["error"]))
    return item


def _require_list(value: Any, what: str) -> list:
    if not isinstance(value, list):
        raise ProviderError(f"invalid {what} response")
    return value


class Fetcher:
    """Wraps a JSON-RPC provider, admitting each request through a concurrency and rate gate."""

    def __init__(
        self,
        provider: JsonRpcProvider,
        max_concurrent_requests: int | None = None,
        max_requests_per_second: int | None = None,
    ) -> None:
        self.provider = provider
        self.gate = RequestGate(max_concurrent_requests, max_requests_per_second)

    async def _request(self, method: str, params: Sequence[Any]) -> Any:
        async with self.gate.permit():
            return await self.provider.request(method, params)

    # standard and trace methods

    async def get_logs(self, filter: Mapping[str, Any]) -> list:
        """Return logs matching ``filter`` (possibly none)."""
        result = await self._request("eth_getLogs", [dict(filter)])
        return _require_list(result, "logs")

    async def trace_replay_block_transactions(
        self, block: BlockRef, trace_types: Iterable[str]
    ) -> list:
        """Replay every transaction of a block, returning the requested traces."""
        result = await self._request(
            "trace_replayBlockTransactions", [block_tag(block), list(trace_types)]
        )
        return _require_list(result, "trace")

    async def trace_block_state_diffs(
        self, block: int, include_transaction_hashes: bool
    ) -> TraceResult:
        """State-diff traces of a block with, optionally, its transaction hashes."""
        result = await self.trace_replay_block_transactions(block, ["stateDiff"])
        if include_transaction_hashes:
            found = await self.get_block(block)
            if found is None:
                raise err("could not find block")
            txs = _block_tx_hashes(found)
        else:
            txs = [None] * len(result)
        return block, txs, result

    async def trace_block_vm_traces(self, block: int) -> tuple[int, None, list]:
        """VM traces of a block."""
        result = await self.trace_replay_block_transactions(block, ["vmTrace"])
        return block, None, result

    async def trace_replay_transaction(
        self, tx_hash: BytesLike, trace_types: Iterable[str]
    ) -> Any:
        """Replay one transaction, returning the requested traces."""
        return await self._request(
            "trace_replayTransaction", [_hash_hex(tx_hash), list(trace_types)]
        )

    async def trace_transaction_state_diffs(self, transaction_hash: bytes) -> TraceResult:
        """State-diff trace of a transaction."""
        result = await self.trace_replay_transaction(transaction_hash, ["stateDiff"])
        return None, [transaction_hash], [result]

    async def trace_transaction_vm_traces(
        self, transaction_hash: bytes
    ) -> tuple[None, bytes, list]:
        """VM trace of a transaction."""
        result = await self.trace_replay_transaction(transaction_hash, ["vmTrace"])
        return None, transaction_hash, [result]

    async def get_transaction(self, tx_hash: BytesLike) -> dict | None:
        """The transaction with ``tx_hash``, or None."""
        return await self._request("eth_getTransactionByHash", [_hash_hex(tx_hash)])

    async def get_transaction_receipt(self, tx_hash: BytesLike) -> dict | None:
        """The receipt of the transaction with ``tx_hash``, or None."""
        return await self._request("eth_getTransactionReceipt", [_hash_hex(tx_hash)])

    async def get_block(self, block_num: BlockRef) -> dict | None:
        """The block at ``block_num`` with transaction hashes only."""
        return await self._request("eth_getBlockByNumber", [block_tag(block_num), False])

    async def get_block_by_hash(self, block_hash: BytesLike) -> dict | None:
        """The block with ``block_hash`` with transaction hashes only."""
        return await self._request("eth_getBlockByHash", [_hash_hex(block_hash), False])

    async def get_block_with_txs(self, block_num: BlockRef) -> dict | None:
        """The block at ``block_num`` with full transactions."""
        return await self._request("eth_getBlockByNumber", [block_tag(block_num), True])

    async def get_block_receipts(self, block_num: BlockRef) -> list:
        """All receipts of a block via ``eth_getBlockReceipts``, which not every node supports."""
        result = await self._request("eth_getBlockReceipts", [block_tag(block_num)])
        return _require_list(result, "block receipts")

    async def trace_block(self, block_num: BlockRef) -> list:
        """Traces created in a block."""
        result = await self._request("trace_block", [block_tag(block_num)])
        return _require_list(result, "trace")

    async def trace_transaction(self, tx_hash: BytesLike) -> list:
        """All traces of a transaction."""
        result = await self._request("trace_transaction", [_hash_hex(tx_hash)])
        return _require_list(result, "trace")

    async def call(self, transaction: Mapping[str, Any], block_number: BlockRef) -> bytes:
        """Execute a call without a transaction and return its output."""
        result = await self._request("eth_call", [dict(transaction), block_tag(block_number)])
        return _decode_data(result)

    async def trace_call(
        self,
        transaction: Mapping[str, Any],
        trace_type: Iterable[str],
        block_number: BlockRef = None,
    ) -> Any:
        """Traces for a call; the latest block when none is given."""
        return await self._request(
            "trace_call", [dict(transaction), list(trace_type), block_tag(block_number)]
        )

    async def get_transaction_count(self, address: BytesLike, block_number: BlockRef) -> int:
        """Nonce of ``address``."""
        result = await self._request(
            "eth_getTransactionCount", [_address_hex(address), block_tag(block_number)]
        )
        return _decode_quantity(result)

    async def get_balance(self, address: BytesLike, block_number: BlockRef) -> int:
        """Balance of ``address`` in wei."""
        result = await self._request(
            "eth_getBalance", [_address_hex(address), block_tag(block_number)]
        )
        return _decode_quantity(result)

    async def get_code(self, address: BytesLike, block_number: BlockRef) -> bytes:
        """Code at ``address``."""
        result = await self._request(
            "eth_getCode", [_address_hex(address), block_tag(block_number)]
        )
        return _decode_data(result)

    async def get_storage_at(
        self, address: BytesLike, slot: BytesLike, block_number: BlockRef
    ) -> bytes:
        """The 32-byte word stored at ``slot`` of ``address``."""
        result = await self._request(
            "eth_getStorageAt",
            [_address_hex(address), _hash_hex(slot), block_tag(block_number)],
        )
        return _decode_data(result)

    async def get_block_number(self) -> int:
        """The latest block number; not subject to the request gate."""
        return _decode_quantity(await self.provider.request("eth_blockNumber", []))

    # helpers built on the methods above

    async def get_transaction_block_number(self, transaction_hash: BytesLike) -> int:
        """Block number that includes a transaction."""
        tx = await self.get_transaction(transaction_hash)
        if tx is None:
            raise err("could not get block")
        number = tx.get("blockNumber")
        if number is None:
            raise err("could not get block number")
        return _decode_quantity(number)

    async def get_transaction_logs(self, transaction_hash: BytesLike) -> list:
        """Logs emitted by a transaction, from its receipt."""
        receipt = await self.get_transaction_receipt(transaction_hash)
        if receipt is None:
            raise err("transaction receipt not found")
        return list(receipt.get("logs") or [])

    @staticmethod
    def _call_request(address: BytesLike, call_data: BytesLike) -> dict[str, str]:
        return {
            "to": _address_hex(address),
            "data": "0x" + _raw_bytes(call_data, "call data").hex(),
        }

    async def call2(
        self, address: BytesLike, call_data: BytesLike, block_number: BlockRef
    ) -> bytes:
        """Output of calling ``address`` with ``call_data``."""
        return await self.call(self._call_request(address, call_data), block_number)

    async def trace_call2(
        self,
        address: BytesLike,
        call_data: BytesLike,
        trace_type: Iterable[str],
        block_number: BlockRef = None,
    ) -> Any:
        """Traces of calling ``address`` with ``call_data``."""
        return await self.trace_call(
            self._call_request(address, call_data), trace_type, block_number
        )

    # debug tracing by block

    async def geth_debug_trace_block(
        self,
        block_number: int,
        options: Mapping[str, Any],
        include_transaction_hashes: bool,
    ) -> TraceResult:
        """Debug traces of every transaction in a block."""
        result = await self._request(
            "debug_traceBlockByNumber", [block_tag(block_number), dict(options)]
        )
        traces = [_unwrap_trace(item) for item in _require_list(result, "trace")]
        if include_transaction_hashes:
            block = await self.get_block(block_number)
            if block is None:
                raise err("could not get block for txs")
            txs = _block_tx_hashes(block)
        else:
            txs = [None] * len(traces)
        return block_number, txs, traces

    async def _trace_block_as(
        self,
        block_number: int,
        options: Mapping[str, Any],
        include_transaction_hashes: bool,
        extract: Callable[[list], list],
    ) -> TraceResult:
        block, txs, traces = await self.geth_debug_trace_block(
            block_number, options, include_transaction_hashes
        )
        return block, txs, extract(traces)

    async def geth_debug_trace_block_javascript_traces(
        self, js_tracer: str, block_number: int, include_transaction_hashes: bool
    ) -> TraceResult:
        """Results of a JavaScript tracer over a block."""
        return await self._trace_block_as(
            block_number,
            js_tracer_options(js_tracer),
            include_transaction_hashes,
            extract_js_results,
        )

    async def geth_debug_trace_block_opcodes(
        self,
        block_number: int,
        include_transaction_hashes: bool,
        options: Mapping[str, Any],
    ) -> TraceResult:
        """Struct-log (opcode) traces of a block."""
        return await self._trace_block_as(
            block_number, options, include_transaction_hashes, extract_default_frames
        )

    async def geth_debug_trace_block_4byte_traces(
        self, block_number: int, include_transaction_hashes: bool
    ) -> TraceResult:
        """Four-byte selector counts of a block."""
        return await self._trace_block_as(
            block_number, four_byte_options(), include_transaction_hashes, extract_four_byte_frames
        )

    async def geth_debug_trace_block_prestate(
        self, block_number: int, include_transaction_hashes: bool
    ) -> TraceResult:
        """Prestate traces of a block."""
        return await self._trace_block_as(
            block_number, prestate_options(), include_transaction_hashes, extract_prestate_frames
        )

    async def geth_debug_trace_block_calls(
        self, block_number: int, include_transaction_hashes: bool
    ) -> TraceResult:
        """Call traces of a block."""
        return await self._trace_block_as(
            block_number, call_tracer_options(), include_transaction_hashes, extract_call_frames
        )

    async def geth_debug_trace_block_diffs(
        self, block_number: int, include_transaction_hashes: bool
    ) -> tuple[int | None, list[bytes | None], list[DiffMode]]:
        """Prestate diffs of a block; plain pre/post objects are accepted too."""
        return await self._trace_block_as(
            block_number,
            prestate_options(diff_mode=True),
            include_transaction_hashes,
            lambda traces: extract_diffs(traces, allow_unknown=True),
        )

    # debug tracing by transaction

    async def geth_debug_trace_transaction(
        self,
        transaction_hash: bytes,
        options: Mapping[str, Any],
        include_block_number: bool,
    ) -> TraceResult:
        """Debug trace of one transaction, optionally with its block number."""
        tx_hex = _hash_hex(transaction_hash)
        trace = await self._request("debug_traceTransaction", [tx_hex, dict(options)])
        block_number = None
        if include_block_number:
            tx = await self.get_transaction(tx_hex)
            if tx is None:
                raise err("could not get block for txs")
            if tx.get("blockNumber") is not None:
                block_number = _decode_quantity(tx["blockNumber"])
        return block_number, [transaction_hash], [trace]

    async def _trace_transaction_as(
        self,
        transaction_hash: bytes,
        options: Mapping[str, Any],
        include_block_number: bool,
        extract: Callable[[list], list],
    ) -> TraceResult:
        block, txs, traces = await self.geth_debug_trace_transaction(
            transaction_hash, options, include_block_number
        )
        return block, txs, extract(traces)

    async def geth_debug_trace_transaction_javascript_traces(
        self, js_tracer: str, transaction_hash: bytes, include_block_number: bool
    ) -> TraceResult:
        """Result of a JavaScript tracer over a transaction."""
        return await self._trace_transaction_as(
            transaction_hash,
            js_tracer_options(js_tracer),
            include_block_number,
            extract_js_results,
        )

    async def geth_debug_trace_transaction_opcodes(
        self,
        transaction_hash: bytes,
        include_block_number: bool,
        options: Mapping[str, Any],
    ) -> TraceResult:
        """Struct-log (opcode) trace of a transaction."""
        return await self._trace_transaction_as(
            transaction_hash, options, include_block_number, extract_default_frames
        )

    async def geth_debug_trace_transaction_4byte_traces(
        self, transaction_hash: bytes, include_block_number: bool
    ) -> TraceResult:
        """Four-byte selector counts of a transaction."""
        return await self._trace_transaction_as(
            transaction_hash, four_byte_options(), include_block_number, extract_four_byte_frames
        )

    async def geth_debug_trace_transaction_prestate(
        self, transaction_hash: bytes, include_block_number: bool
    ) -> TraceResult:
        """Prestate trace of a transaction."""
        return await self._trace_transaction_as(
            transaction_hash, prestate_options(), include_block_number, extract_prestate_frames
        )

    async def geth_debug_trace_transaction_calls(
        self, transaction_hash: bytes, include_block_number: bool
    ) -> TraceResult:
        """Call trace of a transaction."""
        return await self._trace_transaction_as(
            transaction_hash, call_tracer_options(), include_block_number, extract_call_frames
        )

    async def geth_debug_trace_transaction_diffs(
        self, transaction_hash: bytes, include_block_number: bool
    ) -> tuple[int | None, list[bytes | None], list[DiffMode]]:
        """Prestate diff of a transaction."""
        return await self._trace_transaction_as(
            transaction_hash,
            prestate_options(diff_mode=True),
            include_block_number,
            extract_diffs,
        )