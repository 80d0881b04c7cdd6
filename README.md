# frostrpc

An asyncio library for fetching data from Ethereum JSON-RPC nodes with an
optional cap on concurrent requests and on requests per second, plus helpers
for printing a summary of a collection run.

## Install

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `frostrpc.provider`
  - `JsonRpcProvider(url, retry_policy, client)` posts JSON-RPC requests with
    `httpx`. `request(method, params)` returns the `result` field. Transport
    errors, HTTP 429 and 5xx responses, and JSON-RPC errors with code `429`
    or `-32005` are retried; other HTTP 4xx responses, malformed responses
    and other JSON-RPC errors raise `ProviderError` at once. It is an async
    context manager; `close()` closes the HTTP client only if the provider
    created it.
  - `RetryPolicy(max_retries=10, initial_backoff=500)`: the backoff is in
    milliseconds and doubles on each retry.
  - `to_hex_quantity`, `parse_quantity` and `block_tag` convert between
    integers and hex quantities; `block_tag(None)` is `"latest"`, and the
    tags `latest`, `earliest`, `pending`, `safe` and `finalized` pass through.
- `frostrpc.limits`
  - `RateLimiter(per_second)` with `until_ready()`, allowing a burst of up to
    `per_second` requests.
  - `RequestGate(max_concurrent_requests, max_requests_per_second)`; either
    limit may be `None`. `permit()` is an async context manager.
- `frostrpc.fetcher.Fetcher(provider, max_concurrent_requests,
  max_requests_per_second)` sends every request through a `RequestGate`
  except `get_block_number()`. Its methods cover blocks, transactions,
  receipts, logs, `eth_call`, balances, nonces, code and storage, the
  `trace_*` methods, and `debug_traceBlockByNumber` /
  `debug_traceTransaction` with a JavaScript tracer, the opcode (struct-log)
  tracer, or the built-in call, prestate, prestate-diff and 4byte tracers.
  Hashes and addresses may be given as bytes or hex strings; code, call
  output and storage come back as `bytes`, quantities as `int`. The tracing
  helpers return a `(block_number, transaction_hashes, traces)` tuple.
- `frostrpc.geth` builds tracer options (`js_tracer_options`,
  `call_tracer_options`, `four_byte_options`, `prestate_options`) and checks
  trace results with the `extract_*` functions, which raise `CollectError`
  (`"invalid trace result"`) for frames of the wrong shape. `DiffMode` holds
  `pre` and `post` account states keyed by lower-case address.
- `frostrpc.source`
  - `Source(fetcher, chain_id, rpc_url, inner_request_size,
    max_concurrent_chunks, labels)`. `get_tx_receipts_in_block(block)` tries
    `eth_getBlockReceipts` first and falls back to one
    `eth_getTransactionReceipt` per transaction, run concurrently.
  - `SourceLabels` records request settings for reporting only.
- `frostrpc.errors`: `CollectError`, with subclasses `ProviderError`
  (carrying `code` and `data`) and `TaskFailed`; `err(message)` builds a
  `CollectError`.
- `frostrpc.formatting`: `separate_with_commas`, `format_float` (one decimal
  place, comma-grouped), and `print_header`, `print_header_error`,
  `print_bullet`, `print_bullet_key`, `print_bullet_parenthetical`,
  `print_bullet_indent`. Output goes to standard output or to the `file`
  given, and is coloured only when that stream is a terminal.
- `frostrpc.summaries`: `FreezeSummary` (completed, skipped and errored
  partitions; `as_counts()`), `print_error_summary`, `print_unit_speeds`,
  `print_chunk_speed` and `print_cryo_conclusion`, which prints start and
  end times, distinct errors, chunk outcomes and per-dimension speeds.

## Example

```python
import asyncio

from frostrpc.fetcher import Fetcher
from frostrpc.provider import JsonRpcProvider, RetryPolicy


async def main():
    async with JsonRpcProvider("http://localhost:8545", RetryPolicy(), None) as provider:
        fetcher = Fetcher(provider, max_concurrent_requests=10, max_requests_per_second=50)
        latest = await fetcher.get_block_number()
        block = await fetcher.get_block(latest)
        print(latest, len(block["transactions"]))


asyncio.run(main())
```

## What it does not do

There is no command-line tool, and nothing here turns fetched data into
tables or writes it to files: the package fetches and validates node
responses and prints summaries of a run whose chunking and storage are left
to the caller.