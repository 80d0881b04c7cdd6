"""A configured data source: a fetcher plus the chain and collection settings around it."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import CollectError, TaskFailed
from .fetcher import Fetcher
from .provider import parse_quantity


@dataclass(frozen=True)
class SourceLabels:
    """Settings recorded for reporting only; they do not change behaviour."""

    max_concurrent_requests: int | None = None
    max_requests_per_second: int | None = None
    max_retries: int | None = None
    initial_backoff: int | None = None


@dataclass
class Source:
    """Options for fetching data from a node."""

    fetcher: Fetcher
    chain_id: int
    rpc_url: str = ""
    inner_request_size: int = 1
    max_concurrent_chunks: int | None = None
    labels: SourceLabels = field(default_factory=SourceLabels)

    async def get_tx_receipts_in_block(self, block: Mapping[str, Any]) -> list:
        """All receipts of a block.

        Tries ``eth_getBlockReceipts`` first and falls back to one
        ``eth_getTransactionReceipt`` per transaction.
        """
        number = block.get("number")
        if number is None:
            raise CollectError("no block number")
        block_number = parse_quantity(number)
        try:
            return await self.fetcher.get_block_receipts(block_number)
        except CollectError:
            pass

        hashes = [
            tx["hash"] if isinstance(tx, Mapping) else tx
            for tx in block.get("transactions") or []
        ]
        outcomes = await asyncio.gather(
            *(self._receipt(tx_hash) for tx_hash in hashes), return_exceptions=True
        )
        receipts = []
        for outcome in outcomes:
            if isinstance(outcome, CollectError):
                raise outcome
            if isinstance(outcome, BaseException):
                raise TaskFailed(outcome)
            receipts.append(outcome)
        return receipts

    async def _receipt(self, tx_hash: Any) -> dict:
        receipt = await self.fetcher.get_transaction_receipt(tx_hash)
        if receipt is None:
            raise CollectError("could not find tx receipt")
        return receipt