"""Async JSON-RPC fetching from Ethereum nodes with request limits, and run summaries."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "limits",
    "provider",
    "geth",
    "fetcher",
    "source",
    "formatting",
    "summaries",
]