"""Exceptions raised while collecting data from a node."""

from __future__ import annotations

from typing import Any


class CollectError(Exception):
    """A failure while collecting data."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ProviderError(CollectError):
    """The node or the transport to it reported an error."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code {self.code})"


class TaskFailed(CollectError):
    """A concurrently running task failed to complete."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"task failed: {cause}")
        self.cause = cause


def err(message: str) -> CollectError:
    """Build a generic collect error with the given message."""
    return CollectError(message)