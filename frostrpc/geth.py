"""Tracer options for debug tracing and validation of the frames it returns."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Iterable, Mapping

from .errors import err

_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}\Z")
_FOUR_BYTE_KEY = re.compile(r"0x[0-9a-fA-F]{8}-\d+\Z")

AccountStates = dict[str, dict[str, Any]]


@dataclass
class DiffMode:
    """Account states before and after a transaction, keyed by lower-case address."""

    pre: AccountStates = field(default_factory=dict)
    post: AccountStates = field(default_factory=dict)


class _TraceKind(Enum):
    DEFAULT = auto()
    CALL = auto()
    DIFF = auto()
    PRESTATE = auto()
    FOUR_BYTE = auto()
    UNKNOWN = auto()


def tracer_options(tracer: str | None = None, tracer_config: Mapping[str, Any] | None = None) -> dict:
    """Build tracing options, leaving out unset fields."""
    options: dict[str, Any] = {}
    if tracer is not None:
        options["tracer"] = tracer
    if tracer_config is not None:
        options["tracerConfig"] = dict(tracer_config)
    return options


def js_tracer_options(code: str) -> dict:
    """Options running a JavaScript tracer."""
    return tracer_options(code)


def call_tracer_options() -> dict:
    """Options for the built-in call tracer with its default configuration."""
    return tracer_options("callTracer", {})


def four_byte_options() -> dict:
    """Options for the built-in four-byte selector tracer."""
    return tracer_options("4byteTracer")


def prestate_options(diff_mode: bool = False) -> dict:
    """Options for the built-in prestate tracer, optionally in diff mode."""
    if diff_mode:
        return tracer_options("prestateTracer", {"diffMode": True})
    return tracer_options("prestateTracer")


def _is_address_map(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(key, str) and _ADDRESS.match(key) and isinstance(state, dict)
        for key, state in value.items()
    )


def _normalize_accounts(accounts: Mapping[str, Mapping[str, Any]]) -> AccountStates:
    return {address.lower(): dict(state) for address, state in accounts.items()}


def _classify(trace: Any) -> _TraceKind:
    if not isinstance(trace, dict) or not trace:
        return _TraceKind.UNKNOWN
    if isinstance(trace.get("structLogs"), list):
        return _TraceKind.DEFAULT
    if "type" in trace and "from" in trace:
        return _TraceKind.CALL
    if set(trace) == {"pre", "post"} and _is_address_map(trace["pre"]) and _is_address_map(trace["post"]):
        return _TraceKind.DIFF
    if _is_address_map(trace):
        return _TraceKind.PRESTATE
    if all(
        isinstance(key, str)
        and _FOUR_BYTE_KEY.match(key)
        and isinstance(count, int)
        and not isinstance(count, bool)
        and count >= 0
        for key, count in trace.items()
    ):
        return _TraceKind.FOUR_BYTE
    return _TraceKind.UNKNOWN


def _extract(traces: Iterable[Any], kind: _TraceKind, convert: Callable[[Any], Any] = dict) -> list:
    frames = []
    for trace in traces:
        if _classify(trace) is not kind:
            raise err("invalid trace result")
        frames.append(convert(trace))
    return frames


def parse_geth_diff_object(mapping: Mapping[str, Any]) -> DiffMode:
    """Read a diff-mode prestate result from a plain JSON object."""
    if not isinstance(mapping, Mapping):
        raise err("cannot deserialize pre diff")
    states = {}
    for key in ("pre", "post"):
        value = mapping.get(key)
        if not _is_address_map(value):
            raise err(f"cannot deserialize {key} diff")
        states[key] = _normalize_accounts(value)
    return DiffMode(pre=states["pre"], post=states["post"])


def extract_js_results(traces: Iterable[Any]) -> list:
    """Return JavaScript tracer results, rejecting any that look like built-in frames."""
    results = []
    for trace in traces:
        if _classify(trace) is not _TraceKind.UNKNOWN:
            raise err("invalid trace result")
        results.append(trace)
    return results


def extract_default_frames(traces: Iterable[Any]) -> list[dict]:
    """Return struct-log (opcode) frames."""
    return _extract(traces, _TraceKind.DEFAULT)


def extract_four_byte_frames(traces: Iterable[Any]) -> list[dict[str, int]]:
    """Return selector-count maps from the four-byte tracer."""
    return _extract(traces, _TraceKind.FOUR_BYTE)


def extract_prestate_frames(traces: Iterable[Any]) -> list[AccountStates]:
    """Return account-state maps from the prestate tracer."""
    return _extract(traces, _TraceKind.PRESTATE, _normalize_accounts)


def extract_call_frames(traces: Iterable[Any]) -> list[dict]:
    """Return call frames from the call tracer."""
    return _extract(traces, _TraceKind.CALL)


def extract_diffs(traces: Iterable[Any], allow_unknown: bool = False) -> list[DiffMode]:
    """Return diff-mode prestate results; with ``allow_unknown`` other objects are parsed too."""
    diffs = []
    for trace in traces:
        kind = _classify(trace)
        if kind is _TraceKind.DIFF:
            diffs.append(
                DiffMode(pre=_normalize_accounts(trace["pre"]), post=_normalize_accounts(trace["post"]))
            )
        elif allow_unknown and kind is _TraceKind.UNKNOWN and isinstance(trace, dict):
            diffs.append(parse_geth_diff_object(trace))
        else:
            raise err("invalid trace result")
    return diffs