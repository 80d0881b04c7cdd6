"""Number formatting and coloured bullet/header output for terminal summaries."""

from __future__ import annotations

import math
import sys
from typing import IO, Any

_TITLE = (0, 225, 0)
_ERROR = (225, 0, 0)
_VALUE = (170, 170, 170)
_WHITE_BOLD = "1;37"
_I64_MAX = 2**63 - 1
_I64_MIN = -(2**63)


def _resolve(file: IO[str] | None) -> IO[str]:
    return sys.stdout if file is None else file


def _use_color(file: IO[str]) -> bool:
    isatty = getattr(file, "isatty", None)
    return bool(isatty and isatty())


def _style(text: str, code: str, file: IO[str]) -> str:
    if not _use_color(file):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _rgb(text: str, rgb: tuple[int, int, int], file: IO[str]) -> str:
    red, green, blue = rgb
    return _style(text, f"38;2;{red};{green};{blue}", file)


def separate_with_commas(value: Any) -> str:
    """Group the digits of a number in threes, separated by commas."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    return f"{value:,}"


def _trunc_to_i64(number: float) -> int:
    if math.isnan(number):
        return 0
    if number >= 2**63:
        return _I64_MAX
    if number < _I64_MIN:
        return _I64_MIN
    return math.trunc(number)


def _round_half_away(number: float) -> float:
    if not math.isfinite(number):
        return number
    return math.copysign(math.floor(abs(number) + 0.5), number)


def _to_unsigned(number: float) -> int:
    if math.isnan(number) or number <= 0:
        return 0
    if math.isinf(number):
        return 2**64 - 1
    return int(number)


def format_float(number: float) -> str:
    """Format with one decimal place and comma-grouped integer part."""
    int_part = _trunc_to_i64(number)
    fraction = math.modf(number)[0] if math.isfinite(number) else math.nan
    frac_part = _to_unsigned(_round_half_away(fraction * 10))
    if frac_part == 0:
        return f"{separate_with_commas(int_part)}.0"
    frac_str = str(frac_part).rstrip("0")
    return f"{separate_with_commas(int_part)}.{frac_str}"


def _print_underlined(header: str, rgb: tuple[int, int, int], file: IO[str] | None) -> None:
    out = _resolve(file)
    underline = "─" * len(header.encode("utf-8"))
    print(_style(header, _WHITE_BOLD, out), file=out)
    print(_rgb(underline, rgb, out), file=out)


def print_header(header: str, file: IO[str] | None = None) -> None:
    """Print a bold header with a green underline."""
    _print_underlined(header, _TITLE, file)


def print_header_error(header: str, file: IO[str] | None = None) -> None:
    """Print a bold header with a red underline."""
    _print_underlined(header, _ERROR, file)


def print_bullet_key(key: str, file: IO[str] | None = None) -> None:
    """Print ``- key``."""
    out = _resolve(file)
    print(_rgb("- ", _TITLE, out) + _style(key, _WHITE_BOLD, out), file=out)


def _bullet_line(key: str, value: str, out: IO[str]) -> str:
    return (
        _rgb("- ", _TITLE, out)
        + _style(key, _WHITE_BOLD, out)
        + _rgb(": ", _TITLE, out)
        + _rgb(value, _VALUE, out)
    )


def print_bullet(key: str, value: str, file: IO[str] | None = None) -> None:
    """Print ``- key: value``."""
    out = _resolve(file)
    print(_bullet_line(key, value, out), file=out)


def print_bullet_parenthetical(key: str, value: str, file: IO[str] | None = None) -> None:
    """Print ``- key (value)``."""
    out = _resolve(file)
    line = (
        _rgb("- ", _TITLE, out)
        + _style(key, _WHITE_BOLD, out)
        + " ("
        + _rgb(value, _VALUE, out)
        + ")"
    )
    print(line, file=out)


def print_bullet_indent(key: str, value: str, indent: int, file: IO[str] | None = None) -> None:
    """Print ``- key: value`` preceded by ``indent`` spaces."""
    out = _resolve(file)
    print(" " * indent + _bullet_line(key, value, out), file=out)