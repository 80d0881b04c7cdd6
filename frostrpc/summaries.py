"""Summary of a collection run and the report printed at its end."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import IO, Any, Iterable, Mapping

from .formatting import (
    _resolve,
    format_float,
    print_bullet,
    print_bullet_indent,
    print_header,
    print_header_error,
    separate_with_commas,
)


@dataclass
class FreezeSummary:
    """Partitions completed, skipped and errored during a run."""

    completed: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    errored: list[tuple[Any, BaseException]] = field(default_factory=list)

    def as_counts(self) -> dict[str, int]:
        """Number of partitions in each outcome."""
        return {
            "n_completed": len(self.completed),
            "n_skipped": len(self.skipped),
            "n_errored": len(self.errored),
        }


def _ratio(numerator: float, denominator: float) -> float:
    try:
        return numerator / denominator
    except ZeroDivisionError:
        if numerator == 0:
            return float("nan")
        return float("inf") if numerator > 0 else float("-inf")


def print_unit_speeds(
    name: str, n_completed: int, total_time: float, file: IO[str] | None = None
) -> None:
    """Print how many units were collected and the rate per second, minute, hour and day."""
    out = _resolve(file)
    per_second = _ratio(float(n_completed), total_time)
    per_minute = per_second * 60.0
    per_hour = per_minute * 60.0
    per_day = per_hour * 24.0

    per_day_str = format_float(per_day)
    per_hour_str = format_float(per_hour)
    per_minute_str = format_float(per_minute)
    per_second_str = format_float(per_second)
    width = len(per_day_str)

    print_bullet(f"{name} collected", separate_with_commas(n_completed), out)
    print_bullet_indent(f"{name} per second", f"{per_second_str:>{width - 3}}", 4, out)
    print_bullet_indent(f"{name} per minute", f"{per_minute_str:>{width - 3}}", 4, out)
    print_bullet_indent(f"{name} per hour", f"{per_hour_str:>{max(5, width - 1)}}", 4, out)
    print_bullet_indent(f"{name} per day", f"{per_day_str:>6}", 4, out)


def print_chunk_speed(
    name: str,
    total_time: float,
    chunk_sizes: Iterable[int | None],
    n_datatypes: int,
    file: IO[str] | None = None,
) -> None:
    """Print collection speed for one dimension from the sizes of its completed chunks."""
    total = sum(size for size in chunk_sizes if size is not None)
    print_unit_speeds(name, total // n_datatypes, total_time, file)


def print_error_summary(
    errors: Iterable[tuple[Any, BaseException]], file: IO[str] | None = None
) -> None:
    """Print the distinct errors of a run with how often each occurred; nothing if none."""
    out = _resolve(file)
    errors = list(errors)
    if not errors:
        return
    print_header_error("error summary", out)
    print(f"(errors in {len(errors)} chunks)", file=out)
    counts = Counter(str(error) for _partition, error in errors)
    for message, count in list(counts.items())[:10]:
        print(f"- {message} ({count}x)", file=out)
    if len(counts) > 10:
        print("...", file=out)
    print(file=out)
    print(file=out)


def _stamp(moment: datetime) -> str:
    local = moment.astimezone() if moment.tzinfo is not None else moment
    return f"{local:%Y-%m-%d %H:%M:%S}.{local.microsecond // 1000:03d}"


def _share_line(count: int, n_chunks: int, n_chunks_str: str, width: int) -> str:
    return (
        f"{separate_with_commas(count):>{width}} / {n_chunks_str} "
        f"({format_float(float(100 * count // n_chunks))}%)"
    )


def print_cryo_conclusion(
    summary: FreezeSummary,
    n_chunks: int,
    n_datatypes: int,
    t_start: datetime,
    t_end: datetime | None = None,
    completed_by_dimension: Mapping[str, Iterable[int | None]] | None = None,
    file: IO[str] | None = None,
) -> None:
    """Print start and end times, errors, chunk outcomes and collection speeds.

    ``completed_by_dimension`` maps a dimension's plural name to the sizes of
    its completed chunks; ``t_end`` defaults to now.
    """
    if n_chunks <= 0:
        raise ValueError("n_chunks must be positive")
    out = _resolve(file)
    if t_end is None:
        t_end = datetime.now(t_start.tzinfo)

    print(f"started at {_stamp(t_start)}", file=out)
    print(f"   done at {_stamp(t_end)}", file=out)
    print(file=out)
    print(file=out)

    print_error_summary(summary.errored, out)

    duration = t_end - t_start
    if duration < timedelta(0):
        print("error computing system time, aborting", file=out)
        return
    seconds = duration.days * 86400 + duration.seconds
    millis = duration.microseconds // 1000
    total_time = duration.total_seconds()

    print_header("collection summary", out)
    print_bullet("total duration", f"{seconds}.{millis:03d} seconds", out)
    n_chunks_str = separate_with_commas(n_chunks)
    width = len(n_chunks_str)
    print_bullet("total chunks", n_chunks_str, out)
    print_bullet_indent(
        "chunks errored",
        "  " + _share_line(len(summary.errored), n_chunks, n_chunks_str, width),
        4,
        out,
    )
    print_bullet_indent(
        "chunks skipped",
        "  " + _share_line(len(summary.skipped), n_chunks, n_chunks_str, width),
        4,
        out,
    )
    print_bullet_indent(
        "chunks collected",
        _share_line(len(summary.completed), n_chunks, n_chunks_str, width),
        4,
        out,
    )

    for name, sizes in (completed_by_dimension or {}).items():
        print_chunk_speed(name, total_time, sizes, n_datatypes, out)