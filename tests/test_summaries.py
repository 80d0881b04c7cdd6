import io
from datetime import datetime, timedelta

import pytest

from frostrpc.errors import CollectError, err
from frostrpc.formatting import separate_with_commas
from frostrpc.summaries import (
    FreezeSummary,
    print_chunk_speed,
    print_cryo_conclusion,
    print_error_summary,
    print_unit_speeds,
)

START = datetime(2024, 1, 1, 12, 0, 0)


def _values(text):
    result = {}
    for line in text.splitlines():
        key, _, value = line.strip().removeprefix("- ").partition(": ")
        result[key] = value
    return result


def test_as_counts():
    summary = FreezeSummary(completed=["a", "b"], skipped=["c"], errored=[(None, err("x"))])
    assert summary.as_counts() == {"n_completed": 2, "n_skipped": 1, "n_errored": 1}


def test_unit_speeds_rates_are_consistent():
    out = io.StringIO()
    print_unit_speeds("blocks", 3600, 3600.0, file=out)
    values = _values(out.getvalue())
    assert values["blocks collected"] == separate_with_commas(3600)
    per_second = float(values["blocks per second"].replace(",", ""))
    per_minute = float(values["blocks per minute"].replace(",", ""))
    per_hour = float(values["blocks per hour"].replace(",", ""))
    per_day = float(values["blocks per day"].replace(",", ""))
    assert per_minute == per_second * 60
    assert per_hour == per_minute * 60
    assert per_day == per_hour * 24


def test_unit_speeds_line_shape():
    out = io.StringIO()
    print_unit_speeds("txs", 5, 2.0, file=out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 5
    assert lines[0].startswith("- txs collected: ")
    assert all(line.startswith("    - txs per ") for line in lines[1:])
    day_value = lines[4].split(": ", 1)[1]
    assert len(day_value) >= 6


def test_chunk_speed_sums_sizes_and_divides_by_datatypes():
    chunk_out = io.StringIO()
    print_chunk_speed("blocks", 10.0, [10, None, 20], 2, file=chunk_out)
    unit_out = io.StringIO()
    print_unit_speeds("blocks", 15, 10.0, file=unit_out)
    assert chunk_out.getvalue() == unit_out.getvalue()


def test_error_summary_empty_prints_nothing():
    out = io.StringIO()
    print_error_summary([], file=out)
    assert out.getvalue() == ""


def test_error_summary_counts_messages():
    out = io.StringIO()
    errors = [(None, CollectError("a")), ("p", CollectError("a")), (None, err("b"))]
    print_error_summary(errors, file=out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "error summary"
    assert f"(errors in {len(errors)} chunks)" in lines
    assert "- a (2x)" in lines
    assert "- b (1x)" in lines
    assert "..." not in lines


def test_error_summary_truncates_after_ten():
    out = io.StringIO()
    errors = [(None, err(f"problem {index}")) for index in range(12)]
    print_error_summary(errors, file=out)
    lines = out.getvalue().splitlines()
    assert sum(1 for line in lines if line.startswith("- problem")) == 10
    assert "..." in lines


def test_conclusion_reports_duration_and_chunks():
    out = io.StringIO()
    summary = FreezeSummary(completed=["a", "b", "c", "d"])
    t_end = START + timedelta(seconds=2, milliseconds=500)
    print_cryo_conclusion(summary, 4, 1, START, t_end, {"blocks": [100, 100]}, file=out)
    text = out.getvalue()
    lines = text.splitlines()
    assert lines[0] == "started at 2024-01-01 12:00:00.000"
    values = _values(text)
    assert values["total duration"] == "2.500 seconds"
    assert values["total chunks"] == separate_with_commas(4)
    assert values["chunks collected"].endswith("(100.0%)")
    assert values["blocks collected"] == separate_with_commas(200)
    assert "error summary" not in lines


def test_conclusion_includes_errors():
    out = io.StringIO()
    summary = FreezeSummary(completed=["a"], errored=[(None, err("boom"))])
    print_cryo_conclusion(summary, 2, 1, START, START + timedelta(seconds=1), file=out)
    lines = out.getvalue().splitlines()
    assert "- boom (1x)" in lines
    assert lines.index("error summary") < lines.index("collection summary")


def test_conclusion_negative_duration_aborts():
    out = io.StringIO()
    print_cryo_conclusion(FreezeSummary(), 1, 1, START, START - timedelta(seconds=1), file=out)
    lines = out.getvalue().splitlines()
    assert lines[-1] == "error computing system time, aborting"
    assert "collection summary" not in lines


def test_conclusion_defaults_end_to_now():
    out = io.StringIO()
    start = datetime.now() - timedelta(seconds=1)
    print_cryo_conclusion(FreezeSummary(completed=["a"]), 1, 1, start, file=out)
    assert "collection summary" in out.getvalue().splitlines()


def test_conclusion_requires_chunks():
    with pytest.raises(ValueError):
        print_cryo_conclusion(FreezeSummary(), 0, 1, START, START, file=io.StringIO())