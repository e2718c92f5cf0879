"""Tests for the summary and listing formatters."""

from datetime import datetime

import pytest

from gvm_cli.utils.formatting import format_duration, format_size, format_timestamp


@pytest.mark.parametrize(
    "num_bytes, expected",
    [(0, "0 B"), (512, "512.0 B"), (68123456, "65.0 MB"), (5 * 1024**4, "5120.0 GB")],
)
def test_format_size(num_bytes, expected):
    assert format_size(num_bytes) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [(0.4, "0s"), (72.4, "1m 12s"), (3600, "1h"), (3725, "1h 2m 5s")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_format_timestamp():
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04"
