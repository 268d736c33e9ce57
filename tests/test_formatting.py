"""Tests for formatting utilities."""

import math

import pytest

from taskpulse.formatting import (
    format_bytes,
    format_cpu_time,
    format_disk_rate,
    format_network,
    format_percent,
    format_size,
    format_uptime,
)


class TestFormatSize:
    """Tests for format_size (largest fitting unit)."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (5 * 1024**3, "5 GB"),
            (3 * 1024**5, "3072 TB"),
        ],
    )
    def test_units(self, value: float, expected: str) -> None:
        """Picks the largest unit and drops a trailing .0."""
        assert format_size(value) == expected

    def test_negative_and_nan(self) -> None:
        """Invalid sizes render as zero."""
        assert format_size(-10) == "0 B"
        assert format_size(math.nan) == "0 B"


class TestRates:
    """Tests for per-second and memory formatting."""

    def test_bytes_in_megabytes(self) -> None:
        """Memory is shown in MB."""
        assert format_bytes(150 * 1024 * 1024) == "150.0 MB"

    def test_disk_rate(self) -> None:
        """Disk throughput is MB/s."""
        assert format_disk_rate(2.5 * 1024 * 1024) == "2.5 MB/s"

    def test_network_bits(self) -> None:
        """Network throughput is Mbps from bits per second."""
        assert format_network(8_000_000) == "8.0 Mbps"

    def test_infinite_rate_is_zero(self) -> None:
        """Infinities never reach the screen."""
        assert format_network(math.inf) == "0.0 Mbps"


def test_format_percent() -> None:
    """Percent keeps the requested precision."""
    assert format_percent(12.345) == "12.3 %"
    assert format_percent(50, digits=0) == "50 %"
    assert format_percent(math.nan) == "0.0 %"


def test_format_cpu_time() -> None:
    """CPU time renders as HH:MM:SS without wrapping hours."""
    assert format_cpu_time(0) == "00:00:00"
    assert format_cpu_time(61_500) == "00:01:01"
    assert format_cpu_time(100 * 3600 * 1000) == "100:00:00"


def test_format_uptime() -> None:
    """Uptime renders as D:HH:MM:SS."""
    assert format_uptime(0) == "0:00:00:00"
    assert format_uptime(90_061) == "1:01:01:01"
