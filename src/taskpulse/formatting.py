"""Formatting utilities for consistent output across CLI and TUI."""

import math

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def _finite(value: float) -> float:
    """Treat NaN and infinities as zero for display."""
    return value if math.isfinite(value) else 0.0


def format_bytes(value: float) -> str:
    """Format a byte count in megabytes ("12.3 MB")."""
    return f"{_finite(value) / (1024 * 1024):.1f} MB"


def format_size(value: float) -> str:
    """Format a byte count with the largest fitting binary unit ("1.5 GB").

    Args:
        value: Byte count; zero, negative and non-finite values render as "0 B"

    Returns:
        Value rounded to one decimal place with trailing ".0" dropped
    """
    value = _finite(value)
    if value <= 0:
        return "0 B"
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 1):g} {_SIZE_UNITS[index]}"


def format_disk_rate(value: float) -> str:
    """Format bytes per second as MB/s."""
    return f"{_finite(value) / (1024 * 1024):.1f} MB/s"


def format_network(bits_per_second: float) -> str:
    """Format bits per second as Mbps."""
    return f"{_finite(bits_per_second) / 1_000_000:.1f} Mbps"


def format_percent(value: float, digits: int = 1) -> str:
    """Format a percentage ("12.5 %")."""
    return f"{_finite(value):.{digits}f} %"


def format_cpu_time(milliseconds: float) -> str:
    """Format accumulated CPU time as HH:MM:SS (hours are not wrapped)."""
    total = max(0, int(_finite(milliseconds) // 1000))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_uptime(seconds: float) -> str:
    """Format uptime as D:HH:MM:SS."""
    total = max(0, int(_finite(seconds)))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{days}:{hours:02d}:{minutes:02d}:{secs:02d}"
