# src/taskpulse/ringbuffer.py
"""Rolling series for chart channels.

Each channel keeps the last `capacity` samples (60 by default, one minute at
1Hz). Values are stored as given; clamping and formatting belong to the
rendering layer.
"""

from collections import deque
from collections.abc import Iterator


class RollingSeries:
    """Fixed-capacity FIFO of scalar samples for one channel."""

    def __init__(self, capacity: int = 60) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._values: deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        """Return number of samples held."""
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    @property
    def capacity(self) -> int:
        """Return maximum number of samples the series can hold."""
        return self._values.maxlen or 0

    @property
    def is_empty(self) -> bool:
        """Return True if no samples have been appended."""
        return len(self._values) == 0

    @property
    def latest(self) -> float | None:
        """Most recent sample, or None when empty."""
        return self._values[-1] if self._values else None

    def append(self, value: float) -> None:
        """Add a sample, evicting the oldest once at capacity."""
        self._values.append(value)

    def values(self) -> list[float]:
        """Samples in chronological order, oldest first (returns a copy)."""
        return list(self._values)

    def clear(self) -> None:
        """Empty the series."""
        self._values.clear()


class SeriesRegistry:
    """One RollingSeries per channel key, created on first append.

    Keys are open-ended (per-core and per-disk channels are discovered from
    snapshot contents), so this is a mapping rather than a fixed record.
    """

    def __init__(self, capacity: int = 60) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._series: dict[str, RollingSeries] = {}

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, key: object) -> bool:
        return key in self._series

    @property
    def capacity(self) -> int:
        """Capacity given to every series this registry creates."""
        return self._capacity

    def append(self, key: str, value: float) -> None:
        """Append a sample to a channel, creating the channel if unseen."""
        series = self._series.get(key)
        if series is None:
            series = RollingSeries(self._capacity)
            self._series[key] = series
        series.append(value)

    def get(self, key: str) -> list[float]:
        """Current buffer for a channel, oldest first. Unknown keys read as empty."""
        series = self._series.get(key)
        return series.values() if series is not None else []

    def latest(self, key: str) -> float | None:
        """Most recent sample for a channel, or None."""
        series = self._series.get(key)
        return series.latest if series is not None else None

    def keys(self) -> list[str]:
        """Channel keys in discovery order."""
        return list(self._series)

    def snapshot(self) -> dict[str, list[float]]:
        """Copy of every channel's buffer, keyed by channel."""
        return {key: series.values() for key, series in self._series.items()}

    def clear(self) -> None:
        """Drop every channel."""
        self._series.clear()
