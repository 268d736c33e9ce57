"""Channel keys and the snapshot -> series feed.

Every key written to or read from a SeriesRegistry is built here, so the
writer (poll cycle) and the readers (charts, CLI) cannot drift apart.
"""

import re

import structlog

from taskpulse.models import SystemStats
from taskpulse.ringbuffer import SeriesRegistry

log = structlog.get_logger()

CPU = "cpu"
MEMORY = "memory"
NETWORK = "network"
GPU = "gpu"
DISK_TOTAL = "disk-total"

FIXED_CHANNELS = (CPU, MEMORY, NETWORK, GPU, DISK_TOTAL)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def sanitize_mount_point(mount_point: str) -> str:
    """Strip every non-alphanumeric character ("C:\\" -> "C", "/home" -> "home")."""
    return _NON_ALNUM.sub("", mount_point)


def disk_key(mount_point: str) -> str:
    """Channel key for a disk's usage percentage."""
    return f"disk-{sanitize_mount_point(mount_point)}"


def core_key(index: int) -> str:
    """Channel key for one logical processor."""
    return f"core-{index}"


def is_known_channel(key: str) -> bool:
    """True for fixed channels and well-formed core/disk keys."""
    if key in FIXED_CHANNELS:
        return True
    if key.startswith("core-"):
        return key[5:].isdigit()
    if key.startswith("disk-"):
        token = key[5:]
        return bool(token) and sanitize_mount_point(token) == token
    return False


class CoreLayout:
    """Remembers the logical-processor count seen first in a session.

    Cores do not appear or disappear while running; a snapshot reporting a
    different count is logged and truncated/padded to the first layout.
    """

    def __init__(self) -> None:
        self._count: int | None = None

    @property
    def count(self) -> int | None:
        """Logical-processor count, or None before the first snapshot."""
        return self._count

    def observe(self, per_core: tuple[float, ...] | list[float]) -> list[float]:
        """Return per-core values fitted to the session's core count."""
        values = list(per_core)
        if self._count is None:
            self._count = len(values)
            return values
        if len(values) != self._count:
            log.warning("core_count_changed", expected=self._count, reported=len(values))
            values = values[: self._count] + [0.0] * (self._count - len(values))
        return values


def record_stats(
    registry: SeriesRegistry,
    stats: SystemStats,
    cores: CoreLayout | None = None,
) -> None:
    """Append every scalar channel of a snapshot's stats to the registry."""
    registry.append(CPU, stats.total_cpu_usage)
    registry.append(MEMORY, stats.memory_percent)
    registry.append(NETWORK, stats.network_total_usage)
    registry.append(GPU, stats.gpu_total_usage)
    registry.append(DISK_TOTAL, stats.disk_total_usage)

    per_core = cores.observe(stats.cpu_usage_per_core) if cores else stats.cpu_usage_per_core
    for index, usage in enumerate(per_core):
        registry.append(core_key(index), usage)

    for disk in stats.disks:
        registry.append(disk_key(disk.mount_point), disk.usage_percent)
