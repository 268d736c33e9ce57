"""Process and system data source backed by psutil."""

import asyncio
import time
from dataclasses import dataclass

import psutil
import structlog

from taskpulse.models import DiskInfo, Entity, Snapshot, SourceError, SystemStats

log = structlog.get_logger()

# io_counters is missing on macOS and terminal on Windows
_PROCESS_ATTRS = [
    name
    for name in (
        "pid",
        "name",
        "cpu_percent",
        "memory_info",
        "io_counters",
        "terminal",
        "username",
    )
    if hasattr(psutil.Process, name)
]


@dataclass
class _PrevCounters:
    """Cumulative counters from the previous collection, for rate calculation."""

    timestamp: float  # time.monotonic() when sampled
    net_bytes: int  # Total bytes sent + received, all interfaces
    disk_bytes: int  # Total bytes read + written, all disks


class PsutilSource:
    """Collects a Snapshot of every visible process plus system totals.

    Keeps per-pid I/O counters between polls to turn cumulative byte counts
    into rates. psutil reports 0% CPU for a process the first time it sees
    it, so the first snapshot reads low.

    A process counts as an app when it is attached to a terminal; daemons
    and services have none.
    """

    def __init__(self) -> None:
        self._prev: _PrevCounters | None = None
        self._prev_io: dict[int, int] = {}  # pid -> read + written bytes

    async def poll(self) -> Snapshot:
        """Run collection in executor (psutil calls are blocking)."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._collect_sync)

    def _collect_sync(self) -> Snapshot:
        """Synchronous collection - runs in executor."""
        try:
            return self._collect()
        except (psutil.Error, OSError) as e:
            raise SourceError(f"process collection failed: {e}") from e

    def _collect(self) -> Snapshot:
        now = time.monotonic()
        wall_delta = now - self._prev.timestamp if self._prev else 0.0

        cores = psutil.cpu_count(logical=True) or 1
        entities = self._collect_processes(cores, wall_delta)
        stats = self._collect_stats(now, wall_delta, len(entities))
        return Snapshot(
            entities=tuple(entities),
            stats=stats,
            taken_at=time.time(),
        )

    def _collect_processes(self, cores: int, wall_delta: float) -> list[Entity]:
        entities = []
        current_io: dict[int, int] = {}

        for proc in psutil.process_iter(_PROCESS_ATTRS):
            # process_iter fills denied attributes with None instead of raising
            info = proc.info
            pid = info["pid"]
            io = info.get("io_counters")
            disk_rate = 0.0
            if io is not None:
                io_total = io.read_bytes + io.write_bytes
                current_io[pid] = io_total
                prev_total = self._prev_io.get(pid)
                if prev_total is not None and wall_delta > 0 and io_total >= prev_total:
                    disk_rate = (io_total - prev_total) / wall_delta

            memory = info.get("memory_info")
            entities.append(
                Entity(
                    pid=pid,
                    name=info.get("name") or "",
                    cpu_usage=(info.get("cpu_percent") or 0.0) / cores,
                    memory=memory.rss if memory else 0,
                    disk_usage=disk_rate,
                    network_usage=0.0,  # psutil has no per-process network counters
                    gpu_usage=0.0,
                    is_app=info.get("terminal") is not None,
                    icon=None,
                    username=info.get("username"),
                )
            )

        # Forget pids that exited so recycled pids start fresh
        self._prev_io = current_io
        return entities

    def _collect_stats(self, now: float, wall_delta: float, process_count: int) -> SystemStats:
        per_core = tuple(psutil.cpu_percent(percpu=True))
        total_cpu = sum(per_core) / len(per_core) if per_core else 0.0
        memory = psutil.virtual_memory()

        net = psutil.net_io_counters()
        net_bytes = (net.bytes_sent + net.bytes_recv) if net else 0
        disk = psutil.disk_io_counters()
        disk_bytes = (disk.read_bytes + disk.write_bytes) if disk else 0

        network_rate = 0.0
        disk_rate = 0.0
        if self._prev is not None and wall_delta > 0:
            network_rate = max(0, net_bytes - self._prev.net_bytes) * 8 / wall_delta
            disk_rate = max(0, disk_bytes - self._prev.disk_bytes) / wall_delta
        self._prev = _PrevCounters(timestamp=now, net_bytes=net_bytes, disk_bytes=disk_bytes)

        return SystemStats(
            total_memory=memory.total,
            used_memory=memory.total - memory.available,
            total_cpu_usage=total_cpu,
            cpu_usage_per_core=per_core,
            process_count=process_count,
            uptime=max(0.0, time.time() - psutil.boot_time()),
            disk_total_usage=disk_rate,
            network_total_usage=network_rate,
            gpu_total_usage=0.0,
            disks=tuple(self._collect_disks()),
            logical_processors=len(per_core),
        )

    def _collect_disks(self) -> list[DiskInfo]:
        disks = []
        for partition in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError as e:
                # Unreadable mounts (removable media, permissions) are skipped
                log.debug("disk_usage_failed", mount=partition.mountpoint, error=str(e))
                continue
            disks.append(
                DiskInfo(
                    name=partition.device,
                    mount_point=partition.mountpoint,
                    total_space=usage.total,
                    available_space=usage.free,
                    usage_percent=usage.percent,
                    disk_type=partition.fstype or "Unknown",
                )
            )
        return disks
