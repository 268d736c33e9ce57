"""Snapshot data shapes shared by the data source, the engine and the views.

Entities are immutable per snapshot. Groups are derived and rebuilt on every
poll; they never carry UI state (expand/collapse, selection).
"""

import math
import time
from dataclasses import dataclass, field
from typing import Any

# Channel attribute names on Entity, in display order
ENTITY_CHANNELS = ("cpu_usage", "memory", "disk_usage", "network_usage", "gpu_usage")


class TaskpulseError(Exception):
    """Base class for taskpulse errors."""


class SourceError(TaskpulseError):
    """A data source failed to produce a snapshot."""


def _number(value: Any, default: float = 0.0) -> float:
    """Coerce a raw field to float, treating absent/non-numeric values as default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _integer(value: Any, default: int = 0) -> int:
    """Coerce a raw field to int, treating absent/non-numeric values as default."""
    number = _number(value, float(default))
    if math.isnan(number) or math.isinf(number):
        return default
    return int(number)


@dataclass(frozen=True)
class Entity:
    """One process (or user-process member) within a single snapshot.

    The pid is unique within a snapshot only. Aggregation keys on name.
    """

    pid: int
    name: str
    cpu_usage: float = 0.0  # Percent of total CPU
    memory: int = 0  # Bytes
    disk_usage: float = 0.0  # Bytes per second
    network_usage: float = 0.0  # Bits per second
    gpu_usage: float = 0.0  # Percent
    is_app: bool = False  # Foreground app vs background process
    icon: str | None = None
    username: str | None = None

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "pid": self.pid,
            "name": self.name,
            "cpu_usage": self.cpu_usage,
            "memory": self.memory,
            "disk_usage": self.disk_usage,
            "network_usage": self.network_usage,
            "gpu_usage": self.gpu_usage,
            "is_app": self.is_app,
            "icon": self.icon,
            "username": self.username,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Entity":
        """Deserialize permissively: missing or non-numeric metrics become zero."""
        name = data.get("name")
        return cls(
            pid=_integer(data.get("pid")),
            name="" if name is None else str(name),
            cpu_usage=_number(data.get("cpu_usage")),
            memory=_integer(data.get("memory")),
            disk_usage=_number(data.get("disk_usage")),
            network_usage=_number(data.get("network_usage")),
            gpu_usage=_number(data.get("gpu_usage")),
            is_app=bool(data.get("is_app", False)),
            icon=data.get("icon") or None,
            username=data.get("username") or None,
        )


@dataclass
class Group:
    """Name-keyed aggregate of same-named entities within one snapshot."""

    name: str
    members: list[Entity] = field(default_factory=list)
    total_cpu: float = 0.0
    total_memory: float = 0.0
    total_disk: float = 0.0
    total_network: float = 0.0
    total_gpu: float = 0.0
    is_app: bool = False
    icon: str | None = None

    # Sort key / channel name -> total attribute
    TOTALS = {
        "cpu_usage": "total_cpu",
        "memory": "total_memory",
        "disk_usage": "total_disk",
        "network_usage": "total_network",
        "gpu_usage": "total_gpu",
    }

    def total(self, channel: str) -> float:
        """Return the summed value for an entity channel name."""
        try:
            return getattr(self, self.TOTALS[channel])
        except KeyError:
            raise ValueError(f"Unknown channel: {channel!r}") from None

    @property
    def pids(self) -> list[int]:
        """Member pids in discovery order."""
        return [m.pid for m in self.members]

    @property
    def primary(self) -> Entity:
        """First discovered member, used as the group's selection target."""
        return self.members[0]


@dataclass(frozen=True)
class DiskInfo:
    """One mounted volume."""

    name: str
    mount_point: str
    total_space: int = 0
    available_space: int = 0
    usage_percent: float = 0.0
    disk_type: str = "Unknown"

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "name": self.name,
            "mount_point": self.mount_point,
            "total_space": self.total_space,
            "available_space": self.available_space,
            "usage_percent": self.usage_percent,
            "disk_type": self.disk_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DiskInfo":
        """Deserialize permissively."""
        return cls(
            name=str(data.get("name") or ""),
            mount_point=str(data.get("mount_point") or ""),
            total_space=_integer(data.get("total_space")),
            available_space=_integer(data.get("available_space")),
            usage_percent=_number(data.get("usage_percent")),
            disk_type=str(data.get("disk_type") or "Unknown"),
        )


@dataclass(frozen=True)
class SystemStats:
    """System-wide scalar measurements from one snapshot."""

    total_memory: int = 0
    used_memory: int = 0
    total_cpu_usage: float = 0.0
    cpu_usage_per_core: tuple[float, ...] = ()
    process_count: int = 0
    uptime: float = 0.0
    disk_total_usage: float = 0.0  # Bytes per second
    network_total_usage: float = 0.0  # Bits per second
    gpu_total_usage: float = 0.0
    disks: tuple[DiskInfo, ...] = ()
    logical_processors: int = 0

    @property
    def memory_percent(self) -> float:
        """Used memory as a percentage of total (0 when total is unknown)."""
        if self.total_memory <= 0:
            return 0.0
        return self.used_memory / self.total_memory * 100

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "total_memory": self.total_memory,
            "used_memory": self.used_memory,
            "total_cpu_usage": self.total_cpu_usage,
            "cpu_usage_per_core": list(self.cpu_usage_per_core),
            "process_count": self.process_count,
            "uptime": self.uptime,
            "disk_total_usage": self.disk_total_usage,
            "network_total_usage": self.network_total_usage,
            "gpu_total_usage": self.gpu_total_usage,
            "disks": [d.to_dict() for d in self.disks],
            "logical_processors": self.logical_processors,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SystemStats":
        """Deserialize permissively: missing or non-numeric fields become zero."""
        per_core = tuple(_number(v) for v in data.get("cpu_usage_per_core") or ())
        return cls(
            total_memory=_integer(data.get("total_memory")),
            used_memory=_integer(data.get("used_memory")),
            total_cpu_usage=_number(data.get("total_cpu_usage")),
            cpu_usage_per_core=per_core,
            process_count=_integer(data.get("process_count")),
            uptime=_number(data.get("uptime")),
            disk_total_usage=_number(data.get("disk_total_usage")),
            network_total_usage=_number(data.get("network_total_usage")),
            gpu_total_usage=_number(data.get("gpu_total_usage")),
            disks=tuple(DiskInfo.from_dict(d) for d in data.get("disks") or ()),
            logical_processors=_integer(data.get("logical_processors"), len(per_core)),
        )


@dataclass(frozen=True)
class Snapshot:
    """One complete set of measurements returned by a single poll()."""

    entities: tuple[Entity, ...] = ()
    stats: SystemStats = field(default_factory=SystemStats)
    taken_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "entities": [e.to_dict() for e in self.entities],
            "stats": self.stats.to_dict(),
            "taken_at": self.taken_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        """Deserialize permissively."""
        return cls(
            entities=tuple(Entity.from_dict(e) for e in data.get("entities") or ()),
            stats=SystemStats.from_dict(data.get("stats") or {}),
            taken_at=_number(data.get("taken_at"), time.time()),
        )
