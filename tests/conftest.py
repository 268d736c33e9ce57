"""Shared test fixtures for taskpulse."""

import asyncio
import time
from collections.abc import Iterable
from pathlib import Path

import pytest

from taskpulse.models import DiskInfo, Entity, Snapshot, SystemStats


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temp dir so config and log paths never touch the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


def make_entity(
    name: str = "proc",
    pid: int = 100,
    cpu: float = 0.0,
    memory: int = 0,
    disk: float = 0.0,
    network: float = 0.0,
    gpu: float = 0.0,
    is_app: bool = False,
    icon: str | None = None,
    username: str | None = None,
) -> Entity:
    """Create an Entity for testing with short keyword names."""
    return Entity(
        pid=pid,
        name=name,
        cpu_usage=cpu,
        memory=memory,
        disk_usage=disk,
        network_usage=network,
        gpu_usage=gpu,
        is_app=is_app,
        icon=icon,
        username=username,
    )


def make_stats(
    cpu: float = 10.0,
    per_core: Iterable[float] = (10.0, 10.0),
    total_memory: int = 8 * 1024**3,
    used_memory: int = 2 * 1024**3,
    network: float = 0.0,
    disk: float = 0.0,
    gpu: float = 0.0,
    disks: Iterable[DiskInfo] = (),
) -> SystemStats:
    """Create SystemStats for testing."""
    per_core = tuple(per_core)
    return SystemStats(
        total_memory=total_memory,
        used_memory=used_memory,
        total_cpu_usage=cpu,
        cpu_usage_per_core=per_core,
        process_count=0,
        uptime=3600.0,
        disk_total_usage=disk,
        network_total_usage=network,
        gpu_total_usage=gpu,
        disks=tuple(disks),
        logical_processors=len(per_core),
    )


def make_snapshot(*entities: Entity, stats: SystemStats | None = None) -> Snapshot:
    """Create a Snapshot from entities."""
    return Snapshot(entities=tuple(entities), stats=stats or make_stats(), taken_at=time.time())


class FakeSource:
    """Data source returning scripted results in order.

    Each item is a Snapshot to return or an Exception to raise. The last
    item repeats once the script runs out. When `gate` is set, every poll
    waits on it first, which lets tests hold a poll in flight.
    """

    def __init__(self, *results: Snapshot | Exception, gate: asyncio.Event | None = None):
        self.results = list(results) or [make_snapshot()]
        self.gate = gate
        self.calls = 0

    async def poll(self) -> Snapshot:
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def chrome_notes_snapshot() -> Snapshot:
    """Two chrome processes and one notes app."""
    return make_snapshot(
        make_entity("chrome", 1, cpu=10, memory=100, is_app=True),
        make_entity("chrome", 2, cpu=5, memory=50, is_app=True),
        make_entity("notes", 3, cpu=1, memory=20, is_app=True),
    )
