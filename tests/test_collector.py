"""Tests for the psutil data source."""

import os
from collections import namedtuple
from unittest.mock import patch

import psutil
import pytest

from taskpulse.collector import PsutilSource
from taskpulse.models import SourceError

_Partition = namedtuple("_Partition", "device mountpoint fstype opts")
_Usage = namedtuple("_Usage", "total used free percent")


def test_collect_sync_includes_current_process():
    """A real collection sees this test process."""
    snapshot = PsutilSource()._collect_sync()
    pids = {e.pid for e in snapshot.entities}
    assert os.getpid() in pids
    assert snapshot.stats.process_count == len(snapshot.entities)


def test_collect_sync_system_stats():
    """System stats are populated from psutil."""
    snapshot = PsutilSource()._collect_sync()
    stats = snapshot.stats
    assert stats.total_memory > 0
    assert 0 <= stats.memory_percent <= 100
    assert stats.logical_processors == len(stats.cpu_usage_per_core)
    assert stats.uptime > 0


def test_first_collection_has_zero_rates():
    """Rates need two samples; the first reads zero."""
    stats = PsutilSource()._collect_sync().stats
    assert stats.network_total_usage == 0.0
    assert stats.disk_total_usage == 0.0


def test_second_collection_rates_non_negative():
    """Later collections derive rates from counter deltas."""
    source = PsutilSource()
    source._collect_sync()
    snapshot = source._collect_sync()
    assert snapshot.stats.network_total_usage >= 0
    assert all(e.disk_usage >= 0 for e in snapshot.entities)


def test_psutil_error_becomes_source_error():
    """psutil failures surface as SourceError."""
    source = PsutilSource()
    with patch("taskpulse.collector.psutil.process_iter", side_effect=psutil.AccessDenied()):
        with pytest.raises(SourceError, match="process collection failed"):
            source._collect_sync()


def test_unreadable_disk_is_skipped():
    """A mount whose usage cannot be read is left out."""
    partitions = [
        _Partition("/dev/sda1", "/", "ext4", "rw"),
        _Partition("/dev/sr0", "/media/cdrom", "iso9660", "ro"),
    ]

    def usage(mountpoint):
        if mountpoint == "/media/cdrom":
            raise PermissionError("no medium")
        return _Usage(100, 40, 60, 40.0)

    with (
        patch("taskpulse.collector.psutil.disk_partitions", return_value=partitions),
        patch("taskpulse.collector.psutil.disk_usage", side_effect=usage),
    ):
        disks = PsutilSource()._collect_disks()

    assert [d.mount_point for d in disks] == ["/"]
    assert disks[0].usage_percent == 40.0
    assert disks[0].available_space == 60


@pytest.mark.asyncio
async def test_poll_runs_in_executor():
    """poll() returns a snapshot without blocking the loop."""
    snapshot = await PsutilSource().poll()
    assert snapshot.entities
