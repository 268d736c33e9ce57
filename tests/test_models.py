"""Tests for snapshot data shapes."""

import math

import pytest

from taskpulse.models import DiskInfo, Entity, Group, Snapshot, SystemStats
from tests.conftest import make_entity, make_snapshot, make_stats


class TestEntityFromDict:
    """Tests for permissive Entity deserialization."""

    def test_missing_metrics_become_zero(self) -> None:
        """Absent metric fields read as zero."""
        entity = Entity.from_dict({"pid": 7, "name": "sh"})
        assert entity.cpu_usage == 0.0
        assert entity.memory == 0
        assert entity.disk_usage == 0.0
        assert entity.network_usage == 0.0
        assert entity.gpu_usage == 0.0
        assert entity.is_app is False

    def test_non_numeric_metrics_become_zero(self) -> None:
        """Garbage metric values read as zero instead of raising."""
        entity = Entity.from_dict(
            {"pid": "x", "name": "sh", "cpu_usage": "lots", "memory": None, "gpu_usage": True}
        )
        assert entity.pid == 0
        assert entity.cpu_usage == 0.0
        assert entity.memory == 0
        assert entity.gpu_usage == 0.0

    def test_numeric_strings_are_parsed(self) -> None:
        """Numbers encoded as strings are accepted."""
        entity = Entity.from_dict({"pid": "42", "name": "sh", "cpu_usage": "12.5"})
        assert entity.pid == 42
        assert entity.cpu_usage == 12.5

    def test_missing_name_is_empty_string(self) -> None:
        """A nameless record gets the empty name."""
        assert Entity.from_dict({"pid": 1}).name == ""

    def test_round_trip(self) -> None:
        """to_dict output deserializes to an equal entity."""
        entity = make_entity("chrome", 5, cpu=1.5, memory=10, is_app=True, icon="x", username="al")
        assert Entity.from_dict(entity.to_dict()) == entity


class TestGroup:
    """Tests for Group accessors."""

    def test_total_by_channel(self) -> None:
        """total() reads the summed attribute for a sort key."""
        group = Group(name="a", members=[make_entity("a")], total_cpu=3.0, total_memory=9)
        assert group.total("cpu_usage") == 3.0
        assert group.total("memory") == 9

    def test_total_unknown_channel_raises(self) -> None:
        """Unknown channels are rejected."""
        group = Group(name="a", members=[make_entity("a")])
        with pytest.raises(ValueError, match="Unknown channel"):
            group.total("name")

    def test_pids_and_primary(self) -> None:
        """pids keep discovery order and primary is the first member."""
        members = [make_entity("a", 3), make_entity("a", 1)]
        group = Group(name="a", members=members)
        assert group.pids == [3, 1]
        assert group.primary.pid == 3


class TestSystemStats:
    """Tests for SystemStats."""

    def test_memory_percent(self) -> None:
        """Memory percent is used over total."""
        stats = make_stats(total_memory=200, used_memory=50)
        assert stats.memory_percent == 25.0

    def test_memory_percent_zero_total(self) -> None:
        """Unknown total memory reads as 0%, not a division error."""
        assert SystemStats().memory_percent == 0.0

    def test_from_dict_defaults_logical_processors_to_core_count(self) -> None:
        """logical_processors falls back to the per-core list length."""
        stats = SystemStats.from_dict({"cpu_usage_per_core": [1, 2, 3]})
        assert stats.cpu_usage_per_core == (1.0, 2.0, 3.0)
        assert stats.logical_processors == 3

    def test_from_dict_ignores_nan_integers(self) -> None:
        """NaN in an integer field falls back to zero."""
        stats = SystemStats.from_dict({"total_memory": math.nan})
        assert stats.total_memory == 0


def test_snapshot_round_trip() -> None:
    """A snapshot with disks survives to_dict/from_dict."""
    disk = DiskInfo(name="sda1", mount_point="/", total_space=100, available_space=40)
    snapshot = make_snapshot(make_entity("a", 1), stats=make_stats(disks=[disk]))
    restored = Snapshot.from_dict(snapshot.to_dict())
    assert restored == snapshot


def test_snapshot_from_empty_dict() -> None:
    """An empty payload yields an empty snapshot."""
    snapshot = Snapshot.from_dict({})
    assert snapshot.entities == ()
    assert snapshot.stats == SystemStats()
