"""Cumulative per-application resource usage across polls."""

from collections.abc import Iterable
from dataclasses import dataclass

from taskpulse.models import Group


@dataclass
class AppHistoryEntry:
    """Accumulated usage for one application name."""

    name: str
    cpu_time_ms: float = 0.0
    network_bytes: float = 0.0
    disk_bytes: float = 0.0
    icon: str | None = None


class AppHistory:
    """Accumulates CPU time, network and disk traffic per group name.

    Group channels are rates, so every channel is integrated over the time
    since the previous poll: CPU time grows by cpu_percent * elapsed_ms / 100,
    network (bits/s) and disk (bytes/s) by the bytes moved in that window.
    """

    def __init__(self) -> None:
        self._entries: dict[str, AppHistoryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, groups: Iterable[Group], elapsed_ms: float) -> None:
        """Fold one poll's groups into the history."""
        for group in groups:
            entry = self._entries.get(group.name)
            if entry is None:
                entry = AppHistoryEntry(name=group.name)
                self._entries[group.name] = entry
            entry.cpu_time_ms += group.total_cpu * elapsed_ms / 100
            seconds = elapsed_ms / 1000
            entry.network_bytes += group.total_network / 8 * seconds
            entry.disk_bytes += group.total_disk * seconds
            if entry.icon is None and group.icon:
                entry.icon = group.icon

    def get(self, name: str) -> AppHistoryEntry | None:
        """Entry for an application name, if any."""
        return self._entries.get(name)

    def entries(self) -> list[AppHistoryEntry]:
        """All entries, most CPU time first."""
        return sorted(self._entries.values(), key=lambda e: e.cpu_time_ms, reverse=True)

    def clear(self) -> None:
        """Delete all usage history."""
        self._entries.clear()
