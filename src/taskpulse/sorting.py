"""Deterministic ordering of groups for display.

Python's sort is stable in both directions, so groups with equal keys keep
their discovery order. Totals change every poll, so order may change every
poll as well.
"""

import locale
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from taskpulse.models import Group


class SortKey(Enum):
    """Columns a group list can be sorted by."""

    NAME = "name"
    CPU = "cpu_usage"
    MEMORY = "memory"
    DISK = "disk_usage"
    NETWORK = "network_usage"
    GPU = "gpu_usage"

    @property
    def is_numeric(self) -> bool:
        """True for every summed channel."""
        return self is not SortKey.NAME


class SortDirection(Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        """Return the opposite direction."""
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


@dataclass(frozen=True)
class SortConfig:
    """Current sort key and direction for a group list."""

    key: SortKey = SortKey.NAME
    direction: SortDirection = SortDirection.ASC

    def toggle(self, key: SortKey) -> "SortConfig":
        """Return the config after clicking a column header.

        A new column starts descending; clicking the descending column again
        flips it to ascending; clicking an ascending column goes back to
        descending.
        """
        if key is self.key:
            return SortConfig(key, self.direction.flipped())
        return SortConfig(key, SortDirection.DESC)

    @classmethod
    def parse(cls, key: str, direction: str) -> "SortConfig":
        """Build from config strings, raising ValueError for unknown values."""
        try:
            sort_key = SortKey(key)
        except ValueError:
            valid = [k.value for k in SortKey]
            raise ValueError(f"Invalid sort key: {key!r}. Must be one of {valid}") from None
        try:
            sort_direction = SortDirection(direction)
        except ValueError:
            raise ValueError(
                f"Invalid sort direction: {direction!r}. Must be 'asc' or 'desc'"
            ) from None
        return cls(sort_key, sort_direction)


def _name_key(group: Group) -> tuple[str, str]:
    # Case-folded collation first, exact collation as a deterministic tie-break
    return (locale.strxfrm(group.name.casefold()), locale.strxfrm(group.name))


def _numeric_key(channel: str) -> Callable[[Group], tuple[int, float]]:
    def key(group: Group) -> tuple[int, float]:
        value = float(group.total(channel))
        # NaN has no order; place it below every number
        if math.isnan(value):
            return (0, 0.0)
        return (1, value)

    return key


def sort_groups(groups: Iterable[Group], config: SortConfig) -> list[Group]:
    """Return groups ordered by config.key in config.direction."""
    if not config.key.is_numeric:
        key_func: Callable[[Group], tuple] = _name_key
    else:
        key_func = _numeric_key(config.key.value)
    return sorted(groups, key=key_func, reverse=config.direction is SortDirection.DESC)


def partition_groups(groups: Iterable[Group]) -> tuple[list[Group], list[Group]]:
    """Split an already-sorted sequence into (apps, background), keeping order."""
    apps: list[Group] = []
    background: list[Group] = []
    for group in groups:
        (apps if group.is_app else background).append(group)
    return apps, background
