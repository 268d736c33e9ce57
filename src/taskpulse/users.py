"""Per-user view: processes grouped by owner, then by name."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from taskpulse.aggregator import aggregate
from taskpulse.models import Entity, Group
from taskpulse.sorting import SortConfig, SortDirection, SortKey, sort_groups

UNKNOWN_USER = "unknown"

_BY_CPU = SortConfig(SortKey.CPU, SortDirection.DESC)


@dataclass
class UserSession:
    """Resource totals for one user's processes."""

    username: str
    cpu_usage: float = 0.0
    memory: int = 0
    process_count: int = 0
    groups: list[Group] = field(default_factory=list)


def aggregate_users(entities: Iterable[Entity]) -> list[UserSession]:
    """Group entities by username, then by process name within each user.

    Each user's groups are ordered by CPU descending; users are ordered by
    name, case-insensitively.
    """
    members: dict[str, list[Entity]] = {}
    for entity in entities:
        members.setdefault(entity.username or UNKNOWN_USER, []).append(entity)

    sessions = []
    for username, owned in members.items():
        sessions.append(
            UserSession(
                username=username,
                cpu_usage=sum(e.cpu_usage for e in owned),
                memory=sum(e.memory for e in owned),
                process_count=len(owned),
                groups=sort_groups(aggregate(owned), _BY_CPU),
            )
        )
    return sorted(sessions, key=lambda s: (s.username.casefold(), s.username))
