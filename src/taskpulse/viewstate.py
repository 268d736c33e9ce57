"""Long-lived interaction state kept apart from regenerated groups.

Groups are rebuilt on every poll. Expand/collapse is keyed by group name and
selection by pid, so both survive polls even though group objects do not.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum

from taskpulse.models import Entity, Group, Snapshot


class ExpansionState:
    """Which groups (by name) and which sections are expanded."""

    def __init__(self) -> None:
        self._expanded: set[str] = set()
        self.apps_expanded: bool = True
        self.background_expanded: bool = True

    def __contains__(self, name: object) -> bool:
        return name in self._expanded

    @property
    def names(self) -> frozenset[str]:
        """Expanded group names."""
        return frozenset(self._expanded)

    def is_expanded(self, name: str) -> bool:
        """True if the named group shows its members."""
        return name in self._expanded

    def expand(self, name: str) -> None:
        """Show a group's members."""
        self._expanded.add(name)

    def collapse(self, name: str) -> None:
        """Hide a group's members."""
        self._expanded.discard(name)

    def toggle(self, name: str) -> bool:
        """Flip a group's expansion and return the new state."""
        if name in self._expanded:
            self._expanded.discard(name)
            return False
        self._expanded.add(name)
        return True

    def toggle_section(self, apps: bool) -> bool:
        """Flip the Apps (apps=True) or Background section and return the new state."""
        if apps:
            self.apps_expanded = not self.apps_expanded
            return self.apps_expanded
        self.background_expanded = not self.background_expanded
        return self.background_expanded


class Selection:
    """Selected process, tracked by pid across polls."""

    def __init__(self) -> None:
        self.pid: int | None = None

    def select(self, pid: int) -> None:
        """Select a process."""
        self.pid = pid

    def clear(self) -> None:
        """Drop the selection."""
        self.pid = None

    def is_group_selected(self, group: Group) -> bool:
        """A group row is highlighted when any member is selected."""
        return self.pid is not None and self.pid in group.pids

    def resolve(self, groups: Iterable[Group]) -> Entity | None:
        """Find the selected entity in the current groups, if it still exists."""
        if self.pid is None:
            return None
        for group in groups:
            for member in group.members:
                if member.pid == self.pid:
                    return member
        return None


class RowKind(Enum):
    """Kind of display row."""

    SECTION = "section"
    GROUP = "group"
    MEMBER = "member"


@dataclass(frozen=True)
class Row:
    """One flattened display row."""

    kind: RowKind
    label: str
    group: Group | None = None
    entity: Entity | None = None
    expandable: bool = False
    expanded: bool = False
    selected: bool = False
    is_app_section: bool = False


APPS_TITLE = "Apps"
BACKGROUND_TITLE = "Background processes"


def _section_rows(
    title: str,
    groups: Sequence[Group],
    section_open: bool,
    is_apps: bool,
    expansion: ExpansionState,
    selection: Selection,
) -> list[Row]:
    if not groups:
        return []
    rows = [
        Row(
            kind=RowKind.SECTION,
            label=f"{title} ({len(groups)})",
            expandable=True,
            expanded=section_open,
            is_app_section=is_apps,
        )
    ]
    if not section_open:
        return rows

    for group in groups:
        multiple = len(group.members) > 1
        open_group = multiple and expansion.is_expanded(group.name)
        label = f"{group.name} ({len(group.members)})" if multiple else group.name
        rows.append(
            Row(
                kind=RowKind.GROUP,
                label=label,
                group=group,
                entity=group.primary,
                expandable=multiple,
                expanded=open_group,
                selected=selection.is_group_selected(group),
                is_app_section=is_apps,
            )
        )
        if open_group:
            for member in group.members:
                rows.append(
                    Row(
                        kind=RowKind.MEMBER,
                        label=f"{member.name} ({member.pid})",
                        group=group,
                        entity=member,
                        selected=selection.pid == member.pid,
                        is_app_section=is_apps,
                    )
                )
    return rows


def build_rows(
    apps: Sequence[Group],
    background: Sequence[Group],
    expansion: ExpansionState,
    selection: Selection,
) -> list[Row]:
    """Flatten partitioned groups into display rows.

    Empty sections are omitted. Member rows appear only for multi-member
    groups whose name is expanded.
    """
    return _section_rows(
        APPS_TITLE, apps, expansion.apps_expanded, True, expansion, selection
    ) + _section_rows(
        BACKGROUND_TITLE, background, expansion.background_expanded, False, expansion, selection
    )


def filter_entities(entities: Iterable[Entity], query: str) -> list[Entity]:
    """Keep entities whose name contains query (case-insensitive) or whose pid does."""
    needle = query.strip().lower()
    if not needle:
        return list(entities)
    return [e for e in entities if needle in e.name.lower() or needle in str(e.pid)]


class FilteredSource:
    """Wraps a data source, keeping only entities that match a search query.

    The query is read on every poll, so a view can change it between polls
    and call request_refresh() to apply it immediately.
    """

    def __init__(self, source, query: Callable[[], str]) -> None:
        self.source = source
        self._query = query

    async def poll(self) -> Snapshot:
        """Poll the wrapped source and filter its entities."""
        snapshot = await self.source.poll()
        query = self._query()
        if not query.strip():
            return snapshot
        return replace(snapshot, entities=tuple(filter_entities(snapshot.entities, query)))
