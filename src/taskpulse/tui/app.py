"""Real-time task manager dashboard.

Each view is driven by its own PollCycle; widgets only render the ViewState
they are handed. Expand/collapse and selection live in the app, keyed by
group name and pid, so they survive the groups being rebuilt every poll.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Static

from taskpulse import channels
from taskpulse.collector import PsutilSource
from taskpulse.config import Config
from taskpulse.formatting import (
    format_bytes,
    format_cpu_time,
    format_disk_rate,
    format_network,
    format_percent,
    format_size,
    format_uptime,
)
from taskpulse.history import AppHistory
from taskpulse.models import Entity
from taskpulse.poller import DataSource, PollCycle, ViewState
from taskpulse.ringbuffer import SeriesRegistry
from taskpulse.sorting import SortDirection, SortKey
from taskpulse.tui.sparkline import GradientColor, Sparkline, render_columns
from taskpulse.users import aggregate_users
from taskpulse.viewstate import (
    ExpansionState,
    Row,
    RowKind,
    Selection,
    build_rows,
    filter_entities,
)

VIEWS = ("processes", "performance", "users", "history")

# (column title, sort key) in display order; PID is not sortable
_COLUMNS: list[tuple[str, SortKey | None]] = [
    ("Name", SortKey.NAME),
    ("PID", None),
    ("CPU", SortKey.CPU),
    ("Memory", SortKey.MEMORY),
    ("Disk", SortKey.DISK),
    ("Network", SortKey.NETWORK),
    ("GPU", SortKey.GPU),
]


class HeaderBar(Static):
    """Header with one sparkline per system-wide channel."""

    DEFAULT_CSS = """
    HeaderBar {
        height: auto;
        padding: 0 1;
        border: solid green;
        border-title-align: left;
    }

    HeaderBar Horizontal {
        height: auto;
    }

    HeaderBar Sparkline {
        width: 1fr;
        margin-right: 1;
    }
    """

    def compose(self) -> ComposeResult:
        """Create one sparkline per channel with config colors."""
        config: Config = self.app.config
        height = config.tui.sparkline.height
        colors = config.tui.colors
        load = GradientColor([(0, colors.cpu), (60, colors.disk), (100, "#ff5555")])
        yield Horizontal(
            Sparkline("CPU", height, 100, load, format_percent, id="spark-cpu"),
            Sparkline("Memory", height, 100, colors.memory, format_percent, id="spark-memory"),
            Sparkline("Disk", height, None, colors.disk, format_disk_rate, id="spark-disk"),
            Sparkline("Network", height, None, colors.network, format_network, id="spark-network"),
            Sparkline("GPU", height, 100, colors.gpu, format_percent, id="spark-gpu"),
        )

    def on_mount(self) -> None:
        """Set border title."""
        self.border_title = "PERFORMANCE"

    def update_series(self, series: dict[str, list[float]], error: bool) -> None:
        """Push the latest rolling series into each sparkline."""
        self.styles.border = ("solid", "red" if error else "green")
        for widget_id, key in (
            ("#spark-cpu", channels.CPU),
            ("#spark-memory", channels.MEMORY),
            ("#spark-disk", channels.DISK_TOTAL),
            ("#spark-network", channels.NETWORK),
            ("#spark-gpu", channels.GPU),
        ):
            try:
                self.query_one(widget_id, Sparkline).values = list(series.get(key, []))
            except NoMatches:
                pass


class ProcessTable(Static):
    """Grouped process list with Apps and Background sections."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    ProcessTable.stale {
        border: solid $error;
    }

    ProcessTable DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._table: DataTable | None = None
        self._rows: list[Row] = []

    def compose(self) -> ComposeResult:
        """Create the process table using DataTable."""
        yield DataTable(id="process-table", zebra_stripes=True, cursor_type="row")

    def on_mount(self) -> None:
        """Set border title."""
        self.border_title = "PROCESSES"
        self._table = self.query_one("#process-table", DataTable)

    def cursor_row(self) -> Row | None:
        """Display row under the cursor, if any."""
        if self._table is None:
            return None
        index = self._table.cursor_row
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return None

    def row_for_key(self, key: str | None) -> Row | None:
        """Display row for a DataTable row key."""
        if key is None or not key.isdigit():
            return None
        index = int(key)
        return self._rows[index] if index < len(self._rows) else None

    def _headers(self, view: ViewState) -> list[str]:
        arrow = "▼" if view.sort_config.direction is SortDirection.DESC else "▲"
        return [
            f"{title} {arrow}" if key is view.sort_config.key else title
            for title, key in _COLUMNS
        ]

    def _cells(self, row: Row) -> list[Text | str]:
        if row.kind is RowKind.SECTION:
            marker = "▼" if row.expanded else "▶"
            return [Text(f"{marker} {row.label}", style="bold")] + [""] * (len(_COLUMNS) - 1)

        style = "bold" if row.kind is RowKind.GROUP and row.group and row.group.is_app else ""
        if row.kind is RowKind.MEMBER and row.entity is not None:
            e = row.entity
            return [
                Text(f"      {row.label}", style="dim"),
                str(e.pid),
                format_percent(e.cpu_usage),
                format_bytes(e.memory),
                format_disk_rate(e.disk_usage),
                format_network(e.network_usage),
                format_percent(e.gpu_usage, 0),
            ]

        group = row.group
        if group is None:
            return [row.label] + [""] * (len(_COLUMNS) - 1)
        if row.expandable:
            marker = "▼ " if row.expanded else "▶ "
        else:
            marker = "  "
        return [
            Text(f"  {marker}{row.label}", style=style),
            "" if row.expandable else str(group.primary.pid),
            format_percent(group.total_cpu),
            format_bytes(group.total_memory),
            format_disk_rate(group.total_disk),
            format_network(group.total_network),
            format_percent(group.total_gpu, 0),
        ]

    def update_view(
        self, view: ViewState, expansion: ExpansionState, selection: Selection
    ) -> None:
        """Rebuild rows, keeping the cursor on the selected process."""
        if self._table is None:
            return
        self.set_class(view.error, "stale")

        current = self.cursor_row()
        section_index = None
        if current is not None and current.entity is not None:
            selection.select(current.entity.pid)
        elif current is not None:
            section_index = self._table.cursor_row

        self._rows = build_rows(view.apps, view.background, expansion, selection)
        self._table.clear(columns=True)
        self._table.add_columns(*self._headers(view))
        for index, row in enumerate(self._rows):
            self._table.add_row(*self._cells(row), key=str(index))

        target = section_index
        if target is None:
            target = self._selected_index()
        if target is not None and target < len(self._rows):
            self._table.move_cursor(row=target)

    def _selected_index(self) -> int | None:
        # Prefer the member row; fall back to its (collapsed) group row
        group_index = None
        for index, row in enumerate(self._rows):
            if not row.selected:
                continue
            if row.kind is RowKind.MEMBER:
                return index
            if group_index is None:
                group_index = index
        return group_index


class UsersTable(Static):
    """Per-user totals with expandable process groups."""

    DEFAULT_CSS = """
    UsersTable {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    UsersTable DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._table: DataTable | None = None
        self._usernames: list[str | None] = []

    def compose(self) -> ComposeResult:
        """Create the users table using DataTable."""
        yield DataTable(id="users-table", zebra_stripes=True, cursor_type="row")

    def on_mount(self) -> None:
        """Set border title and columns."""
        self.border_title = "USERS"
        self._table = self.query_one("#users-table", DataTable)
        self._table.add_columns("User", "Processes", "CPU", "Memory")

    def username_at(self, index: int) -> str | None:
        """Username of a user row (None for group rows)."""
        return self._usernames[index] if 0 <= index < len(self._usernames) else None

    def update_view(self, view: ViewState, expanded: ExpansionState) -> None:
        """Rebuild user rows from the latest snapshot."""
        if self._table is None or view.snapshot is None:
            return
        cursor = self._table.cursor_row
        self._table.clear()
        self._usernames = []
        for session in aggregate_users(view.snapshot.entities):
            is_open = expanded.is_expanded(session.username)
            self._table.add_row(
                Text(f"{'▼' if is_open else '▶'} {session.username}", style="bold"),
                str(session.process_count),
                format_percent(session.cpu_usage),
                format_bytes(session.memory),
            )
            self._usernames.append(session.username)
            if not is_open:
                continue
            for group in session.groups:
                self._table.add_row(
                    f"    {group.name}",
                    str(len(group.members)),
                    format_percent(group.total_cpu),
                    format_bytes(group.total_memory),
                )
                self._usernames.append(None)
        if 0 <= cursor < len(self._usernames):
            self._table.move_cursor(row=cursor)


class HistoryTable(Static):
    """Cumulative per-application usage since the dashboard started."""

    DEFAULT_CSS = """
    HistoryTable {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    HistoryTable DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def compose(self) -> ComposeResult:
        """Create the history table using DataTable."""
        yield DataTable(id="history-table", zebra_stripes=True, cursor_type="row")

    def on_mount(self) -> None:
        """Set border title and columns."""
        self.border_title = "APP HISTORY"
        self.query_one("#history-table", DataTable).add_columns(
            "Name", "CPU time", "Network", "Disk"
        )

    def update_history(self, history: AppHistory) -> None:
        """Render history entries, most CPU time first."""
        try:
            table = self.query_one("#history-table", DataTable)
        except NoMatches:
            return
        table.clear()
        for entry in history.entries():
            table.add_row(
                entry.name,
                format_cpu_time(entry.cpu_time_ms),
                format_size(entry.network_bytes),
                format_size(entry.disk_bytes),
            )


class PerformancePanel(Static):
    """Per-core and per-disk detail for the performance view."""

    DEFAULT_CSS = """
    PerformancePanel {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
        padding: 0 1;
        overflow-y: auto;
    }
    """

    def on_mount(self) -> None:
        """Set border title."""
        self.border_title = "DETAIL"

    def update_view(self, view: ViewState) -> None:
        """Render one bar line per core and per disk."""
        text = Text()
        stats = view.snapshot.stats if view.snapshot else None
        if stats is not None:
            text.append(
                f"Uptime {format_uptime(stats.uptime)}   "
                f"{stats.process_count} processes   "
                f"Memory {format_size(stats.used_memory)} / {format_size(stats.total_memory)}\n\n",
                style="bold",
            )
        width = max(10, (self.size.width or 80) - 24)
        index = 0
        while channels.core_key(index) in view.series:
            values = view.series[channels.core_key(index)]
            bars = render_columns(values, height=1, max_value=100, width=width)[0]
            latest = format_percent(values[-1], 0) if values else "-"
            text.append(f"CPU {index:<3} {latest:>6} ", style="bold")
            text.append(bars + "\n", style="green")
            index += 1
        if stats is not None:
            for disk in stats.disks:
                values = view.series.get(channels.disk_key(disk.mount_point), [])
                bars = render_columns(values, height=1, max_value=100, width=width)[0]
                text.append(f"{disk.mount_point[:10]:<10} {format_percent(disk.usage_percent, 0):>6} ")
                text.append(bars + "\n", style="yellow")
        self.update(text)


class StatusLine(Static):
    """One-line status: sort order, counts, last update or error."""

    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        padding: 0 1;
    }
    """

    def show(self, view: ViewState, paused: bool, query: str) -> None:
        """Render status for the latest view."""
        arrow = "▼" if view.sort_config.direction is SortDirection.DESC else "▲"
        text = Text()
        if view.error:
            text.append(f"⚠ {view.error_message} (showing last data)  ", style="bold red")
        text.append(f"sort {view.sort_config.key.value} {arrow}  ", style="dim")
        text.append(f"{len(view.apps)} apps, {len(view.background)} background  ", style="dim")
        if query:
            text.append(f"filter '{query}'  ", style="cyan")
        if paused:
            text.append("paused  ", style="yellow")
        if view.published_at:
            stamp = datetime.fromtimestamp(view.published_at).strftime("%H:%M:%S")
            text.append(f"updated {stamp}", style="dim")
        self.update(text)


class TaskpulseApp(App):
    """Real-time task manager dashboard."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #search {
        display: none;
    }

    #search.visible {
        display: block;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        Binding("space", "toggle_row", "Expand"),
        ("slash", "search", "Search"),
        ("escape", "clear_search", "Clear search"),
        ("s", "sort('name')", "Name"),
        ("c", "sort('cpu_usage')", "CPU"),
        ("m", "sort('memory')", "Mem"),
        ("d", "sort('disk_usage')", "Disk"),
        ("n", "sort('network_usage')", "Net"),
        ("g", "sort('gpu_usage')", "GPU"),
        ("p", "show_view('processes')", "Processes"),
        ("f", "show_view('performance')", "Performance"),
        ("u", "show_view('users')", "Users"),
        ("h", "show_view('history')", "History"),
        ("x", "clear_history", "Clear history"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        source: DataSource | None = None,
        view: str = "processes",
    ):
        super().__init__()
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view!r}. Valid views: {list(VIEWS)}")
        self.config = config or Config.load()
        self._source = source
        self._view_name = view
        self._query = ""
        self.expansion = ExpansionState()
        self.user_expansion = ExpansionState()
        self.selection = Selection()
        self.history = AppHistory()
        self.cycle: PollCycle | None = None
        self.users_cycle: PollCycle | None = None
        self._last_view: ViewState | None = None
        self._last_users: ViewState | None = None

    def compose(self) -> ComposeResult:
        """Create the TUI layout."""
        yield HeaderBar(id="header")
        yield Input(placeholder="Filter by name or PID", id="search")
        yield ProcessTable(id="processes")
        yield PerformancePanel(id="performance")
        yield UsersTable(id="users")
        yield HistoryTable(id="history")
        yield StatusLine(id="status")
        yield Footer()

    def _make_source(self) -> DataSource:
        return self._source or PsutilSource()

    def _filter(self, entities: Sequence[Entity]) -> list[Entity]:
        return filter_entities(entities, self._query)

    def on_mount(self) -> None:
        """Start the process poll cycle and show the initial view."""
        self.title = "taskpulse"
        polling = self.config.polling
        interval = polling.interval_for("processes")
        self.cycle = PollCycle(
            self._make_source(),
            interval=interval or polling.processes,
            registry=SeriesRegistry(self.config.series.capacity),
            sort_config=self.config.sorting.to_sort_config(),
            on_publish=self._handle_view,
            on_error=self._handle_error,
            name="processes",
            poll_timeout=polling.timeout,
            history=self.history,
            entity_filter=self._filter,
        )
        if interval is None:
            self.cycle.request_refresh()
        else:
            self.cycle.start()
        self._apply_view(self._view_name)

    async def on_unmount(self) -> None:
        """Stop every poll cycle; late results are discarded."""
        for cycle in (self.cycle, self.users_cycle):
            if cycle is not None:
                await cycle.stop()

    # ─────────────────────────────────────────────────────────────────────
    # Poll callbacks
    # ─────────────────────────────────────────────────────────────────────

    def _handle_view(self, view: ViewState) -> None:
        self._last_view = view
        try:
            self.query_one("#header", HeaderBar).update_series(dict(view.series), view.error)
            self.query_one("#status", StatusLine).show(view, self._paused, self._query)
            if self._view_name == "processes":
                self._render_processes()
            elif self._view_name == "performance":
                self.query_one("#performance", PerformancePanel).update_view(view)
            elif self._view_name == "history":
                self.query_one("#history", HistoryTable).update_history(self.history)
        except NoMatches:
            pass

    def _handle_error(self, message: str) -> None:
        self.notify(f"Poll failed: {message}", severity="error", timeout=3)

    def _handle_users(self, view: ViewState) -> None:
        self._last_users = view
        try:
            self.query_one("#users", UsersTable).update_view(view, self.user_expansion)
        except NoMatches:
            pass

    def _render_processes(self) -> None:
        if self._last_view is None:
            return
        try:
            table = self.query_one("#processes", ProcessTable)
        except NoMatches:
            return
        table.update_view(self._last_view, self.expansion, self.selection)

    @property
    def _paused(self) -> bool:
        return self.config.polling.interval_for("processes") is None

    # ─────────────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────────────

    def _apply_view(self, name: str) -> None:
        self._view_name = name
        for view_id in VIEWS:
            try:
                self.query_one(f"#{view_id}").display = view_id == name
            except NoMatches:
                pass
        self.sub_title = name.replace("_", " ").title()
        if name == "users":
            self._start_users_cycle()
        if self._last_view is not None:
            self._handle_view(self._last_view)

    def _start_users_cycle(self) -> None:
        if self.users_cycle is not None:
            return
        polling = self.config.polling
        interval = polling.interval_for("users")
        self.users_cycle = PollCycle(
            self._make_source(),
            interval=interval or polling.users,
            on_publish=self._handle_users,
            name="users",
            poll_timeout=polling.timeout,
            entity_filter=self._filter,
        )
        if interval is None:
            self.users_cycle.request_refresh()
        else:
            self.users_cycle.start()

    async def action_show_view(self, name: str) -> None:
        """Switch to another view."""
        if name != "users" and self.users_cycle is not None:
            await self.users_cycle.stop()
            self.users_cycle = None
        self._apply_view(name)

    # ─────────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────────

    def action_refresh(self) -> None:
        """Poll now, outside the regular cadence."""
        cycle = self.users_cycle if self._view_name == "users" else self.cycle
        if cycle is not None and not cycle.request_refresh():
            self.notify("Refresh already in progress", timeout=1)

    def action_sort(self, key: str) -> None:
        """Click a column header: select it, or flip its direction."""
        if self.cycle is not None:
            self.cycle.toggle_sort(SortKey(key))

    def action_toggle_row(self) -> None:
        """Expand or collapse the row under the cursor."""
        if self._view_name == "users":
            self._toggle_user()
            return
        try:
            row = self.query_one("#processes", ProcessTable).cursor_row()
        except NoMatches:
            return
        if row is None:
            return
        self._toggle(row)

    def _toggle(self, row: Row) -> None:
        if row.kind is RowKind.SECTION:
            self.expansion.toggle_section(row.is_app_section)
        elif row.kind is RowKind.GROUP and row.group is not None and row.expandable:
            self.expansion.toggle(row.group.name)
        elif row.kind is RowKind.MEMBER and row.group is not None:
            self.expansion.collapse(row.group.name)
        self._render_processes()

    def _toggle_user(self) -> None:
        try:
            table = self.query_one("#users", UsersTable)
            cursor = table.query_one(DataTable).cursor_row
        except NoMatches:
            return
        username = table.username_at(cursor)
        if username is None:
            return
        self.user_expansion.toggle(username)
        if self._last_users is not None:
            table.update_view(self._last_users, self.user_expansion)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Enter on a process row toggles it like space."""
        if event.data_table.id != "process-table":
            return
        try:
            row = self.query_one("#processes", ProcessTable).row_for_key(event.row_key.value)
        except NoMatches:
            return
        if row is not None:
            if row.entity is not None:
                self.selection.select(row.entity.pid)
            self._toggle(row)

    def action_search(self) -> None:
        """Show the search box."""
        search = self.query_one("#search", Input)
        search.add_class("visible")
        search.focus()

    def action_clear_search(self) -> None:
        """Clear the filter and hide the search box."""
        search = self.query_one("#search", Input)
        search.value = ""
        search.remove_class("visible")
        self._set_query("")

    def on_input_changed(self, event: Input.Changed) -> None:
        """Re-poll with the new filter."""
        self._set_query(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Return focus to the table, keeping the filter."""
        try:
            self.query_one("#process-table", DataTable).focus()
        except NoMatches:
            pass

    def _set_query(self, query: str) -> None:
        self._query = query
        if self.cycle is not None:
            self.cycle.request_refresh()

    def action_clear_history(self) -> None:
        """Forget accumulated app history."""
        if self._view_name != "history":
            return
        self.history.clear()
        try:
            self.query_one("#history", HistoryTable).update_history(self.history)
        except NoMatches:
            pass
        self.notify("App history cleared", timeout=2)


def run_tui(config: Config | None = None, view: str = "processes") -> None:
    """Run the TUI application."""
    app = TaskpulseApp(config, view=view)
    app.run()
