"""CLI commands for taskpulse."""

import click

SORT_KEYS = ["name", "cpu_usage", "memory", "disk_usage", "network_usage", "gpu_usage"]


def _load_config(source: str = "cli"):
    """Load config and route structlog output to the log file."""
    from taskpulse.config import Config
    from taskpulse.logging import configure

    try:
        config = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    configure(config, source=source)
    return config


def _make_source():
    from taskpulse.collector import PsutilSource

    return PsutilSource()


def _run_polls(source, *, samples: int, interval: float, on_sample=None, **cycle_kwargs):
    """Tick a PollCycle `samples` times, `interval` seconds apart.

    Returns the cycle, stopped, with its last ViewState still readable.
    Failed samples are reported on stderr unless `on_sample` handles them.
    """
    import asyncio

    from taskpulse import logging as console
    from taskpulse.poller import PollCycle

    async def run() -> PollCycle:
        cycle = PollCycle(source, interval=interval, name="cli", **cycle_kwargs)
        try:
            for index in range(samples):
                if index:
                    await asyncio.sleep(interval)
                await cycle.tick()
                view = cycle.view
                if view is None:
                    continue
                if on_sample is not None:
                    on_sample(view)
                elif view.error:
                    console.poll_failed(cycle.name, view.error_message or "unknown error")
        finally:
            await cycle.stop()
        return cycle

    return asyncio.run(run())


def _interval(config, view: str) -> float:
    """Effective poll interval for a view; paused falls back to the raw value."""
    return config.polling.interval_for(view) or getattr(config.polling, view)


def _require_view(cycle):
    view = cycle.view
    if view is None or view.snapshot is None:
        message = view.error_message if view is not None else "no data"
        raise click.ClickException(f"Poll failed: {message}")
    return view


@click.group()
@click.version_option(package_name="taskpulse")
def main() -> None:
    """Live process and system resource monitor."""
    import locale

    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        # Unsupported locale in the environment; keep the C collation
        pass


@main.command()
@click.option(
    "--view",
    type=click.Choice(["processes", "performance", "users", "history"]),
    default="processes",
    help="View to open",
)
def tui(view: str) -> None:
    """Launch interactive dashboard."""
    from taskpulse.tui.app import run_tui

    config = _load_config(source="tui")
    if not config.config_path.exists():
        from taskpulse import logging as console

        config.save()
        console.config_created(str(config.config_path))
    run_tui(config, view=view)


@main.command()
@click.option("--sort", "sort_key", type=click.Choice(SORT_KEYS), default=None, help="Sort column")
@click.option("--asc/--desc", "ascending", default=None, help="Sort direction")
@click.option("--limit", "-n", default=15, help="Groups to show per section")
@click.option("--search", "-s", "query", default="", help="Filter by name or PID")
@click.option("--samples", default=2, help="Polls to take (CPU needs two to be accurate)")
@click.option("--format", "-f", "fmt", type=click.Choice(["table", "json"]), default="table")
def top(
    sort_key: str | None,
    ascending: bool | None,
    limit: int,
    query: str,
    samples: int,
    fmt: str,
) -> None:
    """Show grouped processes once, Apps first."""
    import json

    from taskpulse.formatting import (
        format_bytes,
        format_disk_rate,
        format_network,
        format_percent,
    )
    from taskpulse.sorting import SortConfig
    from taskpulse.viewstate import FilteredSource

    config = _load_config()
    default_sort = config.sorting.to_sort_config()
    if sort_key is None and ascending is None:
        sort_config = default_sort
    else:
        direction = "asc" if ascending else "desc"
        if ascending is None:
            direction = "asc" if sort_key == "name" else "desc"
        sort_config = SortConfig.parse(sort_key or default_sort.key.value, direction)

    source = FilteredSource(_make_source(), lambda: query)
    cycle = _run_polls(
        source,
        samples=max(1, samples),
        interval=_interval(config, "processes"),
        sort_config=sort_config,
    )
    view = _require_view(cycle)

    if fmt == "json":
        data = {
            section: [
                {
                    "name": g.name,
                    "count": len(g.members),
                    "pids": g.pids,
                    "cpu_usage": g.total_cpu,
                    "memory": g.total_memory,
                    "disk_usage": g.total_disk,
                    "network_usage": g.total_network,
                    "gpu_usage": g.total_gpu,
                }
                for g in groups[:limit]
            ]
            for section, groups in (("apps", view.apps), ("background", view.background))
        }
        click.echo(json.dumps(data, indent=2))
        return

    if not view.apps and not view.background:
        click.echo("No matching processes.")
        return

    for title, groups in (("Apps", view.apps), ("Background processes", view.background)):
        if not groups:
            continue
        click.echo(f"{title} ({len(groups)})")
        click.echo(
            f"  {'Name':<28} {'#':>3} {'CPU':>8} {'Memory':>11} "
            f"{'Disk':>11} {'Network':>11} {'GPU':>6}"
        )
        for g in groups[:limit]:
            click.echo(
                f"  {g.name[:28]:<28} {len(g.members):>3} {format_percent(g.total_cpu):>8} "
                f"{format_bytes(g.total_memory):>11} {format_disk_rate(g.total_disk):>11} "
                f"{format_network(g.total_network):>11} {format_percent(g.total_gpu, 0):>6}"
            )
        if len(groups) > limit:
            click.echo(f"  ... {len(groups) - limit} more")
        click.echo()


@main.command()
@click.option("--samples", default=2, help="Polls to take (CPU needs two to be accurate)")
@click.option("--groups", "-g", "show_groups", is_flag=True, help="List each user's groups")
def users(samples: int, show_groups: bool) -> None:
    """Show resource totals per user."""
    from taskpulse.formatting import format_bytes, format_percent
    from taskpulse.users import aggregate_users

    config = _load_config()
    cycle = _run_polls(
        _make_source(), samples=max(1, samples), interval=_interval(config, "users")
    )
    view = _require_view(cycle)

    sessions = aggregate_users(view.snapshot.entities)
    if not sessions:
        click.echo("No processes.")
        return
    click.echo(f"{'User':<20} {'Procs':>6} {'CPU':>8} {'Memory':>11}")
    for session in sessions:
        click.echo(
            f"{session.username[:20]:<20} {session.process_count:>6} "
            f"{format_percent(session.cpu_usage):>8} {format_bytes(session.memory):>11}"
        )
        if show_groups:
            for group in session.groups:
                click.echo(
                    f"  {group.name[:18]:<18} {len(group.members):>6} "
                    f"{format_percent(group.total_cpu):>8} {format_bytes(group.total_memory):>11}"
                )


@main.command()
@click.argument("channel")
@click.option("--samples", "-n", default=10, help="Number of polls")
def watch(channel: str, samples: int) -> None:
    """Poll repeatedly and print one chart channel.

    CHANNEL is cpu, memory, network, gpu, disk-total, core-<N> or
    disk-<mount>, where <mount> is the mount point with every
    non-alphanumeric character removed (/home -> disk-home).
    """
    from datetime import datetime

    from taskpulse.channels import is_known_channel
    from taskpulse.ringbuffer import SeriesRegistry
    from taskpulse.tui.sparkline import render_columns

    if not is_known_channel(channel):
        raise click.BadParameter(f"unknown channel {channel!r}", param_hint="CHANNEL")

    config = _load_config()
    interval = _interval(config, "performance")

    def show(view) -> None:
        series = view.series.get(channel, [])
        stamp = datetime.fromtimestamp(view.published_at).strftime("%H:%M:%S")
        if view.error:
            click.echo(f"{stamp}  error: {view.error_message}")
        elif series:
            click.echo(f"{stamp}  {series[-1]:.1f}")
        else:
            click.echo(f"{stamp}  -")

    cycle = _run_polls(
        _make_source(),
        samples=max(1, samples),
        interval=interval,
        on_sample=show,
        registry=SeriesRegistry(config.series.capacity),
    )
    values = cycle.registry.get(channel)
    if not values:
        click.echo(f"No samples for {channel}.")
        return
    max_value = None if channel in ("network", "disk-total") else 100.0
    click.echo(render_columns(values, height=1, max_value=max_value)[0])


@main.command()
@click.option("--samples", "-n", default=5, help="Number of polls")
@click.option("--limit", default=15, help="Applications to show")
def history(samples: int, limit: int) -> None:
    """Accumulate per-application usage over a few polls."""
    from taskpulse.formatting import format_cpu_time, format_size
    from taskpulse.history import AppHistory

    config = _load_config()
    app_history = AppHistory()
    _run_polls(
        _make_source(),
        samples=max(1, samples),
        interval=_interval(config, "app_history"),
        history=app_history,
    )
    entries = app_history.entries()
    if not entries:
        click.echo("No application history.")
        return
    click.echo(f"{'Name':<28} {'CPU time':>10} {'Network':>10} {'Disk':>10}")
    for entry in entries[:limit]:
        click.echo(
            f"{entry.name[:28]:<28} {format_cpu_time(entry.cpu_time_ms):>10} "
            f"{format_size(entry.network_bytes):>10} {format_size(entry.disk_bytes):>10}"
        )


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from taskpulse.config import Config

    try:
        cfg = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo(cfg.dumps())


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def config_init(force: bool) -> None:
    """Write a config file with default values."""
    from taskpulse import logging as console
    from taskpulse.config import Config

    cfg = Config()
    if cfg.config_path.exists() and not force:
        console.config_exists(str(cfg.config_path))
        return
    cfg.save()
    console.config_created(str(cfg.config_path))
