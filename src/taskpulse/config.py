"""Configuration system for taskpulse."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from taskpulse.sorting import SortConfig

# Update speed -> multiplier applied to every view interval (None = paused)
UPDATE_SPEEDS: dict[str, float | None] = {
    "high": 0.5,
    "normal": 1.0,
    "low": 2.0,
    "paused": None,
}

VIEWS = ("processes", "performance", "users", "app_history")

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class PollingConfig:
    """Poll cadence configuration.

    Each view polls on its own interval; the update speed scales all of
    them (high = twice as often, low = half as often, paused = never).
    """

    update_speed: str = "normal"
    processes: float = 1.0  # Seconds between process list polls
    performance: float = 1.0  # Seconds between chart polls
    users: float = 2.0
    app_history: float = 5.0
    poll_timeout: float = 0.0  # Seconds before a poll counts as failed (0 = no timeout)

    def interval_for(self, view: str) -> float | None:
        """Return the effective interval for a view, or None when paused."""
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view!r}. Valid views: {list(VIEWS)}")
        multiplier = UPDATE_SPEEDS[self.update_speed]
        if multiplier is None:
            return None
        return getattr(self, view) * multiplier

    @property
    def timeout(self) -> float | None:
        """Poll timeout in seconds, or None when disabled."""
        return self.poll_timeout if self.poll_timeout > 0 else None


@dataclass
class SeriesConfig:
    """Chart history configuration."""

    capacity: int = 60  # Samples kept per channel (one minute at 1Hz)


@dataclass
class SortingConfig:
    """Initial sort order for the process list."""

    key: str = "name"
    direction: str = "asc"

    def to_sort_config(self) -> SortConfig:
        """Convert to the engine's SortConfig."""
        return SortConfig.parse(self.key, self.direction)


@dataclass
class LoggingConfig:
    """Log file rotation and level."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep
    level: str = "info"


# =============================================================================
# TUI Configuration
# =============================================================================


@dataclass
class ChannelColors:
    """Sparkline colors per chart channel.

    Colors can be named colors ("red"), hex colors ("#FFA500") or Rich
    styles. Default palette: Dracula theme.
    """

    cpu: str = "#50fa7b"  # Dracula green
    memory: str = "#bd93f9"  # Dracula purple
    disk: str = "#f1fa8c"  # Dracula yellow
    network: str = "#8be9fd"  # Dracula cyan
    gpu: str = "#ffb86c"  # Dracula orange


@dataclass
class SparklineConfig:
    """Configuration for the header sparklines."""

    height: int = 2  # Number of character rows (1-4)


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    colors: ChannelColors = field(default_factory=ChannelColors)
    sparkline: SparklineConfig = field(default_factory=SparklineConfig)


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    polling: PollingConfig = field(default_factory=PollingConfig)
    series: SeriesConfig = field(default_factory=SeriesConfig)
    sorting: SortingConfig = field(default_factory=SortingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "taskpulse"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "taskpulse"

    @property
    def log_path(self) -> Path:
        """Log file path.

        Logs are expendable persistent state, so they go in XDG_STATE_HOME.
        """
        return self.state_dir / "taskpulse.log"

    def dumps(self) -> str:
        """Render every section as a TOML document."""
        doc = tomlkit.document()
        for name in ("polling", "series", "sorting", "logging", "tui"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())
        return tomlkit.dumps(doc)

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps())

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of an empty file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            polling=_load_polling_config(data.get("polling", {})),
            series=_load_series_config(data.get("series", {})),
            sorting=_load_sorting_config(data.get("sorting", {})),
            logging=_load_logging_config(data.get("logging", {})),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _load_polling_config(data: dict) -> PollingConfig:
    """Load polling config from TOML data, using dataclass defaults for missing fields."""
    defaults = PollingConfig()

    update_speed = data.get("update_speed", defaults.update_speed)
    if update_speed not in UPDATE_SPEEDS:
        raise ValueError(
            f"Invalid update_speed: {update_speed!r}. Must be one of {list(UPDATE_SPEEDS)}"
        )

    intervals = {view: data.get(view, getattr(defaults, view)) for view in VIEWS}
    for view, interval in intervals.items():
        if interval <= 0:
            raise ValueError(f"{view} interval must be > 0, got {interval}")

    poll_timeout = data.get("poll_timeout", defaults.poll_timeout)
    if poll_timeout < 0:
        raise ValueError(f"poll_timeout must be >= 0, got {poll_timeout}")

    return PollingConfig(update_speed=update_speed, poll_timeout=poll_timeout, **intervals)


def _load_series_config(data: dict) -> SeriesConfig:
    """Load series config from TOML data."""
    capacity = data.get("capacity", SeriesConfig().capacity)
    if capacity < 1:
        raise ValueError(f"series capacity must be >= 1, got {capacity}")
    return SeriesConfig(capacity=capacity)


def _load_sorting_config(data: dict) -> SortingConfig:
    """Load sorting config from TOML data, rejecting unknown keys or directions."""
    d = SortingConfig()
    sorting = SortingConfig(
        key=data.get("key", d.key),
        direction=data.get("direction", d.direction),
    )
    sorting.to_sort_config()
    return sorting


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = data.get("level", d.level)
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {list(LOG_LEVELS)}")
    return LoggingConfig(
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
        level=level,
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data.

    Handles nested [tui.colors] and [tui.sparkline] sections with defaults.
    """
    colors_data = data.get("colors", {})
    sparkline_data = data.get("sparkline", {})

    c = ChannelColors()
    sp = SparklineConfig()

    height = sparkline_data.get("height", sp.height)
    if not 1 <= height <= 4:
        raise ValueError(f"sparkline height must be 1-4, got {height}")

    return TUIConfig(
        colors=ChannelColors(
            cpu=colors_data.get("cpu", c.cpu),
            memory=colors_data.get("memory", c.memory),
            disk=colors_data.get("disk", c.disk),
            network=colors_data.get("network", c.network),
            gpu=colors_data.get("gpu", c.gpu),
        ),
        sparkline=SparklineConfig(height=height),
    )
