"""Tests for configuration system."""

from pathlib import Path

import pytest

from taskpulse.config import (
    ChannelColors,
    Config,
    LoggingConfig,
    PollingConfig,
    SeriesConfig,
    SortingConfig,
)
from taskpulse.sorting import SortDirection, SortKey


def test_polling_config_defaults():
    """PollingConfig has correct defaults."""
    config = PollingConfig()
    assert config.update_speed == "normal"
    assert config.processes == 1.0
    assert config.users == 2.0
    assert config.poll_timeout == 0.0
    assert config.timeout is None


def test_series_config_defaults():
    """One minute of samples by default."""
    assert SeriesConfig().capacity == 60


def test_logging_config_defaults():
    """LoggingConfig has correct defaults."""
    config = LoggingConfig()
    assert config.log_max_bytes == 5 * 1024 * 1024
    assert config.log_backup_count == 3
    assert config.level == "info"


def test_channel_colors_defaults():
    """Default palette is Dracula."""
    colors = ChannelColors()
    assert colors.cpu == "#50fa7b"
    assert colors.network == "#8be9fd"


def test_interval_scales_with_update_speed():
    """high halves intervals, low doubles them, paused disables polling."""
    assert PollingConfig(update_speed="high").interval_for("processes") == 0.5
    assert PollingConfig(update_speed="low").interval_for("users") == 4.0
    assert PollingConfig(update_speed="paused").interval_for("processes") is None


def test_interval_for_unknown_view():
    """Unknown view names raise ValueError."""
    with pytest.raises(ValueError, match="Unknown view"):
        PollingConfig().interval_for("kernel")


def test_polling_intervals_cover_views_only():
    """Every interval field is a view the dashboard or CLI polls."""
    config = PollingConfig()
    assert config.app_history == 5.0
    assert not hasattr(config, "services")
    with pytest.raises(ValueError, match="Unknown view"):
        config.interval_for("services")


def test_sorting_config_converts():
    """SortingConfig produces the engine's SortConfig."""
    sort = SortingConfig(key="cpu_usage", direction="desc").to_sort_config()
    assert sort.key is SortKey.CPU
    assert sort.direction is SortDirection.DESC


def test_config_paths():
    """Config provides XDG data paths under the home directory."""
    config = Config()
    assert config.config_path == Path.home() / ".config" / "taskpulse" / "config.toml"
    assert config.log_path == Path.home() / ".local" / "state" / "taskpulse" / "taskpulse.log"


def test_config_save_creates_file(tmp_path):
    """Config.save() creates the TOML file and parent directories."""
    config_path = tmp_path / "nested" / "config.toml"
    Config().save(config_path)
    assert config_path.exists()
    assert "[polling]" in config_path.read_text()


def test_config_save_preserves_values(tmp_path):
    """Values survive a save/load round trip."""
    config_path = tmp_path / "config.toml"
    config = Config()
    config.polling.update_speed = "high"
    config.series.capacity = 120
    config.sorting.key = "memory"
    config.tui.colors.gpu = "red"
    config.tui.sparkline.height = 3
    config.save(config_path)

    loaded = Config.load(config_path)
    assert loaded.polling.update_speed == "high"
    assert loaded.series.capacity == 120
    assert loaded.sorting.key == "memory"
    assert loaded.tui.colors.gpu == "red"
    assert loaded.tui.sparkline.height == 3


def test_config_load_partial_section(tmp_path):
    """Missing keys fall back to defaults."""
    config_path = tmp_path / "config.toml"
    config_path.write_text('[polling]\nprocesses = 3.0\n\n[tui.colors]\ncpu = "blue"\n')
    config = Config.load(config_path)
    assert config.polling.processes == 3.0
    assert config.polling.users == 2.0
    assert config.tui.colors.cpu == "blue"
    assert config.tui.colors.memory == "#bd93f9"


def test_config_load_missing_file_returns_defaults(tmp_path):
    """A missing file yields a default Config."""
    assert Config.load(tmp_path / "nonexistent.toml") == Config()


def test_config_load_empty_file_equals_defaults(tmp_path):
    """An empty file and no file load the same config."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("")
    assert Config.load(config_path) == Config()


def test_config_load_invalid_toml(tmp_path):
    """Malformed TOML raises ValueError naming the file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[polling\n")
    with pytest.raises(ValueError, match="Failed to parse"):
        Config.load(config_path)


@pytest.mark.parametrize(
    "content, message",
    [
        ('[polling]\nupdate_speed = "ludicrous"\n', "update_speed"),
        ("[polling]\nprocesses = 0\n", "processes interval"),
        ("[polling]\npoll_timeout = -1\n", "poll_timeout"),
        ("[series]\ncapacity = 0\n", "capacity"),
        ('[sorting]\nkey = "swap"\n', "sort key"),
        ('[logging]\nlevel = "loud"\n', "log level"),
        ("[tui.sparkline]\nheight = 9\n", "height"),
    ],
)
def test_config_load_rejects_invalid_values(tmp_path, content, message):
    """Out-of-range values fail at load time."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(content)
    with pytest.raises(ValueError, match=message):
        Config.load(config_path)


def test_config_dumps_has_every_section():
    """dumps() renders every section."""
    text = Config().dumps()
    for section in ("[polling]", "[series]", "[sorting]", "[logging]", "[tui.colors]"):
        assert section in text
