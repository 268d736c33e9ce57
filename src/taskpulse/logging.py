"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Core log functions (log, info, warn, error)
3. Domain-specific helpers (poll_failed, config_created, config_exists)
4. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from taskpulse.config import Config

# Rich console for human-readable output; stderr keeps stdout clean for CLI tables
_console = Console(highlight=False, stderr=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    FAIL = "[bold red]✗[/]"
    SKIP = "[yellow]↷[/]"
    SAVE = "💾"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.FAIL)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def poll_failed(name: str, error_msg: str) -> None:
    """Log a poll that produced no fresh data."""
    error(f"[cyan]{name}[/] poll failed: {error_msg}", Icon.FAIL)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]", Icon.SAVE)


def config_exists(path: str) -> None:
    """Log config file already present."""
    warn(f"Config already exists at [cyan]{path}[/]", Icon.SKIP)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, source: str = "taskpulse") -> None:
    """Configure structlog to write JSON lines to a rotating log file.

    Human-readable output goes through the Rich helpers above; structlog
    only feeds the file.

    Args:
        config: Application config with paths and rotation settings
        source: Value of the "source" field on every record (e.g. "tui", "cli")
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.log_max_bytes,
        backupCount=config.logging.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source(source),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source(source),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
