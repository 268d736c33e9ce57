"""Sparkline widget for chart channels.

Series values are stored exactly as sampled, so anything unplottable (NaN,
negatives, values above the scale) is clamped here at render time.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import Static

if TYPE_CHECKING:
    from textual.app import RenderResult

BLOCKS = " ▁▂▃▄▅▆▇█"
LEVELS_PER_ROW = 8


def _parse_hex_color(hex_color: str) -> tuple[int, int, int]:
    """Parse "#RRGGBB" or "#RGB" into an RGB tuple."""
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join(c * 2 for c in hex_color)
    return (
        int(hex_color[0:2], 16),
        int(hex_color[2:4], 16),
        int(hex_color[4:6], 16),
    )


class GradientColor:
    """Maps a value onto a color interpolated between threshold stops.

    Example:
        ```python
        load = GradientColor([(0, "#50fa7b"), (50, "#f1fa8c"), (100, "#ff5555")])
        load(35)  # green-yellow
        ```
    """

    def __init__(self, stops: list[tuple[float, str]]) -> None:
        if len(stops) < 2:
            raise ValueError("Gradient requires at least 2 color stops")
        self._stops = [(t, _parse_hex_color(c)) for t, c in sorted(stops, key=lambda s: s[0])]

    def __call__(self, value: float) -> str:
        value = clamp(value, self._stops[0][0], self._stops[-1][0])
        for (t1, c1), (t2, c2) in zip(self._stops, self._stops[1:]):
            if value <= t2:
                t = (value - t1) / (t2 - t1) if t2 != t1 else 0.0
                r, g, b = (int(a + (z - a) * t) for a, z in zip(c1, c2))
                return f"#{r:02x}{g:02x}{b:02x}"
        r, g, b = self._stops[-1][1]
        return f"#{r:02x}{g:02x}{b:02x}"


def clamp(value: float, low: float, high: float) -> float:
    """Clamp into [low, high]; NaN becomes low."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def scale_max(values: Sequence[float], max_value: float | None) -> float:
    """Effective top of the scale: fixed max, or the largest finite sample."""
    if max_value is not None:
        return max_value
    finite = [v for v in values if math.isfinite(v) and v > 0]
    return max(finite) if finite else 1.0


def render_columns(
    values: Sequence[float],
    *,
    height: int = 1,
    max_value: float | None = 100.0,
    width: int | None = None,
) -> list[str]:
    """Render values as rows of block characters, top row first.

    Args:
        values: Samples oldest first; only the newest `width` are drawn.
        height: Character rows (1-4), each adding 8 levels.
        max_value: Top of the scale, or None to auto-scale to the data.
        width: Maximum columns; None draws every sample.

    Returns:
        `height` strings of equal length.
    """
    height = max(1, min(4, height))
    if width is not None and width >= 0:
        values = list(values)[-width:] if width else []
    top = scale_max(values, max_value)
    total_levels = height * LEVELS_PER_ROW

    rows = [[] for _ in range(height)]  # bottom row first
    for value in values:
        # Infinity reads as a full bar; NaN and negatives as empty
        level = int(clamp(value, 0.0, top) / top * total_levels) if top > 0 else 0
        for row in range(height):
            remaining = level - row * LEVELS_PER_ROW
            rows[row].append(BLOCKS[max(0, min(LEVELS_PER_ROW, remaining))])
    return ["".join(row) for row in reversed(rows)]


class Sparkline(Static):
    """A header sparkline showing one channel's rolling series.

    Example:
        ```python
        cpu = Sparkline("CPU", height=2, max_value=100)
        cpu.values = registry.get("cpu")
        ```
    """

    DEFAULT_CSS = """
    Sparkline {
        width: 1fr;
        height: auto;
    }
    """

    values: reactive[list[float]] = reactive(list, always_update=True)

    def __init__(
        self,
        label: str,
        height: int = 1,
        max_value: float | None = 100.0,
        color: str | Callable[[float], str] = "",
        format_value: Callable[[float], str] | None = None,
        **kwargs,
    ) -> None:
        """Initialize sparkline.

        Args:
            label: Channel caption shown above the bars.
            height: Number of character rows (1-4).
            max_value: Top of the scale. None auto-scales (rates).
            color: Rich color, or a function mapping the sample to one.
            format_value: Formats the latest sample for the caption.
            **kwargs: Passed to Static.__init__
        """
        super().__init__(**kwargs)
        self.label = label
        self._height = max(1, min(4, height))
        self._max_value = max_value
        self._color = color
        self._format_value = format_value

    def _style_for(self, value: float) -> str:
        if callable(self._color):
            return self._color(clamp(value, 0.0, self._max_value or value))
        return self._color

    def render(self) -> RenderResult:
        """Render caption plus bars as Rich Text."""
        values = list(self.values)
        width = self.size.width or None
        caption = Text(self.label, style="bold")
        if values and self._format_value is not None:
            caption.append(f" {self._format_value(values[-1])}", style="dim")

        rows = render_columns(values, height=self._height, max_value=self._max_value, width=width)
        drawn = values[-len(rows[0]) :] if rows[0] else []
        result = Text()
        result.append(caption)
        for row in rows:
            result.append("\n")
            for char, value in zip(row, drawn):
                style = self._style_for(value)
                if style:
                    result.append(char, style=style)
                else:
                    result.append(char)
        return result

    def watch_values(self, new_values: list[float]) -> None:
        """React to data changes by refreshing the widget."""
        self.refresh()
