from __future__ import annotations

from typing import Sequence, Tuple

from .types import Color

DEFAULT_COLOR_STRIDE = 10

DEFAULT_PALETTE: Tuple[Color, ...] = (
    Color(1.0, 0.0, 0.0),  # red
    Color.from_rgb255(90, 200, 250),
    Color(0.0, 1.0, 0.0),  # green
    Color(1.0, 0.5, 0.0),  # orange
    Color(0.0, 0.0, 1.0),  # blue
    Color(0.5, 0.0, 0.5),  # purple
    Color(1.0, 0.0, 1.0),  # magenta
    Color(1.0, 1.0, 0.0),  # yellow
    Color(0.0, 1.0, 1.0),  # cyan
    Color(0.6, 0.4, 0.2),  # brown
)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def shade_percentage(class_id: int, palette_size: int, stride: int = DEFAULT_COLOR_STRIDE) -> int:
    """
    Shade offset in percent: positive lightens, negative darkens.

    Ids sharing a palette slot get a different shade every `palette_size` ids.
    """

    return (stride // 2 - _trunc_div(class_id, palette_size)) * stride


def modify_color(color: Color, percentage: float) -> Color:
    """Shift every RGB component by `percentage / 100`, clamped to [0, 1]. Alpha is kept."""
    if percentage == 0:
        return color
    delta = percentage / 100.0

    def _shift(c: float) -> float:
        return min(max(c + delta, 0.0), 1.0)

    return Color(_shift(color.r), _shift(color.g), _shift(color.b), color.a)


def color_for_class(
    class_id: int,
    palette: Sequence[Color] = DEFAULT_PALETTE,
    stride: int = DEFAULT_COLOR_STRIDE,
) -> Color:
    """
    Deterministic display color for a class id.

    The base color cycles through `palette`; the shade shifts once per full cycle.
    """

    if not palette:
        raise ValueError("palette must not be empty")
    base = palette[class_id % len(palette)]
    return modify_color(base, shade_percentage(class_id, len(palette), stride))
