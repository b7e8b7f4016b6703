from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .colors import DEFAULT_COLOR_STRIDE, DEFAULT_PALETTE
from .types import Color

THREAD_COUNT_LIMIT = 10


@dataclass(frozen=True)
class PipelineConfig:
    """
    Fixed model geometry and decode settings for one pipeline instance.

    Defaults match MobileNet SSD (300x300 RGB input).
    """

    thread_count: int = 1
    confidence_threshold: float = 0.5
    input_width: int = 300
    input_height: int = 300
    input_channels: int = 3
    batch_size: int = 1
    # None accepts whatever upper bound the engine reports.
    max_detections: Optional[int] = None
    color_stride: int = DEFAULT_COLOR_STRIDE
    palette: Tuple[Color, ...] = DEFAULT_PALETTE

    def __post_init__(self) -> None:
        if not 1 <= self.thread_count <= THREAD_COUNT_LIMIT:
            raise ValueError(f"thread_count must be in [1, {THREAD_COUNT_LIMIT}]")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be in [0, 1]")
        if self.input_width <= 0 or self.input_height <= 0:
            raise ValueError("input_width and input_height must be > 0")
        if self.input_channels != 3:
            raise ValueError("input_channels must be 3 (RGB)")
        if self.batch_size != 1:
            raise ValueError("batch_size must be 1")
        if self.max_detections is not None and self.max_detections <= 0:
            raise ValueError("max_detections must be > 0")
        if self.color_stride <= 0:
            raise ValueError("color_stride must be > 0")
        if not self.palette:
            raise ValueError("palette must not be empty")

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.input_width, self.input_height


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _parse_palette(value: Any) -> Tuple[Color, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError("palette must be a non-empty list of [r, g, b] or [r, g, b, a] entries (0-255 ints)")
    colors = []
    for entry in value:
        if not isinstance(entry, list) or len(entry) not in (3, 4):
            raise ValueError(f"Invalid palette entry: {entry!r}")
        if any(isinstance(c, bool) or not isinstance(c, int) or not 0 <= c <= 255 for c in entry[:3]):
            raise ValueError(f"Palette RGB components must be ints in [0, 255]: {entry!r}")
        alpha = float(entry[3]) if len(entry) == 4 else 1.0
        colors.append(Color.from_rgb255(entry[0], entry[1], entry[2], alpha))
    return tuple(colors)


_INT_KEYS = ("thread_count", "input_width", "input_height", "input_channels", "batch_size", "max_detections", "color_stride")


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Read a JSON pipeline config. Missing keys keep their defaults; unknown keys are rejected.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = set(_INT_KEYS) | {"confidence_threshold", "palette"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in _INT_KEYS:
        if key not in payload:
            continue
        if key == "max_detections" and payload[key] is None:
            kwargs[key] = None
        else:
            kwargs[key] = _require_int(payload, key)
    if "confidence_threshold" in payload:
        kwargs["confidence_threshold"] = _require_number(payload, "confidence_threshold")
    if "palette" in payload:
        kwargs["palette"] = _parse_palette(payload["palette"])

    return PipelineConfig(**kwargs)
