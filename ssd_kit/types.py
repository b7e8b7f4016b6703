from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import numpy as np

from .errors import OutputShapeError

BGRA_CHANNELS = 4


@dataclass(frozen=True)
class Color:
    """
    RGBA color with float components in [0, 1].
    """

    r: float
    g: float
    b: float
    a: float = 1.0

    @classmethod
    def from_rgb255(cls, r: int, g: int, b: int, a: float = 1.0) -> "Color":
        return cls(r / 255.0, g / 255.0, b / 255.0, a)

    def to_bgr255(self) -> Tuple[int, int, int]:
        # OpenCV expects BGR byte triplets.
        return (
            int(round(self.b * 255)),
            int(round(self.g * 255)),
            int(round(self.r * 255)),
        )


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    def scaled(self, sx: float, sy: float) -> "Rect":
        return Rect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.max_x, self.max_y


@dataclass(frozen=True)
class Detection:
    """
    One decoded detection in source-image pixel coordinates.
    """

    confidence: float
    class_name: str
    bounding_box: Rect
    display_color: Color
    class_id: int = field(default=-1, compare=False)


@dataclass(frozen=True)
class FrameResult:
    inference_time_ms: float
    detections: List[Detection]

    def has_confident(self, min_confidence: float = 0.9) -> bool:
        """True when any detection is confident enough to be worth a snapshot."""
        return any(d.confidence >= min_confidence for d in self.detections)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    Read-only BGRA camera frame, shape (H, W, 4), uint8, no row padding.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        p = np.asarray(self.pixels)
        if p.dtype != np.uint8:
            raise TypeError(f"Frame pixels must be uint8, got {p.dtype}")
        if p.ndim != 3 or p.shape[2] != BGRA_CHANNELS:
            raise ValueError(f"Expected frame shape (H, W, 4), got {p.shape}")
        view = p.view()
        view.flags.writeable = False
        object.__setattr__(self, "pixels", view)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray, memoryview], width: int, height: int) -> "Frame":
        expected = width * height * BGRA_CHANNELS
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for a {width}x{height} BGRA frame, got {len(data)}")
        buf = np.frombuffer(data, dtype=np.uint8).reshape(height, width, BGRA_CHANNELS)
        return cls(buf)

    @classmethod
    def from_bgr(cls, image_bgr: np.ndarray) -> "Frame":
        """Wrap an OpenCV BGR image, adding an opaque alpha channel."""
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
        alpha = np.full(image_bgr.shape[:2] + (1,), 255, dtype=np.uint8)
        return cls(np.concatenate([image_bgr.astype(np.uint8, copy=False), alpha], axis=2))


@dataclass(frozen=True, eq=False)
class RawDetections:
    """
    Four parallel output tensors of an SSD-style detector for one invocation.

    `boxes` holds `top, left, bottom, right` quadruples in normalized model
    space; `classes` holds float-encoded class ids.
    """

    boxes: np.ndarray
    classes: np.ndarray
    scores: np.ndarray
    count: int

    def __post_init__(self) -> None:
        boxes = np.asarray(self.boxes, dtype=np.float32).reshape(-1)
        classes = np.asarray(self.classes, dtype=np.float32).reshape(-1)
        scores = np.asarray(self.scores, dtype=np.float32).reshape(-1)
        max_det = scores.shape[0]

        if classes.shape[0] != max_det:
            raise OutputShapeError(f"classes has {classes.shape[0]} entries but scores has {max_det}")
        if boxes.shape[0] != 4 * max_det:
            raise OutputShapeError(f"boxes has {boxes.shape[0]} values, expected 4 * {max_det}")
        if not 0 <= int(self.count) <= max_det:
            raise OutputShapeError(f"count {self.count} outside [0, {max_det}]")

        object.__setattr__(self, "boxes", boxes)
        object.__setattr__(self, "classes", classes)
        object.__setattr__(self, "scores", scores)
        object.__setattr__(self, "count", int(self.count))

    @property
    def max_detections(self) -> int:
        return int(self.scores.shape[0])

    @classmethod
    def from_outputs(cls, outputs: Sequence[np.ndarray]) -> "RawDetections":
        """
        Build from engine outputs ordered boxes, classes, scores, count.

        Any leading batch axis is flattened away; the count tensor holds a
        single float.
        """

        if len(outputs) < 4:
            raise OutputShapeError(f"Expected 4 output tensors, got {len(outputs)}")
        boxes, classes, scores, count = outputs[:4]
        count_arr = np.asarray(count).reshape(-1)
        if count_arr.size == 0:
            raise OutputShapeError("count tensor is empty")
        if not np.isfinite(count_arr[0]):
            raise OutputShapeError(f"count is not finite: {count_arr[0]}")
        return cls(boxes=boxes, classes=classes, scores=scores, count=int(count_arr[0]))
