from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import PreprocessError
from .types import Frame

RGB_CHANNELS = 3
# BGRA layout: alpha is index 3 and is skipped; R is index 2.
LAST_BGR_COMPONENT = 2


def expected_element_count(input_width: int, input_height: int, batch_size: int = 1) -> int:
    return batch_size * input_width * input_height * RGB_CHANNELS


def frame_to_tensor(
    frame: Frame,
    *,
    input_width: int,
    input_height: int,
    quantized: bool,
    batch_size: int = 1,
) -> np.ndarray:
    """
    Convert a model-sized BGRA frame to an NHWC RGB input tensor.

    Alpha is dropped and the color channels are reversed (BGR -> RGB). A
    quantized model gets the raw bytes as uint8; a float model gets
    `value / 255.0` as float32.

    Returns:
        array shaped (batch_size, input_height, input_width, 3)
    """

    if (frame.width, frame.height) != (input_width, input_height):
        raise ValueError(
            f"Frame is {frame.width}x{frame.height}, model expects {input_width}x{input_height}. "
            "Run crop_and_resize() first."
        )

    rgb = frame.pixels[:, :, LAST_BGR_COMPONENT::-1]
    expected = expected_element_count(input_width, input_height, batch_size)
    if rgb.size * batch_size != expected:
        raise ValueError(f"RGB data has {rgb.size * batch_size} elements, expected {expected}")

    if quantized:
        tensor = rgb
    else:
        tensor = rgb.astype(np.float32) / 255.0

    return np.repeat(tensor[None, ...], batch_size, axis=0)


def crop_and_resize(frame: Frame, size: Tuple[int, int]) -> Frame:
    """
    Center-crop to the largest square and scale down to `size` (width, height).

    Frames already at `size` are returned unchanged.
    """

    target_w, target_h = size
    if (frame.width, frame.height) == (target_w, target_h):
        return frame

    h, w = frame.height, frame.width
    side = min(h, w)
    if side == 0:
        raise PreprocessError(f"Cannot crop an empty {w}x{h} frame")

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for crop_and_resize(). Install with `pip install opencv-python`.") from e

    top = (h - side) // 2
    left = (w - side) // 2
    square = frame.pixels[top : top + side, left : left + side]

    try:
        resized = cv2.resize(np.ascontiguousarray(square), (target_w, target_h), interpolation=cv2.INTER_AREA)
    except cv2.error as e:
        raise PreprocessError(f"Resize to {target_w}x{target_h} failed: {e}") from e

    return Frame(resized)
