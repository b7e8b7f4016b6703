from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np

from .types import Detection, Rect

DEFAULT_EDGE_OFFSET = 2.0


def to_view_rect(
    rect: Rect,
    image_size: Tuple[float, float],
    view_size: Tuple[float, float],
    edge_offset: float = DEFAULT_EDGE_OFFSET,
) -> Rect:
    """
    Map an image-space box into a view of another size and keep it on screen.

    A box starting off the top/left edge is pulled in to `edge_offset`; one
    running past the right/bottom edge is shortened to end `edge_offset`
    inside it.
    """

    image_w, image_h = image_size
    view_w, view_h = view_size
    r = rect.scaled(view_w / image_w, view_h / image_h)
    x, y, w, h = r.x, r.y, r.width, r.height

    if x < 0:
        x = edge_offset
    if y < 0:
        y = edge_offset
    if y + h > view_h:
        h = view_h - y - edge_offset
    if x + w > view_w:
        w = view_w - x - edge_offset

    return Rect(x, y, w, h)


def caption(detection: Detection) -> str:
    return f"{detection.class_name}  ({int(detection.confidence * 100.0)}%)"


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    image_size: Optional[Tuple[int, int]] = None,
    show_caption: bool = True,
    box_thickness: int = 3,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw boxes (and captions) on an OpenCV BGR image and return a copy.

    Args:
        image_bgr: target image in BGR (H, W, 3).
        detections: output of the decoder, in source-frame pixel coordinates.
        image_size: (width, height) of the frame the detections came from;
            defaults to the target image size.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]
    src_size = image_size if image_size is not None else (w, h)

    for det in detections:
        box = to_view_rect(det.bounding_box, src_size, (w, h))
        x1, y1, x2, y2 = (int(round(v)) for v in box.as_xyxy())
        color = det.display_color.to_bgr255()
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)

        if not show_caption:
            continue

        label = caption(det)
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1 - th - baseline
        if y_text_top < 0:
            y_text_top = y1

        x_text_right = min(x1 + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
