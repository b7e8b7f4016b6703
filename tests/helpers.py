from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from ssd_kit.labels import LabelTable

LABELS = LabelTable(("???", "person", "bicycle", "car", "motorcycle", ""))


def raw_outputs(
    rows: Sequence[Tuple[Tuple[float, float, float, float], int, float]],
    max_detections: int = 10,
    count: Optional[int] = None,
):
    """Build (boxes, classes, scores, count) arrays shaped like a TFLite SSD export."""
    boxes = np.zeros((1, max_detections, 4), dtype=np.float32)
    classes = np.zeros((1, max_detections), dtype=np.float32)
    scores = np.zeros((1, max_detections), dtype=np.float32)
    for i, (box, cls, score) in enumerate(rows):
        boxes[0, i] = box
        classes[0, i] = cls
        scores[0, i] = score
    n = len(rows) if count is None else count
    return boxes, classes, scores, np.array([float(n)], dtype=np.float32)


def bgra_frame(width: int, height: int, bgra=(10, 20, 30, 255)) -> np.ndarray:
    px = np.empty((height, width, 4), dtype=np.uint8)
    px[...] = bgra
    return px
