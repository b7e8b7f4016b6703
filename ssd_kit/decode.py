from __future__ import annotations

from typing import List, Sequence, Tuple

from .colors import DEFAULT_COLOR_STRIDE, DEFAULT_PALETTE, color_for_class
from .labels import LabelTable
from .types import Color, Detection, RawDetections, Rect


def normalized_rect(raw: RawDetections, i: int) -> Rect:
    """
    Box `i` as a normalized Rect.

    The detector writes `top, left, bottom, right`, not `x, y, w, h`.
    """

    top, left, bottom, right = (float(v) for v in raw.boxes[4 * i : 4 * i + 4])
    return Rect(x=left, y=top, width=right - left, height=bottom - top)


def decode(
    raw: RawDetections,
    labels: LabelTable,
    image_width: float,
    image_height: float,
    threshold: float,
    *,
    palette: Sequence[Color] = DEFAULT_PALETTE,
    color_stride: int = DEFAULT_COLOR_STRIDE,
) -> List[Detection]:
    """
    Turn raw SSD outputs into detections sorted by descending confidence.

    Entries scoring below `threshold` are dropped. Boxes are scaled from
    model space to the source image independently per axis.
    """

    results: List[Detection] = []
    if raw.count == 0:
        return results

    for i in range(raw.count):
        score = float(raw.scores[i])
        if not score >= threshold:
            continue

        class_id = int(raw.classes[i])
        class_name = labels.lookup(class_id)
        rect = normalized_rect(raw, i).scaled(image_width, image_height)

        results.append(
            Detection(
                confidence=score,
                class_name=class_name,
                bounding_box=rect,
                display_color=color_for_class(class_id + 1, palette, color_stride),
                class_id=class_id,
            )
        )

    results.sort(key=lambda d: d.confidence, reverse=True)
    return results


class SsdDecoder:
    """
    Decoder bound to one label table and palette.

    Pipelines own their decoder, so two pipelines never share color or
    label state.
    """

    def __init__(
        self,
        labels: LabelTable,
        *,
        threshold: float = 0.5,
        palette: Sequence[Color] = DEFAULT_PALETTE,
        color_stride: int = DEFAULT_COLOR_STRIDE,
    ):
        self.labels = labels
        self.threshold = threshold
        self.palette = tuple(palette)
        self.color_stride = color_stride

    def process(self, raw: RawDetections, image_size: Tuple[int, int]) -> List[Detection]:
        """
        Args:
            raw: outputs of one engine invocation
            image_size: (width, height) of the source frame
        """

        width, height = image_size
        return decode(
            raw,
            self.labels,
            width,
            height,
            self.threshold,
            palette=self.palette,
            color_stride=self.color_stride,
        )
