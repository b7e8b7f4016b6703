from __future__ import annotations

from typing import Callable, Protocol, Sequence

import numpy as np

from .errors import InferenceError
from .types import RawDetections


class DetectionEngine(Protocol):
    """
    Anything that maps one NHWC input tensor to SSD raw outputs.

    `quantized` tells the preprocessor whether to feed uint8 bytes or
    float32 values in [0, 1]. `invoke` raises `InferenceError` on failure.
    """

    quantized: bool

    def invoke(self, tensor: np.ndarray) -> RawDetections:
        ...


class CallableEngine:
    """
    Adapts a plain function returning (boxes, classes, scores, count) arrays.

    Handy for mocks and for runtimes without a dedicated backend.
    """

    def __init__(self, fn: Callable[[np.ndarray], Sequence[np.ndarray]], *, quantized: bool = False):
        self._fn = fn
        self.quantized = quantized

    def invoke(self, tensor: np.ndarray) -> RawDetections:
        try:
            outputs = self._fn(tensor)
        except InferenceError:
            raise
        except Exception as exc:
            raise InferenceError(f"Engine call failed: {exc}") from exc
        return RawDetections.from_outputs(outputs)


def check_input(tensor: np.ndarray, expected_shape: Sequence[int], quantized: bool) -> None:
    """Raise InferenceError when `tensor` does not fit the model input. Dims <= 0 are dynamic."""
    shape = tuple(int(s) for s in tensor.shape)
    if len(shape) != len(expected_shape) or any(e > 0 and e != s for e, s in zip(expected_shape, shape)):
        raise InferenceError(f"Input tensor shape {shape} does not match model input {tuple(expected_shape)}")
    want = np.uint8 if quantized else np.float32
    if tensor.dtype != want:
        raise InferenceError(f"Input tensor dtype {tensor.dtype} does not match model input {np.dtype(want)}")
