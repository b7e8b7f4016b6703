from __future__ import annotations


class InferenceError(RuntimeError):
    """
    Raised when the detection engine cannot produce a result for a frame.

    Covers model session faults as well as malformed output tensors. The
    pipeline treats it as per-frame: the frame is dropped, the next one runs.
    """


class OutputShapeError(InferenceError):
    """Raw output tensors do not satisfy the boxes/classes/scores/count layout."""


class PreprocessError(RuntimeError):
    """Resizing or cropping a frame to the model input failed."""
