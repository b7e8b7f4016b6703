"""
Pre/post-processing around single-shot (SSD) object detectors.

A camera frame (BGRA bytes) becomes an NHWC input tensor, a pluggable
engine runs the model, and the four raw output tensors are decoded into
threshold-filtered, confidence-sorted detections in frame pixels. Core
modules need only NumPy; OpenCV covers resizing and drawing, and the
inference runtimes live under `ssd_kit.backends`.
"""

from .types import Color, Detection, Frame, FrameResult, RawDetections, Rect
from .errors import InferenceError, OutputShapeError, PreprocessError
from .colors import DEFAULT_PALETTE, color_for_class
from .labels import LabelTable, load_labels
from .preprocess import crop_and_resize, frame_to_tensor
from .decode import SsdDecoder, decode
from .engine import CallableEngine, DetectionEngine
from .config import PipelineConfig, load_pipeline_config
from .runtime import SsdPipeline, load_pipeline, resolve_path
from .worker import FrameWorker
from .overlay import caption, draw_detections, to_view_rect

__all__ = [
    "Color",
    "Detection",
    "Frame",
    "FrameResult",
    "RawDetections",
    "Rect",
    "InferenceError",
    "OutputShapeError",
    "PreprocessError",
    "DEFAULT_PALETTE",
    "color_for_class",
    "LabelTable",
    "load_labels",
    "crop_and_resize",
    "frame_to_tensor",
    "SsdDecoder",
    "decode",
    "CallableEngine",
    "DetectionEngine",
    "PipelineConfig",
    "load_pipeline_config",
    "SsdPipeline",
    "load_pipeline",
    "resolve_path",
    "FrameWorker",
    "caption",
    "draw_detections",
    "to_view_rect",
]
