from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from .config import PipelineConfig
from .decode import SsdDecoder
from .engine import DetectionEngine
from .errors import InferenceError, OutputShapeError, PreprocessError
from .labels import LabelTable, load_labels
from .preprocess import crop_and_resize, frame_to_tensor
from .types import Frame, FrameResult, RawDetections

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def resolve_path(path: PathLike, root: Optional[PathLike] = None) -> Path:
    """Absolute paths pass through; relative ones resolve against `root` (default: cwd)."""
    p = Path(path)
    if p.is_absolute():
        return p
    base = Path(root) if root is not None else Path.cwd()
    return (base / p).resolve()


class SsdPipeline:
    """
    One frame at a time: crop/resize -> tensor -> engine -> decode.

    A frame either yields a complete `FrameResult` or `None`; a failed frame
    leaves nothing behind and the next frame starts clean. Calls must not
    overlap; `FrameWorker` serializes them for live sources.
    """

    def __init__(
        self,
        engine: DetectionEngine,
        labels: LabelTable,
        *,
        config: PipelineConfig = PipelineConfig(),
        backend_name: Optional[str] = None,
    ):
        self.engine = engine
        self.labels = labels
        self.config = config
        self.backend_name = backend_name
        self.decoder = SsdDecoder(
            labels,
            threshold=config.confidence_threshold,
            palette=config.palette,
            color_stride=config.color_stride,
        )

    def preprocess(self, frame: Frame) -> np.ndarray:
        cfg = self.config
        scaled = crop_and_resize(frame, cfg.input_size)
        return frame_to_tensor(
            scaled,
            input_width=cfg.input_width,
            input_height=cfg.input_height,
            quantized=bool(self.engine.quantized),
            batch_size=cfg.batch_size,
        )

    def _check_bound(self, raw: RawDetections) -> None:
        expected = self.config.max_detections
        if expected is not None and raw.max_detections != expected:
            raise OutputShapeError(f"Engine returned {raw.max_detections} detection slots, expected {expected}")

    def run(self, frame: Frame) -> Optional[FrameResult]:
        try:
            tensor = self.preprocess(frame)
        except PreprocessError as exc:
            logger.warning("Dropping frame %dx%d: %s", frame.width, frame.height, exc)
            return None

        start = time.perf_counter()
        try:
            raw = self.engine.invoke(tensor)
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            self._check_bound(raw)
        except InferenceError as exc:
            logger.warning("Dropping frame %dx%d: %s", frame.width, frame.height, exc)
            return None

        detections = self.decoder.process(raw, (frame.width, frame.height))
        logger.debug("Inference %.1f ms, %d/%d detections kept", elapsed_ms, len(detections), raw.count)
        return FrameResult(inference_time_ms=elapsed_ms, detections=detections)

    __call__ = run


def load_pipeline(
    model_path: PathLike,
    labels_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = None,
    config: PipelineConfig = PipelineConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_names: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_quantized: bool = False,
) -> SsdPipeline:
    """
    Build a pipeline for a detector and label map on disk.

    Typical usage:
        pipe = load_pipeline("Models/detect.onnx", "Models/labelmap.txt")

    Args:
        model_path: detector file; relative paths resolve against `root`
        labels_path: label map, first line is a placeholder
        backend: "onnxruntime" / "torchscript", or None to infer from the extension
        root: base directory for relative paths (default: the working directory)

    Raises FileNotFoundError / ValueError / ImportError when the pipeline cannot start.
    """

    resolved = resolve_path(model_path, root=root)
    if not resolved.exists():
        raise FileNotFoundError(f"Model file not found: {resolved}")
    labels = load_labels(resolve_path(labels_path, root=root))

    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    engine: DetectionEngine
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        engine = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                thread_count=config.thread_count,
                input_name=onnx_input_name,
                output_names=onnx_output_names,
            ),
        )
    elif chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        engine = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, thread_count=config.thread_count, quantized=torch_quantized),
        )
    else:
        raise ValueError(f"Unsupported backend: {backend!r}")

    logger.info("Loaded %s pipeline from %s (%d labels)", chosen, resolved, len(labels))
    return SsdPipeline(engine, labels, config=config, backend_name=chosen)
