from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..engine import check_input
from ..errors import InferenceError
from ..types import RawDetections

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - thread_count: intra-op threads for the session
    - input_name: override the auto-selected input
    - output_names: the four outputs in boxes, classes, scores, count order;
      None takes the model's first four outputs as declared
    """

    providers: Optional[Sequence[str]] = None
    thread_count: int = 1
    input_name: Optional[str] = None
    output_names: Optional[Sequence[str]] = None


def _static_shape(shape: Sequence[object]) -> Tuple[int, ...]:
    # Symbolic / unknown dims come back as str or None.
    return tuple(d if isinstance(d, int) else -1 for d in shape)


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for SSD-style detectors.

    Expects an NHWC blob shaped (1, H, W, 3): uint8 when the model input is
    `tensor(uint8)`, float32 otherwise.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.intra_op_num_threads = cfg.thread_count
        providers = list(cfg.providers) if cfg.providers is not None else None
        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        except Exception as exc:
            raise InferenceError(f"Failed to create ONNX Runtime session for {self.model_path}: {exc}") from exc

        inputs = {i.name: i for i in self.session.get_inputs()}
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        if self.input_name not in inputs:
            raise ValueError(f"Input name {self.input_name!r} not found. Available: {sorted(inputs)}")
        model_input = inputs[self.input_name]
        self.input_shape = _static_shape(model_input.shape)
        self.quantized = model_input.type == "tensor(uint8)"

        available = [o.name for o in self.session.get_outputs()]
        names: List[str] = list(cfg.output_names) if cfg.output_names is not None else available[:4]
        if len(names) != 4:
            raise ValueError(f"SSD detector needs 4 outputs (boxes, classes, scores, count), got {names}")
        missing = [n for n in names if n not in available]
        if missing:
            raise ValueError(f"Output names {missing} not found. Available: {available}")
        self.output_names = names

        logger.info(
            "ONNX Runtime session ready: %s input=%s%s quantized=%s providers=%s",
            self.model_path.name,
            self.input_name,
            self.input_shape,
            self.quantized,
            self.providers_in_use,
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def invoke(self, tensor: np.ndarray) -> RawDetections:
        check_input(tensor, self.input_shape, self.quantized)
        try:
            outputs = self.session.run(self.output_names, {self.input_name: tensor})
        except Exception as exc:
            raise InferenceError(f"ONNX Runtime inference failed: {exc}") from exc
        return RawDetections.from_outputs(outputs)
