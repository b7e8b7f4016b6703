from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from ..errors import InferenceError
from ..types import RawDetections

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - thread_count: intra-op CPU threads (`torch.set_num_threads`). This is
      process-wide: the last TorchScript backend created sets it for every
      torch model in the process, so pipelines sharing a process should
      agree on it.
    - quantized: feed the model raw uint8 pixels instead of float32 in [0, 1]
    """

    device: str = "cpu"
    thread_count: int = 1
    quantized: bool = False


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load`.

    The scripted module must take an NHWC tensor and return a tuple/list of
    (boxes, classes, scores, count).
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.quantized = cfg.quantized
        torch.set_num_threads(cfg.thread_count)

        try:
            model = torch.jit.load(str(self.model_path), map_location=self.device)
        except Exception as exc:
            raise InferenceError(f"Failed to load TorchScript model {self.model_path}: {exc}") from exc
        model.eval()
        self.model = model

    def invoke(self, tensor: np.ndarray) -> RawDetections:
        torch = self._torch
        x = torch.as_tensor(tensor, device=self.device).contiguous()

        try:
            with torch.no_grad():
                y = self.model(x)
        except Exception as exc:
            raise InferenceError(f"TorchScript inference failed: {exc}") from exc

        if not isinstance(y, (tuple, list)):
            raise InferenceError(f"Expected a tuple of 4 outputs, got {type(y).__name__}")

        outputs = [o.detach().to("cpu").numpy() if hasattr(o, "detach") else np.asarray(o) for o in y]
        return RawDetections.from_outputs(outputs)
