from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]

# Output names used by TF Object Detection API exports.
TF_OD_OUTPUT_NAMES = ("detection_boxes", "detection_scores", "detection_classes", "num_detections")

_ORT_TYPE_TO_DTYPE: Dict[str, str] = {
    "tensor(float)": "float32",
    "tensor(float16)": "float16",
    "tensor(double)": "float64",
    "tensor(uint8)": "uint8",
    "tensor(int16)": "int16",
    "tensor(int32)": "int32",
    "tensor(int64)": "int64",
}


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected input
    - output_names: the four outputs in order boxes, scores, classes, count
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_names: Optional[Sequence[str]] = None


def select_output_names(available: Sequence[str], requested: Optional[Sequence[str]] = None) -> List[str]:
    """
    Pick the four detection outputs in document order.

    Explicit names win; then TF Object Detection names; then the first four outputs.
    """

    if requested is not None:
        requested = list(requested)
        if len(requested) != 4:
            raise ValueError(f"output_names must list exactly 4 outputs, got {len(requested)}")
        missing = [n for n in requested if n not in available]
        if missing:
            raise ValueError(f"Output names {missing} not found. Available: {list(available)}")
        return requested

    if all(n in available for n in TF_OD_OUTPUT_NAMES):
        return list(TF_OD_OUTPUT_NAMES)

    if len(available) < 4:
        raise ValueError(f"Model exposes {len(available)} outputs; a detection model needs 4.")
    return list(available[:4])


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for single-image detection models.

    `InferenceSession.run` is safe to call from several threads, so one backend
    instance is shared by all in-flight requests.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        inputs = {i.name: i for i in self.session.get_inputs()}
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        if self.input_name not in inputs:
            raise ValueError(f"Input name {self.input_name!r} not found. Available: {list(inputs)}")
        declared = inputs[self.input_name].type
        if declared == "tensor(int8)":
            raise ValueError("int8 model inputs are not supported: pixel values above 127 do not fit")
        self.input_dtype: Optional[str] = _ORT_TYPE_TO_DTYPE.get(declared)

        available = [o.name for o in self.session.get_outputs()]
        self.output_names = select_output_names(available, cfg.output_names)

    def run(self, blob: np.ndarray) -> List[np.ndarray]:
        outputs = self.session.run(self.output_names, {self.input_name: blob})
        return [np.asarray(o) for o in outputs]
