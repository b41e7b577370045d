from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .preprocess import PreprocessConfig


_BACKENDS = {"onnxruntime", "torchscript"}
_COLOR_STRATEGIES = {"random", "palette"}
_IMAGE_FORMATS = {"png", "jpg", "jpeg"}


@dataclass(frozen=True)
class PipelineConfig:
    model_path: str
    schema_version: int = 1
    backend: Optional[str] = None
    class_table_path: Optional[str] = None
    class_index_offset: int = 0
    input_size: Optional[Tuple[int, int]] = None
    input_layout: str = "NHWC"
    input_dtype: Optional[str] = None
    color_strategy: str = "random"
    color_seed: Optional[int] = None
    image_format: str = "png"
    onnx_providers: Optional[Tuple[str, ...]] = None
    input_name: Optional[str] = None
    output_names: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("pipeline config schema_version must be 1")
        if not self.model_path:
            raise ValueError("model_path must be a non-empty string")
        if self.backend is not None and self.backend not in _BACKENDS:
            raise ValueError(f"backend must be one of {sorted(_BACKENDS)}")
        if self.class_index_offset < 0:
            raise ValueError("class_index_offset must be >= 0")
        if self.color_strategy not in _COLOR_STRATEGIES:
            raise ValueError(f"color_strategy must be one of {sorted(_COLOR_STRATEGIES)}")
        if self.image_format not in _IMAGE_FORMATS:
            raise ValueError(f"image_format must be one of {sorted(_IMAGE_FORMATS)}")
        if self.output_names is not None and len(self.output_names) != 4:
            raise ValueError("output_names must list exactly 4 outputs (boxes, scores, classes, count)")
        # Validates dtype/layout/size combinations early.
        self.preprocess_config()

    def preprocess_config(self, model_input_dtype: Optional[str] = None) -> PreprocessConfig:
        """
        Input contract for the preprocessor. An explicit `input_dtype` wins over
        the dtype the model declares.
        """

        return PreprocessConfig(
            input_dtype=self.input_dtype or model_input_dtype or "float32",
            input_size=self.input_size,
            layout=self.input_layout,
        )


def _require_str(payload: Dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string if provided")
    return value


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_str_list(payload: Dict[str, Any], key: str) -> Optional[Tuple[str, ...]]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key} must be a string or list of strings")
    cleaned: List[str] = [item.strip() for item in value]
    if not cleaned or any(not item for item in cleaned):
        raise ValueError(f"{key} must not contain empty strings")
    return tuple(cleaned)


def _optional_size(payload: Dict[str, Any], key: str) -> Optional[Tuple[int, int]]:
    value = payload.get(key)
    if value is None:
        return None
    if (
        not isinstance(value, list)
        or len(value) != 2
        or any(isinstance(v, bool) or not isinstance(v, int) or v < 1 for v in value)
    ):
        raise ValueError(f"{key} must be [width, height] with positive integers")
    return int(value[0]), int(value[1])


def load_pipeline_config(path: Path) -> PipelineConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "schema_version",
        "model_path",
        "backend",
        "class_table_path",
        "class_index_offset",
        "input_size",
        "input_layout",
        "input_dtype",
        "color_strategy",
        "color_seed",
        "image_format",
        "onnx_providers",
        "input_name",
        "output_names",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    schema_version = _optional_int(payload, "schema_version")
    if schema_version is None:
        raise ValueError("Missing required key: schema_version")
    class_index_offset = _optional_int(payload, "class_index_offset")

    return PipelineConfig(
        schema_version=schema_version,
        model_path=_require_str(payload, "model_path"),
        backend=_optional_str(payload, "backend"),
        class_table_path=_optional_str(payload, "class_table_path"),
        class_index_offset=0 if class_index_offset is None else class_index_offset,
        input_size=_optional_size(payload, "input_size"),
        input_layout=_optional_str(payload, "input_layout") or "NHWC",
        input_dtype=_optional_str(payload, "input_dtype"),
        color_strategy=_optional_str(payload, "color_strategy") or "random",
        color_seed=_optional_int(payload, "color_seed"),
        image_format=_optional_str(payload, "image_format") or "png",
        onnx_providers=_optional_str_list(payload, "onnx_providers"),
        input_name=_optional_str(payload, "input_name"),
        output_names=_optional_str_list(payload, "output_names"),
    )
