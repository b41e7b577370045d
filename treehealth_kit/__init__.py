"""
Tree-health defect detection pipeline.

Decodes an uploaded image, runs it through a pre-trained SSD-style detection
model (boxes, scores, classes, count outputs), parses the raw tensors into
typed detections and renders them back onto the image. Serving (HTTP, uploads)
is left to the caller.
"""

from .classes import DEFAULT_CLASS_TABLE, ClassTable, load_class_table
from .config import PipelineConfig, load_pipeline_config
from .engine import InferenceEngine, ModelReadiness, ReadinessState, load_backend
from .errors import (
    DecodeError,
    InvalidModelOutputError,
    ModelNotReadyError,
    RenderError,
    TreeHealthError,
    UnknownClassIndexError,
)
from .postprocess import parse
from .preprocess import PreprocessConfig, decode_image, preprocess
from .runtime import DetectionPipeline, load_pipeline
from .types import BoundingBox, Detection, RawModelOutput, detections_to_payload
from .visualize import PaletteColor, RandomColor, draw_detections, render

__all__ = [
    "DEFAULT_CLASS_TABLE",
    "ClassTable",
    "load_class_table",
    "PipelineConfig",
    "load_pipeline_config",
    "InferenceEngine",
    "ModelReadiness",
    "ReadinessState",
    "load_backend",
    "DecodeError",
    "InvalidModelOutputError",
    "ModelNotReadyError",
    "RenderError",
    "TreeHealthError",
    "UnknownClassIndexError",
    "parse",
    "PreprocessConfig",
    "decode_image",
    "preprocess",
    "DetectionPipeline",
    "load_pipeline",
    "BoundingBox",
    "Detection",
    "RawModelOutput",
    "detections_to_payload",
    "PaletteColor",
    "RandomColor",
    "draw_detections",
    "render",
]
