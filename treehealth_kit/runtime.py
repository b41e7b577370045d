from __future__ import annotations

import asyncio
import functools
from typing import List, Optional, Sequence, Tuple

from .classes import DEFAULT_CLASS_TABLE, ClassTable, load_class_table
from .config import PipelineConfig
from .engine import InferenceEngine, load_backend, resolve_path
from .postprocess import parse
from .preprocess import PreprocessConfig, preprocess
from .types import Detection
from .visualize import ColorStrategy, PaletteColor, RandomColor, render


class DetectionPipeline:
    """
    Image bytes -> preprocess -> inference -> parse, plus rendering of results.

    `detect_objects` and `draw_bounding_boxes` are the two operations the
    serving layer maps onto its endpoint. Each call is all-or-nothing: any
    failure raises, and no partial detection list is returned.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        *,
        class_table: ClassTable = DEFAULT_CLASS_TABLE,
        preprocess_cfg: Optional[PreprocessConfig] = None,
        color_strategy: Optional[ColorStrategy] = None,
        image_format: str = "png",
        class_index_offset: int = 0,
    ):
        self.engine = engine
        self.class_table = class_table
        self._preprocess_cfg = preprocess_cfg
        self.color_strategy = color_strategy
        self.image_format = image_format
        self.class_index_offset = class_index_offset

    @property
    def preprocess_cfg(self) -> PreprocessConfig:
        """
        Explicit config if given, else the model's declared input dtype.
        """

        if self._preprocess_cfg is not None:
            return self._preprocess_cfg
        return PreprocessConfig(input_dtype=self.engine.input_dtype or "float32")

    async def detect_objects(self, image_bytes: bytes) -> List[Detection]:
        # Check readiness before decoding so early requests fail fast.
        self.engine.readiness.require_ready()
        blob = await asyncio.to_thread(preprocess, image_bytes, self.preprocess_cfg)
        raw = await self.engine.infer(blob)
        return parse(raw, self.class_table, class_index_offset=self.class_index_offset)

    async def draw_bounding_boxes(self, image_bytes: bytes, detections: Sequence[Detection]) -> bytes:
        return await asyncio.to_thread(
            functools.partial(
                render,
                image_bytes,
                list(detections),
                color_strategy=self.color_strategy,
                image_format=self.image_format,
            )
        )

    async def detect_and_draw(self, image_bytes: bytes) -> Tuple[List[Detection], bytes]:
        detections = await self.detect_objects(image_bytes)
        rendered = await self.draw_bounding_boxes(image_bytes, detections)
        return detections, rendered


def color_strategy_from_config(cfg: PipelineConfig) -> ColorStrategy:
    if cfg.color_strategy == "palette":
        return PaletteColor()
    return RandomColor(seed=cfg.color_seed)


class ConfiguredPipeline(DetectionPipeline):
    def __init__(self, cfg: PipelineConfig, engine: InferenceEngine, class_table: ClassTable):
        super().__init__(
            engine,
            class_table=class_table,
            color_strategy=color_strategy_from_config(cfg),
            image_format=cfg.image_format,
            class_index_offset=cfg.class_index_offset,
        )
        self.config = cfg

    @property
    def preprocess_cfg(self) -> PreprocessConfig:
        return self.config.preprocess_config(self.engine.input_dtype)


def load_pipeline(cfg: PipelineConfig, *, engine: Optional[InferenceEngine] = None) -> DetectionPipeline:
    """
    Build a pipeline from config and start loading its model in the background.

    Must be called from a running event loop. Requests made before the load
    completes fail with ModelNotReadyError; `await pipeline.engine.wait_ready()`
    to block until the model is usable.
    """

    class_table = DEFAULT_CLASS_TABLE
    if cfg.class_table_path is not None:
        class_table = load_class_table(resolve_path(cfg.class_table_path))

    engine = engine if engine is not None else InferenceEngine()
    loader = functools.partial(
        load_backend,
        cfg.model_path,
        backend=cfg.backend,
        onnx_providers=cfg.onnx_providers,
        input_name=cfg.input_name,
        output_names=cfg.output_names,
        torch_input_dtype=cfg.input_dtype or "float32",
    )
    engine.start_loading(loader)
    return ConfiguredPipeline(cfg, engine, class_table)
