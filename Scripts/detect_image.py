import argparse
import asyncio
import json
import logging
from pathlib import Path

from treehealth_kit import (
    DEFAULT_CLASS_TABLE,
    DetectionPipeline,
    InferenceEngine,
    PaletteColor,
    RandomColor,
    detections_to_payload,
    load_backend,
    load_class_table,
    load_pipeline,
    load_pipeline_config,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect tree-health defects in one image and draw the results.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--config", default=None, help="Pipeline config JSON. Overrides --model/--metadata/--backend.")
    parser.add_argument("--model", default="Models/tree_defects.onnx", help="Path to a detection model (.onnx/.pt).")
    parser.add_argument("--metadata", default=None, help="Optional class names file; defaults to the built-in 16 labels.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for box colors (random by default).")
    parser.add_argument("--palette", action="store_true", help="Color boxes by class instead of randomly.")
    parser.add_argument("--out", default=None, help="Optional output path for the annotated PNG.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


async def run(args: argparse.Namespace) -> int:
    image_bytes = Path(args.image).read_bytes()

    if args.config:
        pipeline = load_pipeline(load_pipeline_config(Path(args.config)))
        await pipeline.engine.wait_ready()
    else:
        onnx_providers = None
        if args.onnx_providers:
            onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
        engine = InferenceEngine()
        await engine.load(lambda: load_backend(args.model, backend=args.backend, onnx_providers=onnx_providers))
        class_table = load_class_table(args.metadata) if args.metadata else DEFAULT_CLASS_TABLE
        colors = PaletteColor() if args.palette else RandomColor(seed=args.seed)
        pipeline = DetectionPipeline(engine, class_table=class_table, color_strategy=colors)

    detections = await pipeline.detect_objects(image_bytes)
    print(json.dumps(detections_to_payload(detections), indent=2))

    if args.out:
        rendered = await pipeline.draw_bounding_boxes(image_bytes, detections)
        Path(args.out).write_bytes(rendered)
        print(f"Wrote annotated image: {args.out}")

    return 0


def main() -> int:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
