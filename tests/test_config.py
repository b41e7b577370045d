import json
import tempfile
import unittest
from pathlib import Path

from treehealth_kit.config import PipelineConfig, load_pipeline_config


class TestPipelineConfig(unittest.TestCase):
    def _write_config(self, payload: dict) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "pipeline.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_load_ok(self) -> None:
        path = self._write_config(
            {
                "schema_version": 1,
                "model_path": "Models/tree_defects.onnx",
                "backend": "onnxruntime",
                "class_index_offset": 1,
                "input_size": [320, 320],
                "color_strategy": "random",
                "color_seed": 3,
                "onnx_providers": "CUDAExecutionProvider, CPUExecutionProvider",
                "output_names": ["detection_boxes", "detection_scores", "detection_classes", "num_detections"],
            }
        )
        cfg = load_pipeline_config(path)
        self.assertIsInstance(cfg, PipelineConfig)
        self.assertEqual(cfg.model_path, "Models/tree_defects.onnx")
        self.assertEqual(cfg.class_index_offset, 1)
        self.assertEqual(cfg.input_size, (320, 320))
        self.assertEqual(cfg.color_seed, 3)
        self.assertEqual(cfg.onnx_providers, ("CUDAExecutionProvider", "CPUExecutionProvider"))
        self.assertEqual(len(cfg.output_names), 4)

    def test_defaults(self) -> None:
        cfg = load_pipeline_config(self._write_config({"schema_version": 1, "model_path": "m.onnx"}))
        self.assertIsNone(cfg.backend)
        self.assertIsNone(cfg.class_table_path)
        self.assertIsNone(cfg.input_size)
        self.assertEqual(cfg.input_layout, "NHWC")
        self.assertEqual(cfg.color_strategy, "random")
        self.assertEqual(cfg.image_format, "png")

    def test_repo_example_config_loads(self) -> None:
        path = Path(__file__).resolve().parents[1] / "Models" / "pipeline.json"
        cfg = load_pipeline_config(path)
        self.assertEqual(cfg.class_table_path, "Models/metadata.yaml")

    def test_unknown_keys_rejected(self) -> None:
        path = self._write_config({"schema_version": 1, "model_path": "m.onnx", "threshold": 0.5})
        with self.assertRaises(ValueError):
            load_pipeline_config(path)

    def test_missing_model_path_rejected(self) -> None:
        with self.assertRaises(ValueError):
            load_pipeline_config(self._write_config({"schema_version": 1}))

    def test_invalid_values_rejected(self) -> None:
        bad_payloads = [
            {"schema_version": 2, "model_path": "m.onnx"},
            {"schema_version": 1, "model_path": "m.onnx", "backend": "tensorflow"},
            {"schema_version": 1, "model_path": "m.onnx", "class_index_offset": -1},
            {"schema_version": 1, "model_path": "m.onnx", "input_size": [320]},
            {"schema_version": 1, "model_path": "m.onnx", "input_dtype": "bool"},
            {"schema_version": 1, "model_path": "m.onnx", "color_strategy": "rainbow"},
            {"schema_version": 1, "model_path": "m.onnx", "output_names": ["a", "b"]},
            {"schema_version": 1, "model_path": "m.onnx", "color_seed": True},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    load_pipeline_config(self._write_config(payload))

    def test_invalid_json_rejected(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "pipeline.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_pipeline_config(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_pipeline_config(Path("does/not/exist.json"))

    def test_preprocess_config_prefers_explicit_dtype(self) -> None:
        cfg = PipelineConfig(model_path="m.onnx", input_dtype="float32")
        self.assertEqual(cfg.preprocess_config("uint8").input_dtype, "float32")
        cfg = PipelineConfig(model_path="m.onnx")
        self.assertEqual(cfg.preprocess_config("uint8").input_dtype, "uint8")
        self.assertEqual(cfg.preprocess_config(None).input_dtype, "float32")


if __name__ == "__main__":
    unittest.main()
