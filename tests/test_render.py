import unittest

import cv2
import numpy as np

from treehealth_kit.errors import DecodeError, RenderError
from treehealth_kit.preprocess import decode_image
from treehealth_kit.types import BoundingBox, Detection
from treehealth_kit.visualize import PaletteColor, RandomColor, format_label, render


def _png_bytes(image_bgr: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", image_bgr)
    assert ok
    return buf.tobytes()


def _detection(box: BoundingBox, class_index: int = 0, score: float = 0.87) -> Detection:
    return Detection(class_label="batang_pecah", score=score, box=box, class_index=class_index)


class TestRender(unittest.TestCase):
    def test_no_detections_preserves_pixels(self) -> None:
        rng = np.random.default_rng(1)
        original = rng.integers(0, 256, size=(40, 30, 3), dtype=np.uint8)
        image_bytes = _png_bytes(original)
        rendered = render(image_bytes, [])
        self.assertTrue(np.array_equal(decode_image(rendered), decode_image(image_bytes)))

    def test_box_maps_to_pixel_bounds(self) -> None:
        # 100 x 200 (W x H) black image.
        image_bytes = _png_bytes(np.zeros((200, 100, 3), dtype=np.uint8))
        det = _detection(BoundingBox(ymin=0.1, xmin=0.2, ymax=0.5, xmax=0.6))
        out = decode_image(render(image_bytes, [det], color_strategy=PaletteColor()))
        color = PaletteColor.palette[0]

        # Edges at x=20, x=60, y=20, y=100.
        self.assertEqual(tuple(int(v) for v in out[50, 20]), color)
        self.assertEqual(tuple(int(v) for v in out[50, 60]), color)
        self.assertEqual(tuple(int(v) for v in out[20, 40]), color)
        self.assertEqual(tuple(int(v) for v in out[100, 40]), color)

        # Outline only: interior and outside stay untouched.
        self.assertTrue(np.all(out[60, 40] == 0))
        self.assertTrue(np.all(out[150, 40] == 0))
        self.assertTrue(np.all(out[50, 80] == 0))

        # Below the label area, everything drawn lies within the 2px stroke around the box.
        ys, xs = np.nonzero(np.any(out[25:] != 0, axis=2))
        self.assertGreaterEqual(int(xs.min()), 18)
        self.assertLessEqual(int(xs.max()), 62)
        self.assertLessEqual(int(ys.max()) + 25, 102)

    def test_label_drawn_above_box(self) -> None:
        image_bytes = _png_bytes(np.zeros((200, 300, 3), dtype=np.uint8))
        det = _detection(BoundingBox(ymin=0.5, xmin=0.2, ymax=0.9, xmax=0.6))
        out = decode_image(render(image_bytes, [det], color_strategy=PaletteColor()))
        # Box top is at y=100; text baseline sits 10px above it.
        self.assertTrue(np.any(out[80:95, 60:] != 0))

    def test_label_format(self) -> None:
        det = _detection(BoundingBox(0, 0, 1, 1), score=0.87654)
        self.assertEqual(format_label(det), "batang_pecah (87.65%)")

    def test_input_bytes_unchanged(self) -> None:
        image_bytes = _png_bytes(np.zeros((20, 20, 3), dtype=np.uint8))
        snapshot = bytes(image_bytes)
        render(image_bytes, [_detection(BoundingBox(0.1, 0.1, 0.9, 0.9))])
        self.assertEqual(image_bytes, snapshot)

    def test_jpeg_output(self) -> None:
        image_bytes = _png_bytes(np.zeros((20, 20, 3), dtype=np.uint8))
        rendered = render(image_bytes, [], image_format="jpg")
        self.assertTrue(rendered.startswith(b"\xff\xd8"))

    def test_malformed_image_raises_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            render(b"garbage", [_detection(BoundingBox(0, 0, 1, 1))])

    def test_non_finite_box_raises_render_error(self) -> None:
        image_bytes = _png_bytes(np.zeros((20, 20, 3), dtype=np.uint8))
        for box in (BoundingBox(float("nan"), 0, 1, 1), BoundingBox(0, 0, 1, float("inf"))):
            with self.assertRaises(RenderError):
                render(image_bytes, [_detection(box)])

    def test_far_out_of_range_box_is_drawn_partially(self) -> None:
        image_bytes = _png_bytes(np.zeros((40, 40, 3), dtype=np.uint8))
        det = _detection(BoundingBox(ymin=-1e300, xmin=0.1, ymax=1e300, xmax=0.5))
        out = decode_image(render(image_bytes, [det], color_strategy=PaletteColor()))
        self.assertEqual(out.shape, (40, 40, 3))
        # Vertical edges at x=4 and x=20 run through the whole image.
        self.assertEqual(tuple(int(v) for v in out[30, 4]), PaletteColor.palette[0])
        self.assertEqual(tuple(int(v) for v in out[30, 20]), PaletteColor.palette[0])


class TestColorStrategies(unittest.TestCase):
    def test_seeded_random_is_reproducible(self) -> None:
        det = _detection(BoundingBox(0, 0, 1, 1))
        a = [RandomColor(seed=7).color_for(det) for _ in range(3)]
        b = [RandomColor(seed=7).color_for(det) for _ in range(3)]
        self.assertEqual(a, b)
        for color in a:
            self.assertTrue(all(0 <= c <= 255 for c in color))

    def test_shared_seeded_strategy_repeats_across_renders(self) -> None:
        image_bytes = _png_bytes(np.zeros((50, 50, 3), dtype=np.uint8))
        detections = [_detection(BoundingBox(0.2, 0.2, 0.8, 0.8)), _detection(BoundingBox(0.1, 0.5, 0.4, 0.9))]
        strategy = RandomColor(seed=5)
        first = render(image_bytes, detections, color_strategy=strategy)
        second = render(image_bytes, detections, color_strategy=strategy)
        self.assertEqual(first, second)

    def test_palette_is_keyed_on_class(self) -> None:
        palette = PaletteColor()
        self.assertEqual(palette.color_for(_detection(BoundingBox(0, 0, 1, 1), class_index=3)), PaletteColor.palette[3])
        far = _detection(BoundingBox(0, 0, 1, 1), class_index=42)
        self.assertEqual(palette.color_for(far), palette.color_for(far))


if __name__ == "__main__":
    unittest.main()
