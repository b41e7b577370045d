from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from .errors import RenderError
from .preprocess import decode_image
from .types import Detection


RGB = Tuple[int, int, int]

BOX_THICKNESS = 2
LABEL_OFFSET_PX = 10
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.5
FONT_THICKNESS = 1

_ENCODE_EXT = {"png": ".png", "jpg": ".jpg", "jpeg": ".jpg"}


class ColorStrategy(Protocol):
    def for_image(self) -> "ColorStrategy":
        ...

    def color_for(self, detection: Detection) -> RGB:
        ...


class RandomColor:
    """
    Uniform random RGB per detection. Unseeded by default, so colors change
    from call to call; pass `seed` for reproducible output.

    Each rendered image draws from its own generator, so a seeded strategy gives
    the same colors for the same detections regardless of earlier renders.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def for_image(self) -> "RandomColor":
        return RandomColor(self.seed)

    def color_for(self, detection: Detection) -> RGB:
        r, g, b = self._rng.integers(0, 256, size=3)
        return int(r), int(g), int(b)


class PaletteColor:
    """
    Deterministic RGB color keyed on the detection's class index.
    """

    palette: Sequence[RGB] = (
        (255, 56, 56),
        (255, 157, 151),
        (255, 112, 31),
        (255, 178, 29),
        (207, 210, 49),
        (72, 249, 10),
        (146, 204, 23),
        (61, 219, 134),
        (26, 147, 52),
        (0, 212, 187),
        (44, 153, 168),
        (0, 194, 255),
        (52, 69, 147),
        (100, 115, 255),
        (0, 24, 236),
        (132, 56, 255),
        (82, 0, 133),
        (203, 56, 255),
        (255, 149, 200),
        (255, 55, 199),
    )

    def for_image(self) -> "PaletteColor":
        return self

    def color_for(self, detection: Detection) -> RGB:
        class_index = detection.class_index
        if class_index is None:
            return (0, 255, 255)
        if 0 <= class_index < len(self.palette):
            return self.palette[class_index]

        rng = np.random.default_rng(int(class_index))
        r, g, b = rng.integers(0, 256, size=3)
        return int(r), int(g), int(b)


def _pixel_box(det: Detection, width: int, height: int) -> Tuple[int, int, int, int]:
    if not all(np.isfinite(v) for v in det.box.as_yxyx()):
        raise RenderError(f"non-finite box coordinates for {det.class_label!r}: {det.box.as_yxyx()}")
    box = det.box
    # Keep far off-image edges off-image but within the range cv2 accepts.
    xs = [int(round(float(np.clip(v * width, -width, 2 * width)))) for v in (box.xmin, box.xmax)]
    ys = [int(round(float(np.clip(v * height, -height, 2 * height)))) for v in (box.ymin, box.ymax)]
    return xs[0], ys[0], xs[1], ys[1]


def format_label(detection: Detection) -> str:
    return f"{detection.class_label} ({detection.score * 100:.2f}%)"


def draw_detections(
    image_rgb: np.ndarray,
    detections: Iterable[Detection],
    color_strategy: Optional[ColorStrategy] = None,
) -> np.ndarray:
    """
    Draw box outlines and labels on a copy of an RGB image.

    Normalized coordinates are scaled by the image size. Boxes reaching past the
    edges are drawn partially; non-finite coordinates raise RenderError.
    """

    if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {image_rgb.shape}")

    strategy = (color_strategy if color_strategy is not None else RandomColor()).for_image()
    out = image_rgb.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = _pixel_box(det, w, h)
        color = strategy.color_for(det)

        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=BOX_THICKNESS)
        cv2.putText(
            out,
            format_label(det),
            (x1, y1 - LABEL_OFFSET_PX),
            FONT,
            FONT_SCALE,
            color,
            thickness=FONT_THICKNESS,
            lineType=cv2.LINE_AA,
        )

    return out


def encode_image(image_rgb: np.ndarray, image_format: str = "png") -> bytes:
    ext = _ENCODE_EXT.get(image_format.lower())
    if ext is None:
        raise ValueError(f"Unsupported image format: {image_format!r}")
    ok, buf = cv2.imencode(ext, cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR))
    if not ok:
        raise RenderError(f"cv2.imencode failed for format {image_format!r}")
    return buf.tobytes()


def render(
    image_bytes: bytes,
    detections: Iterable[Detection],
    color_strategy: Optional[ColorStrategy] = None,
    image_format: str = "png",
) -> bytes:
    """
    Decode `image_bytes`, draw `detections` over it and return the encoded result.
    """

    image_rgb = decode_image(image_bytes)
    annotated = draw_detections(image_rgb, detections, color_strategy=color_strategy)
    return encode_image(annotated, image_format)
