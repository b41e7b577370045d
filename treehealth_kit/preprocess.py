from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import DecodeError


_FLOAT_DTYPES = {"float16", "float32", "float64"}
_INT_DTYPES = {"uint8", "int16", "int32", "int64"}
_LAYOUTS = {"NHWC", "NCHW"}


@dataclass(frozen=True)
class PreprocessConfig:
    """
    Model input contract.

    - input_dtype: numeric type the model declares for its input tensor.
      Float types get pixels scaled to [0, 1]; integer types get raw [0, 255].
    - input_size: optional (width, height) to resize to. None passes the decoded
      image through at its own size.
    - layout: "NHWC" (TF exports) or "NCHW".
    """

    input_dtype: str = "float32"
    input_size: Optional[Tuple[int, int]] = None
    layout: str = "NHWC"

    def __post_init__(self) -> None:
        if self.input_dtype not in _FLOAT_DTYPES | _INT_DTYPES:
            raise ValueError(f"Unsupported input_dtype: {self.input_dtype!r}")
        if self.layout not in _LAYOUTS:
            raise ValueError(f"layout must be one of {sorted(_LAYOUTS)}, got {self.layout!r}")
        if self.input_size is not None:
            if len(self.input_size) != 2 or any(int(v) < 1 for v in self.input_size):
                raise ValueError(f"input_size must be (width, height) with positive values, got {self.input_size!r}")


def decode_image(image_bytes: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (JPEG, PNG, BMP, ...) into an RGB uint8 array (H, W, 3).

    Grayscale and alpha images are converted to three channels.
    """

    if not isinstance(image_bytes, (bytes, bytearray, memoryview)):
        raise DecodeError(f"expected bytes, got {type(image_bytes).__name__}")
    if len(image_bytes) == 0:
        raise DecodeError("empty buffer")

    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    try:
        img_bgr = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    except cv2.error as exc:
        raise DecodeError(str(exc)) from exc
    if img_bgr is None:
        raise DecodeError("unsupported or corrupt image data")

    return cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)


def to_model_input(image_rgb: np.ndarray, cfg: PreprocessConfig = PreprocessConfig()) -> np.ndarray:
    """
    Turn a decoded RGB image into a single-image batch matching `cfg`.
    """

    if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {image_rgb.shape}")

    img = image_rgb
    if cfg.input_size is not None:
        new_w, new_h = (int(v) for v in cfg.input_size)
        if (img.shape[1], img.shape[0]) != (new_w, new_h):
            img = cv2.resize(img, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    if cfg.input_dtype in _FLOAT_DTYPES:
        blob = img.astype(np.float32) / 255.0
        blob = blob.astype(cfg.input_dtype)
    else:
        # Integer inputs take raw pixel values; scaling first would truncate to 0/1.
        blob = img.astype(cfg.input_dtype)

    if cfg.layout == "NCHW":
        blob = np.transpose(blob, (2, 0, 1))

    return np.ascontiguousarray(blob[None, ...])


def preprocess(image_bytes: bytes, cfg: PreprocessConfig = PreprocessConfig()) -> np.ndarray:
    """Decode `image_bytes` and build the model input tensor."""
    return to_model_input(decode_image(image_bytes), cfg)
