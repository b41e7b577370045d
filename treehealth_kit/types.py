from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidModelOutputError


@dataclass(frozen=True)
class BoundingBox:
    """
    Normalized box in model order: (ymin, xmin, ymax, xmax), each in [0, 1].
    """

    ymin: float
    xmin: float
    ymax: float
    xmax: float

    def as_yxyx(self) -> Tuple[float, float, float, float]:
        return self.ymin, self.xmin, self.ymax, self.xmax

    def to_dict(self) -> Dict[str, float]:
        return {"ymin": self.ymin, "xmin": self.xmin, "ymax": self.ymax, "xmax": self.xmax}


@dataclass(frozen=True)
class Detection:
    class_label: str
    score: float
    box: BoundingBox
    class_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class": self.class_label,
            "score": self.score,
            "boundingBox": self.box.to_dict(),
        }


def detections_to_payload(detections: Iterable[Detection]) -> Dict[str, List[Dict[str, Any]]]:
    """JSON-ready response body: {"objects": [...]}."""
    return {"objects": [det.to_dict() for det in detections]}


@dataclass(frozen=True)
class RawModelOutput:
    """
    The four tensors emitted by the detection model, batch dimension removed.

    Only the first `count` entries of each array are valid; the rest is padding.
    """

    boxes: np.ndarray
    scores: np.ndarray
    classes: np.ndarray
    count: np.ndarray

    @classmethod
    def from_tensors(cls, outputs: Sequence[Any]) -> "RawModelOutput":
        """
        Build from model outputs in document order: boxes, scores, classes, count.
        """

        if len(outputs) != 4:
            raise InvalidModelOutputError(f"expected 4 output tensors, got {len(outputs)}")

        boxes, scores, classes, count = (np.asarray(t) for t in outputs)

        # Single-image batch: drop the leading batch axis if present.
        if boxes.ndim == 3:
            if boxes.shape[0] != 1:
                raise InvalidModelOutputError(f"batch > 1 is not supported (boxes shape {boxes.shape})")
            boxes = boxes[0]
        if scores.ndim == 2:
            if scores.shape[0] != 1:
                raise InvalidModelOutputError(f"batch > 1 is not supported (scores shape {scores.shape})")
            scores = scores[0]
        if classes.ndim == 2:
            if classes.shape[0] != 1:
                raise InvalidModelOutputError(f"batch > 1 is not supported (classes shape {classes.shape})")
            classes = classes[0]
        if count.size != 1:
            raise InvalidModelOutputError(f"count must be a scalar, got shape {count.shape}")

        return cls(boxes=boxes, scores=scores, classes=classes, count=count.reshape(()))

    @property
    def num_detections(self) -> int:
        return int(self.count)
