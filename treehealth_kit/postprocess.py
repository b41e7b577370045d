from __future__ import annotations

import logging
from typing import List

import numpy as np

from .classes import ClassTable
from .errors import InvalidModelOutputError, UnknownClassIndexError
from .types import BoundingBox, Detection, RawModelOutput


LOGGER = logging.getLogger(__name__)


def _detection_count(raw: RawModelOutput) -> int:
    value = float(np.asarray(raw.count).reshape(()))
    if not np.isfinite(value) or not value.is_integer() or value < 0:
        raise InvalidModelOutputError(f"detection count must be a non-negative integer, got {value!r}")
    return int(value)


def parse(raw: RawModelOutput, class_table: ClassTable, class_index_offset: int = 0) -> List[Detection]:
    """
    Convert raw SSD-style outputs into typed detections.

    Only the first `count` entries are read; trailing entries are padding.
    Order is preserved as emitted by the model (NMS is assumed to be done
    in-graph, so nothing is sorted, filtered or merged here). Coordinates and
    scores are passed through unchanged.

    Args:
        raw: boxes (N, 4) as [ymin, xmin, ymax, xmax], scores (N,), classes (N,), count
        class_table: labels indexed by class id
        class_index_offset: subtracted from each class value before lookup
            (1 for 1-based label maps)
    """

    k = _detection_count(raw)
    if k == 0:
        return []

    boxes_flat = np.asarray(raw.boxes).reshape(-1)
    scores = np.asarray(raw.scores).reshape(-1)
    classes = np.asarray(raw.classes).reshape(-1)

    if boxes_flat.size < k * 4 or scores.size < k or classes.size < k:
        raise InvalidModelOutputError(
            f"count={k} exceeds output sizes (boxes={boxes_flat.size // 4}, scores={scores.size}, classes={classes.size})"
        )

    boxes = boxes_flat[: k * 4].reshape(k, 4)
    scores = scores[:k]
    classes = classes[:k]

    if not np.all(np.isfinite(boxes)) or not np.all(np.isfinite(scores)):
        raise InvalidModelOutputError("boxes and scores must be finite within the first count entries")

    detections: List[Detection] = []
    for (ymin, xmin, ymax, xmax), score, cls_value in zip(boxes, scores, classes):
        index = float(cls_value) - class_index_offset
        try:
            label = class_table.label_for(index)
        except UnknownClassIndexError:
            LOGGER.error(
                "Model output references class %r outside the class table (size=%d); "
                "model and class table do not match",
                cls_value,
                len(class_table),
            )
            raise
        detections.append(
            Detection(
                class_label=label,
                score=float(score),
                box=BoundingBox(ymin=float(ymin), xmin=float(xmin), ymax=float(ymax), xmax=float(xmax)),
                class_index=int(index),
            )
        )

    LOGGER.debug("Parsed %d detections", len(detections))
    return detections
