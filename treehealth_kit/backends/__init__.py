"""
Inference runtimes for treehealth_kit.

Each backend exposes `run(blob) -> list[np.ndarray]` returning the detection
tensors in order (boxes, scores, classes, count) and an `input_dtype` attribute.
Runtimes are imported lazily so pre/post-processing works without them.
"""

from __future__ import annotations

__all__ = []
