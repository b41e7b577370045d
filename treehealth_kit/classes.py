from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Tuple, Union

import numpy as np

from .errors import UnknownClassIndexError


@dataclass(frozen=True)
class ClassTable:
    """
    Fixed, ordered mapping from model class index to label.
    """

    labels: Tuple[str, ...]

    def __post_init__(self) -> None:
        # Accept any sequence but always store a tuple.
        object.__setattr__(self, "labels", tuple(self.labels))
        if not self.labels:
            raise ValueError("ClassTable must contain at least one label")
        if any(not isinstance(label, str) or not label for label in self.labels):
            raise ValueError("ClassTable labels must be non-empty strings")

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels)

    def __getitem__(self, index: int) -> str:
        return self.label_for(index)

    def label_for(self, index: Union[int, float, np.number]) -> str:
        """
        Resolve a raw class value to its label.

        Models often emit class ids as floats; integral floats are accepted,
        anything else (fractional, negative, past the end) is rejected.
        """

        value = float(index)
        if not value.is_integer():
            raise UnknownClassIndexError(index, len(self.labels))
        idx = int(value)
        if idx < 0 or idx >= len(self.labels):
            raise UnknownClassIndexError(idx, len(self.labels))
        return self.labels[idx]


DEFAULT_CLASS_TABLE = ClassTable(
    (
        "akar_Patah-mati",
        "batang-akar_patah",
        "batang_pecah",
        "brum akar atau batang",
        "cabang patah mati",
        "daun berubah warna",
        "daun pucuk tunas rusak",
        "gerowong",
        "hilang pucuk dominan",
        "kanker",
        "konk",
        "liana",
        "luka terbuka",
        "percabangan brum berlebihan",
        "resinosis gumosis",
        "sarang rayap",
    )
)


def load_class_table(path: Union[str, Path]) -> ClassTable:
    """
    Load labels from a lightweight `names:` metadata file:

        names:
          0: akar_Patah-mati
          1: batang-akar_patah
          ...

    Indices must be contiguous starting at 0. Labels may contain spaces.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Class table not found: {path}")

    names: Dict[int, str] = {}
    in_names = False

    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue

            # Parse "id: label"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            idx = int(left)
            if idx in names:
                raise ValueError(f"Duplicate class index {idx} in {path}")
            names[idx] = right

    if not names:
        raise ValueError(f"No class names found in {path}")
    expected = list(range(len(names)))
    if sorted(names) != expected:
        raise ValueError(f"Class indices in {path} must be contiguous from 0, got {sorted(names)}")

    return ClassTable(tuple(names[i] for i in expected))
