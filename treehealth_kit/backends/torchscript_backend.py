from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - input_dtype: dtype the scripted model expects (e.g. "float32", "uint8")
    - output_keys: when the model returns a dict, the four keys in order
      boxes, scores, classes, count
    """

    device: str = "cpu"
    input_dtype: str = "float32"
    output_keys: Optional[Sequence[str]] = None


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load`.

    The scripted module must return the four detection tensors, either as a
    tuple/list or as a dict selected via `output_keys`.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.input_dtype: Optional[str] = cfg.input_dtype
        self.output_keys = list(cfg.output_keys) if cfg.output_keys is not None else None
        if self.output_keys is not None and len(self.output_keys) != 4:
            raise ValueError(f"output_keys must list exactly 4 keys, got {len(self.output_keys)}")

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def run(self, blob: np.ndarray) -> List[np.ndarray]:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device).contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, Mapping):
            if self.output_keys is None:
                raise ValueError(f"Model returned a dict with keys {sorted(y)}; set output_keys.")
            y = [y[k] for k in self.output_keys]

        return [t.detach().to("cpu").numpy() if hasattr(t, "detach") else np.asarray(t) for t in y]
