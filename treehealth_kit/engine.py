from __future__ import annotations

import asyncio
import enum
import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Union

import numpy as np

from .errors import ModelNotReadyError
from .types import RawModelOutput


LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DetectionBackend(Protocol):
    input_dtype: Optional[str]

    def run(self, blob: np.ndarray) -> List[np.ndarray]:
        ...


BackendLoader = Callable[[], DetectionBackend]


class ReadinessState(str, enum.Enum):
    NOT_STARTED = "not_started"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelReadiness:
    """
    Process-wide model lifecycle state.

    Queried synchronously before any inference so early requests fail fast
    instead of waiting on the load.
    """

    def __init__(self) -> None:
        self._state = ReadinessState.NOT_STARTED
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def is_ready(self) -> bool:
        return self._state is ReadinessState.READY

    def mark_loading(self) -> None:
        self._state = ReadinessState.LOADING
        self._error = None

    def mark_ready(self) -> None:
        self._state = ReadinessState.READY
        self._error = None

    def mark_failed(self, error: BaseException) -> None:
        self._state = ReadinessState.FAILED
        self._error = error

    def require_ready(self) -> None:
        if self._state is not ReadinessState.READY:
            raise ModelNotReadyError(self._state.value, cause=self._error)


def _consume_load_error(task: "asyncio.Task[None]") -> None:
    # Already logged and kept on the readiness state by `load`.
    if not task.cancelled():
        task.exception()


class InferenceEngine:
    """
    Wraps a loaded detection backend behind `infer(blob) -> RawModelOutput`.

    The backend is read-only shared state; `infer` runs it in a worker thread so
    concurrent requests interleave on the event loop.
    """

    def __init__(self, readiness: Optional[ModelReadiness] = None):
        self.readiness = readiness if readiness is not None else ModelReadiness()
        self._backend: Optional[DetectionBackend] = None
        self._load_task: Optional[asyncio.Task] = None

    @classmethod
    def from_backend(cls, backend: DetectionBackend) -> "InferenceEngine":
        engine = cls()
        engine._backend = backend
        engine.readiness.mark_ready()
        return engine

    @property
    def backend(self) -> Optional[DetectionBackend]:
        return self._backend

    @property
    def input_dtype(self) -> Optional[str]:
        if self._backend is None:
            return None
        return getattr(self._backend, "input_dtype", None)

    async def load(self, loader: BackendLoader) -> None:
        self.readiness.mark_loading()
        LOGGER.info("Loading detection model")
        try:
            backend = await asyncio.to_thread(loader)
        except Exception as exc:
            LOGGER.exception("Failed to load detection model")
            self.readiness.mark_failed(exc)
            raise
        self._backend = backend
        self.readiness.mark_ready()
        LOGGER.info("Detection model loaded")

    def start_loading(self, loader: BackendLoader) -> "asyncio.Task[None]":
        """Begin loading in the background and return the task."""
        self.readiness.mark_loading()
        self._load_task = asyncio.create_task(self.load(loader))
        self._load_task.add_done_callback(_consume_load_error)
        return self._load_task

    async def wait_ready(self) -> None:
        if self._load_task is not None:
            await asyncio.shield(self._load_task)
        self.readiness.require_ready()

    async def infer(self, blob: np.ndarray) -> RawModelOutput:
        self.readiness.require_ready()
        backend = self._backend
        if backend is None:
            raise ModelNotReadyError(self.readiness.state.value)
        outputs = await asyncio.to_thread(backend.run, blob)
        return RawModelOutput.from_tensors(outputs)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so relative model paths work from any cwd.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    Absolute paths are returned as-is; relative ones resolve against `root`
    when given, else the project root.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def infer_backend_name(model_path: PathLike) -> str:
    suffix = Path(model_path).suffix.lower()
    if suffix == ".onnx":
        return "onnxruntime"
    if suffix in {".torchscript", ".ts", ".pt"}:
        return "torchscript"
    raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")


def load_backend(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    input_name: Optional[str] = None,
    output_names: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_input_dtype: str = "float32",
) -> DetectionBackend:
    """
    Construct a detection backend for a model on disk.

    This blocks while the runtime reads the model; call it through
    `InferenceEngine.load` / `start_loading` from async code.
    """

    resolved = resolve_path(model_path, root=root)
    chosen = (backend or infer_backend_name(resolved)).lower()

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        return OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=input_name, output_names=output_names),
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        return TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(device=torch_device, input_dtype=torch_input_dtype, output_keys=output_names),
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
