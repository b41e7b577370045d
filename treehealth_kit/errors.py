"""
Exceptions raised by the detection pipeline.

Every error is surfaced to the immediate caller; nothing here is retried or
swallowed internally.
"""

from __future__ import annotations

from typing import Optional


class TreeHealthError(Exception):
    """Base exception for detection pipeline errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class DecodeError(TreeHealthError):
    """Raised when image bytes are empty, malformed or in an unsupported format."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not decode image: {reason}")


class ModelNotReadyError(TreeHealthError):
    """Raised when inference is requested before the model finished loading."""

    def __init__(self, state: str, cause: Optional[BaseException] = None):
        self.state = state
        self.cause = cause
        message = f"Model is not ready (state={state})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UnknownClassIndexError(TreeHealthError):
    """Raised when model output references a class index outside the class table."""

    def __init__(self, index: object, table_size: int):
        self.index = index
        self.table_size = table_size
        super().__init__(f"Class index {index!r} is outside the class table (size={table_size})")


class InvalidModelOutputError(TreeHealthError):
    """Raised when raw model output does not match the boxes/scores/classes/count contract."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid model output: {reason}")


class RenderError(TreeHealthError):
    """Raised when the annotated image cannot be encoded."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Rendering failed: {reason}")
