"""Exceptions raised by the canvas editing engine."""
from __future__ import annotations

from typing import Optional


class CanvasError(Exception):
    """Base class for editing-session failures."""

    code = "INTERNAL_ERROR"


class UnknownElementType(CanvasError, ValueError):
    code = "INVALID_DATA"


class DuplicateElementError(CanvasError, ValueError):
    code = "INVALID_DATA"


class NonCanvasElementError(CanvasError, ValueError):
    code = "INVALID_DATA"


class TransientReferenceError(CanvasError):
    """A session-scoped resource handle was about to leave the session."""

    code = "INVALID_DATA"


class MissingTitleError(CanvasError):
    code = "INVALID_TITLE"


class SaveInProgressError(CanvasError):
    """A save was requested while another save of the session is in flight."""

    code = "SAVE_IN_PROGRESS"


class StoreError(CanvasError):
    """The designer service rejected a request."""

    def __init__(self, code: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class StoreUnavailableError(StoreError):
    def __init__(self, message: str) -> None:
        super().__init__("INTERNAL_ERROR", message)
