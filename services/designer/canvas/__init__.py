"""Editing engine for the form designer canvas."""
from __future__ import annotations

from .client import HttpDraftStore, SavedVersion
from .drop import CanvasDropTarget, ReorderTracker, RowBox, resolve_drop_index
from .elements import FormElement, SessionResources, TransientReference
from .ordering import CanvasOrderingModel
from .persistence import EditingSession, PersistenceOrchestrator
from .runs import group_runs

__all__ = [
    "CanvasDropTarget",
    "CanvasOrderingModel",
    "EditingSession",
    "FormElement",
    "HttpDraftStore",
    "PersistenceOrchestrator",
    "ReorderTracker",
    "RowBox",
    "SavedVersion",
    "SessionResources",
    "TransientReference",
    "group_runs",
    "resolve_drop_index",
]
