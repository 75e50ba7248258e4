"""Grouping of adjacent action buttons into shared rows.

This is a view over the canvas, recomputed on every render and never stored.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from .elements import FormElement

Run = Tuple[FormElement, ...]


def group_runs(elements: Iterable[FormElement]) -> List[Run]:
    """Partition ``elements`` into runs without reordering them.

    Consecutive action elements (submit, reset) share one run; every other
    element is a run of its own.
    """

    runs: List[Run] = []
    pending: List[FormElement] = []
    for element in elements:
        if element.is_action:
            pending.append(element)
            continue
        if pending:
            runs.append(tuple(pending))
            pending = []
        runs.append((element,))
    if pending:
        runs.append(tuple(pending))
    return runs


def flatten_runs(runs: Sequence[Run]) -> List[FormElement]:
    return [element for run in runs for element in run]


def is_shared_row(run: Run) -> bool:
    return len(run) > 1
