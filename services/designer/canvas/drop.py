"""Turning pointer gestures into canvas positions.

Insert positions are decided by row midpoints, not row edges: the target only
changes once the pointer crosses the centre of a row, so small pointer jitter
near a boundary does not make the drop target oscillate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .elements import FormElement
from .ordering import CanvasOrderingModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowBox:
    """Vertical extent of one rendered canvas row, in client coordinates."""

    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def midpoint(self) -> float:
        return self.top + self.height / 2


def resolve_drop_index(pointer_y: float, rows: Sequence[RowBox], container_top: float = 0.0) -> int:
    """Index at which a dragged element should be inserted.

    ``pointer_y`` is relative to the top of the list container; ``rows`` are in
    display order. Returns ``len(rows)`` when the pointer is below every row.
    """

    for index, row in enumerate(rows):
        if row.midpoint - container_top > pointer_y:
            return index
    return len(rows)


class ReorderTracker:
    """Hysteresis for moving an element that is already on the canvas.

    A move only happens once the pointer has crossed the hovered row's
    midpoint in the direction of travel.
    """

    def __init__(self, model: CanvasOrderingModel, element_id: str) -> None:
        index = model.index_of(element_id)
        if index is None:
            raise KeyError(element_id)
        self.model = model
        self.element_id = element_id
        self.drag_index = index

    def hover(self, hover_index: int, hover_row: RowBox, pointer_y: float) -> bool:
        """Report the pointer over row ``hover_index``; return whether a move happened."""

        drag_index = self.drag_index
        if drag_index == hover_index:
            return False
        if drag_index < hover_index and pointer_y < hover_row.midpoint:
            return False
        if drag_index > hover_index and pointer_y > hover_row.midpoint:
            return False

        self.model.move(self.element_id, hover_index)
        self.drag_index = hover_index
        logger.debug("Reordered %s to %s", self.element_id, hover_index)
        return True


class CanvasDropTarget:
    """Adapter between drag-and-drop events and the canvas model.

    UI code reports pointer positions in client coordinates together with the
    container's top edge and the current row boxes; everything else is decided
    here.
    """

    def __init__(self, model: CanvasOrderingModel) -> None:
        self.model = model

    def relative_y(self, client_y: float, container_top: float) -> float:
        return client_y - container_top

    def drop_template(
        self,
        template: FormElement,
        client_y: float,
        container_top: float,
        rows: Sequence[RowBox],
    ) -> FormElement:
        index = resolve_drop_index(self.relative_y(client_y, container_top), rows, container_top)
        return self.model.place_template(template, index)

    def begin_reorder(self, element_id: str) -> ReorderTracker:
        return ReorderTracker(self.model, element_id)
