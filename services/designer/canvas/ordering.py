"""The ordered canvas of one form-editing session."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .elements import NON_CANVAS_TYPES, FormElement
from .errors import DuplicateElementError, NonCanvasElementError

logger = logging.getLogger(__name__)


def _clamp(index: int, upper: int) -> int:
    return max(0, min(index, upper))


class CanvasOrderingModel:
    """Ordered form elements; list position is display and submission order.

    Out-of-range indexes are clamped rather than rejected. Callers that need
    strict bounds must check them before calling.
    """

    def __init__(self, elements: Iterable[FormElement] = ()) -> None:
        self._elements: List[FormElement] = []
        self.replace_all(elements)

    def __len__(self) -> int:
        return len(self._elements)

    def list(self) -> Tuple[FormElement, ...]:
        return tuple(self._elements)

    def index_of(self, element_id: str) -> Optional[int]:
        for index, element in enumerate(self._elements):
            if element.id == element_id:
                return index
        return None

    def get(self, element_id: str) -> Optional[FormElement]:
        index = self.index_of(element_id)
        return None if index is None else self._elements[index]

    def insert_at(self, element: FormElement, index: int) -> int:
        """Insert ``element`` at ``index`` and return where it landed."""

        self._check_insertable(element)
        position = _clamp(index, len(self._elements))
        self._elements.insert(position, element)
        logger.debug("Inserted %s (%s) at %s", element.id, element.type, position)
        return position

    def place_template(self, template: FormElement, index: int) -> FormElement:
        """Drop a library template: a fresh copy with its own id is inserted."""

        element = template.clone_from_template()
        self.insert_at(element, index)
        return element

    def move(self, element_id: str, new_index: int) -> None:
        current = self.index_of(element_id)
        if current is None:
            return
        target = _clamp(new_index, len(self._elements) - 1)
        if target == current:
            return
        element = self._elements.pop(current)
        self._elements.insert(target, element)
        logger.debug("Moved %s from %s to %s", element_id, current, target)

    def remove(self, element_id: str) -> None:
        index = self.index_of(element_id)
        if index is not None:
            del self._elements[index]

    def update(self, element: FormElement) -> None:
        """Replace the element sharing ``element.id``, keeping its position."""

        index = self.index_of(element.id)
        if index is not None:
            self._elements[index] = element

    def replace_all(self, elements: Iterable[FormElement]) -> None:
        incoming: List[FormElement] = []
        seen = set()
        for element in elements:
            if element.type in NON_CANVAS_TYPES:
                raise NonCanvasElementError(f"{element.type} elements are not placed on the canvas")
            if element.id in seen:
                raise DuplicateElementError(f"Duplicate element id {element.id}")
            seen.add(element.id)
            incoming.append(element)
        self._elements = incoming

    def _check_insertable(self, element: FormElement) -> None:
        if element.type in NON_CANVAS_TYPES:
            raise NonCanvasElementError(f"{element.type} elements are not placed on the canvas")
        if self.index_of(element.id) is not None:
            raise DuplicateElementError(f"Duplicate element id {element.id}")
