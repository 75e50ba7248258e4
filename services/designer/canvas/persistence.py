"""Saving and loading one form-editing session."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Protocol

from .client import SavedVersion
from .elements import FormElement, SessionResources
from .errors import MissingTitleError, SaveInProgressError, StoreError
from .ordering import CanvasOrderingModel

logger = logging.getLogger(__name__)


class DraftGateway(Protocol):
    def create(self, title: str, raw_json: Dict[str, Any]) -> SavedVersion: ...

    def edit(self, form_id: str, raw_json: Dict[str, Any]) -> SavedVersion: ...

    def fetch(self, form_id: str, version: int) -> Dict[str, Any]: ...


@dataclass
class EditingSession:
    """Everything one user edits at once; owned by exactly one session."""

    canvas: CanvasOrderingModel = field(default_factory=CanvasOrderingModel)
    title: str = ""
    logo: Optional[FormElement] = None
    form_id: Optional[str] = None
    version: Optional[int] = None
    resources: SessionResources = field(default_factory=SessionResources)

    def seed(
        self,
        title: str,
        logo: Optional[FormElement],
        elements: Iterable[FormElement],
        form_id: Optional[str] = None,
        version: Optional[int] = None,
    ) -> None:
        self.canvas.replace_all(elements)
        self.title = title
        self.logo = logo
        self.form_id = form_id
        self.version = version


def _elements_from(raw_json: Dict[str, Any]):
    return [FormElement.from_dict(item) for item in raw_json.get("elements") or []]


def _logo_from(raw_json: Dict[str, Any]) -> Optional[FormElement]:
    logo = raw_json.get("logo")
    return FormElement.from_dict(logo) if isinstance(logo, dict) else None


class PersistenceOrchestrator:
    """Moves an :class:`EditingSession` to and from the designer service.

    Saves are serialized per session: a ``save()`` issued while another one is
    in flight is rejected with :class:`SaveInProgressError`.
    """

    def __init__(self, session: EditingSession, store: DraftGateway) -> None:
        self.session = session
        self.store = store
        self._save_lock = threading.Lock()

    @property
    def saving(self) -> bool:
        return self._save_lock.locked()

    def snapshot(self) -> Dict[str, Any]:
        """Build ``{title, logo, elements}`` with every transient reference resolved."""

        resolve = self.session.resources.resolve
        logo = self.session.logo.resolved(resolve) if self.session.logo is not None else None
        return {
            "title": self.session.title,
            "logo": logo.to_dict() if logo is not None else None,
            "elements": [element.resolved(resolve).to_dict() for element in self.session.canvas.list()],
        }

    def save(self) -> SavedVersion:
        if not self._save_lock.acquire(blocking=False):
            raise SaveInProgressError("A save is already in progress for this form")
        try:
            title = (self.session.title or "").strip()
            if not title:
                raise MissingTitleError("Title must be non-empty")
            self.session.title = title

            raw_json = self.snapshot()
            if self.session.form_id is None:
                saved = self.store.create(title, raw_json)
            else:
                saved = self.store.edit(self.session.form_id, raw_json)

            self.session.form_id = saved.form_id
            self.session.version = saved.version
            logger.info("Saved form %s v%s (%s)", saved.form_id, saved.version, saved.status)
            return saved
        finally:
            self._save_lock.release()

    def load(self, form_id: str, version: int) -> None:
        payload = self.store.fetch(form_id, version)
        raw_json = payload.get("rawJson")
        if not isinstance(raw_json, dict):
            raise StoreError("INVALID_DATA", f"Form {form_id} v{version} has no rawJson")

        self.session.seed(
            title=raw_json.get("title") or payload.get("title") or "",
            logo=_logo_from(raw_json),
            elements=_elements_from(raw_json),
            form_id=str(payload.get("formId") or form_id),
            version=int(payload.get("version") or version),
        )
        logger.info("Loaded form %s v%s with %s elements", form_id, version, len(self.session.canvas))

    def export_document(self) -> str:
        """Serialize the session as a portable JSON document."""

        document = {"id": self.session.form_id}
        document.update(self.snapshot())
        return json.dumps(document, indent=2)

    def import_document(self, document: str) -> None:
        """Re-seed the session from an exported document.

        The result is an unsaved form: the next save creates a new one.
        """

        payload = json.loads(document)
        if not isinstance(payload, dict):
            raise StoreError("INVALID_DATA", "Imported document must be a JSON object")
        self.session.seed(
            title=payload.get("title") or "",
            logo=_logo_from(payload),
            elements=_elements_from(payload),
        )
