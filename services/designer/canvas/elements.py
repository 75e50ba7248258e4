"""Form elements and session-scoped resource handles."""
from __future__ import annotations

import base64
import copy
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from .errors import TransientReferenceError, UnknownElementType

logger = logging.getLogger(__name__)

ELEMENT_TYPES = frozenset(
    {
        "header",
        "divider",
        "pageBreak",
        "text",
        "textarea",
        "label",
        "email",
        "password",
        "tel",
        "url",
        "search",
        "date",
        "time",
        "datetime",
        "datetime-local",
        "number",
        "range",
        "radio",
        "checkbox",
        "select",
        "file",
        "color",
        "hidden",
        "img",
        "video",
        "table",
        "submit",
        "reset",
        "logo",
    }
)

# Buttons that share a rendered row when adjacent.
ACTION_TYPES = frozenset({"submit", "reset"})

# Tracked beside the canvas, never inside its ordered sequence.
NON_CANVAS_TYPES = frozenset({"logo"})

_KNOWN_KEYS = ("id", "type", "label", "placeholder", "required", "properties", "style")


@dataclass(frozen=True)
class TransientReference:
    """A handle to a resource that only lives as long as the editing session.

    The browser equivalent is a ``blob:`` URL. It must be resolved into a
    durable value before anything holding it is persisted or exported.
    """

    handle: str
    content_type: str = "application/octet-stream"

    def __str__(self) -> str:
        return self.handle


def encode_data_url(content: bytes, content_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


class SessionResources:
    """Registry of uploaded-but-not-persisted resources for one session."""

    def __init__(self, encoder: Callable[[bytes, str], str] = encode_data_url) -> None:
        self._encoder = encoder
        self._content: Dict[str, Tuple[bytes, str]] = {}
        self._closed = False

    def register(self, content: bytes, content_type: str = "application/octet-stream") -> TransientReference:
        if self._closed:
            raise TransientReferenceError("Editing session has ended")
        reference = TransientReference(handle=f"blob:session/{uuid.uuid4()}", content_type=content_type)
        self._content[reference.handle] = (bytes(content), content_type)
        return reference

    def resolve(self, reference: TransientReference) -> str:
        """Encode the referenced content into a durable data URI."""

        if self._closed:
            raise TransientReferenceError(f"{reference.handle} expired with its session")
        try:
            content, content_type = self._content[reference.handle]
        except KeyError:
            raise TransientReferenceError(f"Unknown resource handle {reference.handle}") from None
        return self._encoder(content, content_type)

    def release(self, reference: TransientReference) -> None:
        self._content.pop(reference.handle, None)

    def close(self) -> None:
        self._content.clear()
        self._closed = True

    def __len__(self) -> int:
        return len(self._content)


def _find_references(value: Any, path: str) -> Iterator[Tuple[str, TransientReference]]:
    if isinstance(value, TransientReference):
        yield path, value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _find_references(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _find_references(item, f"{path}[{index}]")


def _resolve_references(value: Any, resolve: Callable[[TransientReference], str]) -> Any:
    if isinstance(value, TransientReference):
        return resolve(value)
    if isinstance(value, dict):
        return {key: _resolve_references(item, resolve) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_references(item, resolve) for item in value]
    if isinstance(value, tuple):
        return tuple(_resolve_references(item, resolve) for item in value)
    return value


@dataclass(frozen=True)
class FormElement:
    """One field or control of a form.

    ``properties`` and ``style`` are opaque to ordering; ``extra`` carries any
    other keys of the serialized element (icon, category, templateId, ...).
    """

    id: str
    type: str
    label: str = ""
    placeholder: Any = None
    required: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)
    style: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in ELEMENT_TYPES:
            raise UnknownElementType(f"Unknown element type {self.type!r}")

    @property
    def is_action(self) -> bool:
        return self.type in ACTION_TYPES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormElement":
        if not isinstance(data, dict):
            raise UnknownElementType("Element must be an object")
        return cls(
            id=str(data["id"]),
            type=data.get("type", ""),
            label=data.get("label") or "",
            placeholder=data.get("placeholder"),
            required=bool(data.get("required", False)),
            properties=copy.deepcopy(data.get("properties") or {}),
            style=copy.deepcopy(data.get("style") or {}),
            extra={key: copy.deepcopy(value) for key, value in data.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for persistence. Transient references are refused."""

        pending = next(self.transient_references(), None)
        if pending is not None:
            raise TransientReferenceError(f"Element {self.id} still holds a transient {pending[0]}")

        data: Dict[str, Any] = copy.deepcopy(self.extra)
        data.update({"id": self.id, "type": self.type, "label": self.label})
        if self.placeholder is not None:
            data["placeholder"] = self.placeholder
        data["required"] = self.required
        if self.properties:
            data["properties"] = copy.deepcopy(self.properties)
        if self.style:
            data["style"] = copy.deepcopy(self.style)
        return data

    def transient_references(self) -> Iterator[Tuple[str, TransientReference]]:
        """Yield ``(path, reference)`` for every transient reference, at any depth."""

        for name in ("placeholder", "properties", "style", "extra"):
            yield from _find_references(getattr(self, name), name)

    def resolved(self, resolve: Callable[[TransientReference], str]) -> "FormElement":
        """Return a copy with every transient reference replaced by ``resolve(ref)``."""

        return replace(
            self,
            placeholder=_resolve_references(self.placeholder, resolve),
            properties=_resolve_references(self.properties, resolve),
            style=_resolve_references(self.style, resolve),
            extra=_resolve_references(self.extra, resolve),
        )

    def clone_from_template(self, element_id: Optional[str] = None) -> "FormElement":
        """Instantiate a library template as a new canvas element."""

        extra = copy.deepcopy(self.extra)
        extra["templateId"] = self.id
        return replace(
            self,
            id=element_id or str(uuid.uuid4()),
            properties=copy.deepcopy(self.properties),
            style=copy.deepcopy(self.style),
            extra=extra,
        )
