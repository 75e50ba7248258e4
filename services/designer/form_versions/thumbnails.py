"""SVG preview thumbnails stored alongside each form version."""
from __future__ import annotations

import base64
from typing import Any, Dict, List

from django.template.loader import render_to_string

WIDTH = 200
HEIGHT = 120
MAX_PREVIEW_FIELDS = 2
MAX_LABEL_LENGTH = 18


def _truncate(label: str) -> str:
    if len(label) > MAX_LABEL_LENGTH:
        return label[: MAX_LABEL_LENGTH - 3] + "…"
    return label


def _preview_fields(raw_json: Dict[str, Any]) -> List[Dict[str, Any]]:
    elements = raw_json.get("elements")
    if not isinstance(elements, list):
        return []

    fields = []
    for index, element in enumerate(elements[:MAX_PREVIEW_FIELDS]):
        label = element.get("label") if isinstance(element, dict) else None
        if not isinstance(label, str):
            label = f"Field {index + 1}"
        y = 36 + index * 28
        fields.append({"y": y, "text_y": y + 12, "label": _truncate(label)})
    return fields


def render_thumbnail(raw_json: Dict[str, Any]) -> str:
    """Render ``raw_json`` as a small SVG preview and return it as a data URI.

    The preview shows the title in a header bar, the logo when it is already a
    durable data URI, and at most two field boxes.
    """

    logo = raw_json.get("logo")
    logo_href = ""
    if isinstance(logo, dict):
        placeholder = logo.get("placeholder")
        if isinstance(placeholder, str) and placeholder.startswith("data:"):
            logo_href = placeholder

    svg = render_to_string(
        "form_versions/thumbnail.svg",
        {
            "width": WIDTH,
            "height": HEIGHT,
            "ear_x": WIDTH - 20,
            "center_x": WIDTH // 2,
            "center_y": HEIGHT // 2,
            "logo_x": (WIDTH - 50) // 2,
            "field_width": WIDTH - 16,
            "header_start": "#FF7E1B",
            "header_end": "#FF642E",
            "accent": "#2702F6",
            "title": raw_json.get("title") or "",
            "logo_href": logo_href,
            "fields": _preview_fields(raw_json),
        },
    ).strip()
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
