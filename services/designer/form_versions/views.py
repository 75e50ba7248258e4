"""API views for the form designer."""
from __future__ import annotations

import uuid
from typing import Any, Dict

from django.conf import settings
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .errors import FormNotFound, InvalidData
from .serializers import FormListQuerySerializer, FormVersionRefSerializer, FormVersionSerializer
from .store import VersionedDraftStore


def _parse_form_id(value: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise FormNotFound() from None


def _request_body(request: Request) -> Dict[str, Any]:
    if not isinstance(request.data, dict):
        raise InvalidData("Request body must be a JSON object")
    return request.data


class FormDesignerViewSet(viewsets.ViewSet):
    """Create, edit, fetch and list designed forms for the acting user."""

    lookup_field = "form_id"
    lookup_value_regex = "[0-9a-fA-F-]+"
    store_class = VersionedDraftStore

    def get_store(self) -> VersionedDraftStore:
        return self.store_class()

    def create(self, request: Request) -> Response:
        body = _request_body(request)
        draft = self.get_store().create(
            owner_id=request.user.id,
            title=body.get("title"),
            raw_json=body.get("rawJson"),
        )
        serializer = FormVersionRefSerializer(draft)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, form_id: str | None = None) -> Response:
        body = _request_body(request)
        result = self.get_store().edit(
            _parse_form_id(form_id),
            owner_id=request.user.id,
            raw_json=body.get("rawJson"),
        )
        return Response(FormVersionRefSerializer(result).data)

    def list(self, request: Request) -> Response:
        query = FormListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page_size = settings.DESIGNER_PAGE_SIZE
        rows = self.get_store().list_by_owner_and_status(
            request.user.id,
            query.validated_data["status"],
            limit=page_size,
            offset=(query.validated_data["page"] - 1) * page_size,
        )
        return Response(FormVersionSerializer(rows, many=True).data)

    @action(detail=True, methods=["get"], url_path=r"(?P<version>[0-9]+)", url_name="version")
    def version(self, request: Request, form_id: str | None = None, version: str | None = None) -> Response:
        """Return one exact version snapshot."""

        row = self.get_store().get_by_version(_parse_form_id(form_id), int(version or 0))
        return Response(FormVersionSerializer(row).data)

    @action(
        detail=True,
        methods=["post"],
        url_path=r"(?P<version>[0-9]+)/publish",
        url_name="publish",
    )
    def publish(self, request: Request, form_id: str | None = None, version: str | None = None) -> Response:
        """Freeze a draft so later edits branch into a new version."""

        row = self.get_store().publish(_parse_form_id(form_id), int(version or 0))
        return Response(FormVersionRefSerializer(row).data)


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request: Request) -> Response:
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
