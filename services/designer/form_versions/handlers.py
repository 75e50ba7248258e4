"""Outermost DRF exception handler for the designer service.

Imports ``rest_framework.views``; :mod:`form_versions.errors` must never import
this module, since DRF's views load the authentication classes that raise the
designer exceptions.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import DesignerError

logger = logging.getLogger(__name__)


# DRF's built-in exceptions, translated into the designer taxonomy.
_DRF_CODES = (
    (exceptions.NotAuthenticated, "UNAUTHORIZED"),
    (exceptions.AuthenticationFailed, "UNAUTHORIZED"),
    (exceptions.NotFound, "NOT_FOUND"),
    (exceptions.ParseError, "INVALID_DATA"),
    (exceptions.ValidationError, "INVALID_DATA"),
    (exceptions.PermissionDenied, "FORBIDDEN"),
    (exceptions.MethodNotAllowed, "METHOD_NOT_ALLOWED"),
)


def _code_for(exc: Exception) -> str:
    if isinstance(exc, DesignerError):
        return exc.code
    for exc_type, code in _DRF_CODES:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, exceptions.APIException):
        return str(exc.default_code).upper()
    if isinstance(exc, Http404):
        return "NOT_FOUND"
    if isinstance(exc, DjangoPermissionDenied):
        return "FORBIDDEN"
    return "INTERNAL_ERROR"


def _message_from(detail: Any) -> str:
    if isinstance(detail, dict):
        for key, value in detail.items():
            return f"{key}: {_message_from(value)}"
        return ""
    if isinstance(detail, (list, tuple)):
        return _message_from(detail[0]) if detail else ""
    return str(detail)


def problem_details(
    code: str,
    message: str,
    status_code: int,
    request: Optional[Any] = None,
) -> Dict[str, Any]:
    base_url = getattr(settings, "DESIGNER_ERROR_TYPE_BASE_URL", "").rstrip("/")
    return {
        "type": f"{base_url}/{code}",
        "code": code,
        "message": message,
        "path": request.get_full_path() if request is not None else None,
        "correlation_id": getattr(request, "correlation_id", None),
        "status": status_code,
    }


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Response:
    """Render every failure as a problem-details body.

    Unexpected exceptions are logged with the operation and ``formId`` that
    triggered them and reported to the caller as a generic internal error.
    """

    request = context.get("request")
    view = context.get("view")
    response = exception_handler(exc, context)

    if response is None:
        operation = getattr(view, "action", None) or type(view).__name__
        form_id = (context.get("kwargs") or {}).get("form_id")
        logger.error(
            "Unhandled error during %s (formId=%s)",
            operation,
            form_id,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        body = problem_details(
            "INTERNAL_ERROR",
            "Internal Server Error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            request,
        )
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = _code_for(exc)
    detail = getattr(exc, "detail", None)
    message = _message_from(detail) if detail is not None else _message_from(response.data)
    if response.status_code >= 500:
        logger.error("Request failed with %s: %s", code, message)
    else:
        logger.info("Request rejected with %s: %s", code, message)
    response.data = problem_details(code, message, response.status_code, request)
    return response
