"""Request correlation and access logging."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware:
    """Attach a correlation id to each request and log its completion."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.correlation_id = correlation_id  # type: ignore[attr-defined]
        started = time.monotonic()

        response = self.get_response(request)

        response[CORRELATION_HEADER] = correlation_id
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            "%s %s -> %s in %.1fms (correlation_id=%s user=%s)",
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
            correlation_id,
            request.headers.get("X-User-Id", "-"),
        )
        return response
