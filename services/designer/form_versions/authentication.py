"""Identity resolution for requests forwarded by the API gateway."""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from rest_framework.authentication import BaseAuthentication
from rest_framework.request import Request

from .errors import Unauthorized


@dataclass(frozen=True)
class ActingUser:
    """The user on whose behalf the gateway forwarded a request."""

    id: str

    is_authenticated = True
    is_anonymous = False

    def __str__(self) -> str:
        return self.id


class ForwardedUserAuthentication(BaseAuthentication):
    """Trust the ``X-User-Id`` header set by the gateway.

    When ``DESIGNER_API_KEY`` is configured the caller must also present it in
    ``X-Api-Key``; requests without it never reach identity resolution.
    """

    user_header = "HTTP_X_USER_ID"
    api_key_header = "HTTP_X_API_KEY"

    def authenticate(self, request: Request) -> Optional[Tuple[ActingUser, None]]:
        expected_key = getattr(settings, "DESIGNER_API_KEY", "")
        if expected_key:
            supplied = request.META.get(self.api_key_header, "")
            if not hmac.compare_digest(supplied.encode("utf-8"), expected_key.encode("utf-8")):
                raise Unauthorized("Invalid API key")

        user_id = (request.META.get(self.user_header) or "").strip()
        if not user_id:
            return None
        return ActingUser(id=user_id), None

    def authenticate_header(self, request: Request) -> str:
        return "X-User-Id"
