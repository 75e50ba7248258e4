"""HTTP client for the designer service's form endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .errors import StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class SavedVersion:
    form_id: str
    version: int
    status: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SavedVersion":
        return cls(
            form_id=str(payload["formId"]),
            version=int(payload["version"]),
            status=str(payload["status"]),
        )


class HttpDraftStore:
    """Talks to ``/api/forms/`` on behalf of one user."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/api/forms/"
        self.user_id = user_id
        self.api_key = api_key
        self.timeout = timeout

    def create(self, title: str, raw_json: Dict[str, Any]) -> SavedVersion:
        payload = self._request("POST", "", {"title": title, "rawJson": raw_json})
        return SavedVersion.from_payload(payload)

    def edit(self, form_id: str, raw_json: Dict[str, Any]) -> SavedVersion:
        payload = self._request("PUT", f"{form_id}/", {"rawJson": raw_json})
        return SavedVersion.from_payload(payload)

    def fetch(self, form_id: str, version: int) -> Dict[str, Any]:
        return self._request("GET", f"{form_id}/{version}/")

    def list(self, status: str = "WIP", page: int = 1) -> Any:
        return self._request("GET", "", params={"status": status, "page": page})

    def _headers(self) -> Dict[str, str]:
        headers = {"X-User-Id": self.user_id, "Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        suffix: str,
        json_payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = self.base_url + suffix
        try:
            response = requests.request(
                method,
                url,
                params=params,
                json=json_payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise StoreUnavailableError(f"Designer service unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            body = data if isinstance(data, dict) else {}
            raise StoreError(
                str(body.get("code") or "INTERNAL_ERROR"),
                str(body.get("message") or response.reason or "Request failed"),
                response.status_code,
            )
        if data is None:
            raise StoreError("INTERNAL_ERROR", "Designer service returned a non-JSON body", response.status_code)
        return data
