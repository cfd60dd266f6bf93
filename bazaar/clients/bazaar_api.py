"""HTTP client for the Twania Smart Bazaar API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests import Response

LOGGER = logging.getLogger(__name__)


class BazaarApiError(RuntimeError):
    """Raised when the API is unreachable or answers with an error status."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class BazaarApiClient:
    """Small HTTP client used by the smoke checks."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    @property
    def base_url(self) -> str:
        return self._base_url

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    def test_get(self) -> Dict[str, Any]:
        return self._request("GET", "/api/test")

    def test_post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/test", json=payload)

    def get_status(self, path: str) -> int:
        """Issue a bare GET and return the status code without raising on errors."""

        try:
            response = self._session.get(f"{self._base_url}{path}", timeout=self._timeout)
        except requests.RequestException as exc:
            raise BazaarApiError(f"Request to {path} failed: {exc}") from exc
        return response.status_code

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            LOGGER.error("api request failed", extra={"method": method, "path": path, "detail": str(exc)})
            raise BazaarApiError(
                f"No response from {url}. Server might be down or unreachable."
            ) from exc
        self._raise_for_status(response, path)
        try:
            return response.json()
        except ValueError as exc:
            raise BazaarApiError(f"Invalid JSON from {path}", status=response.status_code) from exc

    def _raise_for_status(self, response: Response, path: str) -> None:
        """Raise descriptive errors for API responses."""

        if response.ok:
            return
        status = response.status_code
        detail = response.text
        if status == 429:
            message = "Rate limited by the API."
        elif status == 404:
            message = f"Endpoint {path} not found."
        elif status >= 500:
            message = f"Server error ({status})."
        else:
            message = f"API error ({status})."
        LOGGER.error("api request failed", extra={"path": path, "status": status, "detail": detail})
        raise BazaarApiError(f"{message} Response: {detail[:200]}", status=status)
