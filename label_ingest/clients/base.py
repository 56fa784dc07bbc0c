"""Shared plumbing for collaborator HTTP clients."""

from __future__ import annotations

import httpx


class CollaboratorClient:
    """Holds the shared ``httpx.AsyncClient`` and the service endpoint.

    The underlying client is owned by the caller (the app lifespan or the
    CLI) and is never closed here.
    """

    def __init__(self, http: httpx.AsyncClient, url: str, api_key: str = "") -> None:
        self._http = http
        self._url = url
        self._api_key = api_key

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"X-Admin-Key": self._api_key}


def describe_http_error(response: httpx.Response) -> str:
    """Pull a human-readable error out of a non-success response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if message:
            return str(message)
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()
