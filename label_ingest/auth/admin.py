"""Admin API key guard for the batch ingestion endpoints.

Every batch endpoint requires the X-Admin-Key header to match the
ADMIN_API_KEY setting. When no key is configured the endpoints reject
all requests with 403.
"""

from __future__ import annotations

import hmac

from fastapi import Header

from label_ingest.settings import settings


class AdminAuthError(Exception):
    """Raised when the admin key check fails; rendered by main.py."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


async def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """Reject the request unless X-Admin-Key matches the configured key.

    The comparison is constant-time (``hmac.compare_digest``).

    Raises:
        AdminAuthError: the key is missing, wrong, or not configured.
    """
    if not settings.admin_api_key:
        raise AdminAuthError(
            "AUTH_NOT_CONFIGURED",
            "Batch ingestion is disabled: ADMIN_API_KEY is not set.",
        )

    if not hmac.compare_digest(x_admin_key or "", settings.admin_api_key):
        raise AdminAuthError("FORBIDDEN", "Invalid or missing admin API key.")
