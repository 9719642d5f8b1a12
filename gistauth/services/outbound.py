"""Outbound HTTP client factory."""

from __future__ import annotations

import httpx

from ..core.config import Settings


def async_client(settings: Settings) -> httpx.AsyncClient:
    """Return a client for calls to identity providers.

    No retries; the configured timeout is the only bound on a request.
    """

    return httpx.AsyncClient(timeout=settings.http_timeout, follow_redirects=True)


__all__ = ["async_client"]
