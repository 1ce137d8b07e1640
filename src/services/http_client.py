"""Async HTTP client wrapper for outbound service calls.

A fresh ``httpx.AsyncClient`` is opened per request and failures are
logged before they propagate. ``timeout=None`` disables the timeout
entirely instead of falling back to ``settings.http.timeout``::

    client = AsyncHttpClient(timeout=None)
    response = await client.post(url, json=payload)
"""

from __future__ import annotations

import logging

import httpx

from config import settings

logger = logging.getLogger(__name__)

_DEFAULT = object()


class AsyncHttpClient:
    """Async HTTP client used for outbound service calls."""

    def __init__(
        self,
        timeout: float | None | object = _DEFAULT,
        connect_timeout: float | None = None,
    ):
        """Initialize the client; omitted timeouts come from ``settings.http``."""
        self.timeout = settings.http.timeout if timeout is _DEFAULT else timeout
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.http.connect_timeout
        )

    async def post(self, url: str, **kwargs) -> httpx.Response:
        """POST to ``url``; keyword arguments are passed through to httpx.

        Error statuses raise ``httpx.HTTPStatusError``. Nothing is retried.
        """
        try:
            async with httpx.AsyncClient(timeout=self._build_timeout()) as client:
                response = await client.request("POST", url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            logger.error("POST %s failed with status %s", url, exc.response.status_code)
            raise
        except httpx.RequestError as exc:
            logger.error("POST %s failed: %s", url, type(exc).__name__)
            raise

    def _build_timeout(self) -> httpx.Timeout:
        if self.timeout is None:
            return httpx.Timeout(None)
        return httpx.Timeout(self.timeout, connect=self.connect_timeout)
