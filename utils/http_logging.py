"""
HTTP transport wrapper that logs requests and responses
"""
import logging
import time
from typing import Iterable, Tuple

import httpx

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}


def redact_headers(headers: Iterable[Tuple[str, str]]) -> str:
    """Format headers for logging with credentials hidden"""
    parts = []
    for name, value in headers:
        if name.lower() in SENSITIVE_HEADERS:
            value = "[REDACTED]"
        parts.append(f"{name}: {value}")
    return ", ".join(parts)


class LoggingTransport(httpx.AsyncBaseTransport):
    """Logs every request sent through the wrapped transport at DEBUG level

    Request bodies are never logged since they carry authorization codes and
    refresh tokens.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport):
        self.transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = request.url.copy_with(query=None)
        logger.debug(f"> {request.method} {url}")
        logger.debug(f"> Headers: {redact_headers(request.headers.items())}")

        start = time.monotonic()
        try:
            response = await self.transport.handle_async_request(request)
        except httpx.HTTPError as e:
            logger.debug(f"< {request.method} {url} failed after {time.monotonic() - start:.3f}s: {e}")
            raise

        logger.debug(f"< {response.status_code} {request.method} {url} ({time.monotonic() - start:.3f}s)")
        return response

    async def aclose(self) -> None:
        await self.transport.aclose()
