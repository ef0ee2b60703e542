"""
Metrics Ingestion - Transport.

============================================================
PURPOSE
============================================================
The single network seam of the collector.

- Transport contract: one request in, status + raw bytes out
- aiohttp implementation with a caller-supplied timeout
- BOM stripping and JSON decoding of response bodies
- API key masking for anything that gets logged

The transport is injected into fetchers by the caller; nothing
here is created lazily or shared process-wide.

============================================================
"""

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

import aiohttp

from metrics_ingestion.exceptions import MalformedResponseError, TransportError


logger = logging.getLogger("metrics_ingestion.transport")

UTF8_BOM = b"\xef\xbb\xbf"

# Query/form parameter names whose values never reach a log line
SENSITIVE_PARAMS = {
    "key",
    "apikey",
    "api_key",
    "access_token",
    "token",
    "secret",
    "password",
}


# =============================================================
# TRANSPORT CONTRACT
# =============================================================

@dataclass
class TransportResponse:
    """Raw result of one HTTP round trip."""
    status_code: int
    body: bytes
    url: str
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def text(self, limit: int = 1000) -> str:
        return self.body[:limit].decode("utf-8", errors="replace")


class Transport(ABC):
    """
    Abstract HTTP transport.

    Implementations perform exactly one round trip per call, never
    retry, and raise TransportError on connection failure or timeout.
    """

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> TransportResponse:
        """
        Send one request.

        Args:
            method: HTTP method
            url: Fully built request URL
            headers: Request headers
            body: Encoded request body, if any

        Returns:
            TransportResponse with status and raw body bytes

        Raises:
            TransportError: On network failure or timeout
        """
        pass

    async def close(self) -> None:
        """Release resources held by the transport."""

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# =============================================================
# AIOHTTP TRANSPORT
# =============================================================

class AiohttpTransport(Transport):
    """
    Transport backed by an aiohttp ClientSession.

    A session passed in by the caller is borrowed and left open;
    otherwise one is created on construction-time settings and
    closed by close().
    """

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        source_name: Optional[str] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._source_name = source_name

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self._timeout,
                    sock_read=self._timeout,
                ),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> TransportResponse:
        session = await self._get_session()

        start_time = time.monotonic()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers) if headers else None,
                data=body,
            ) as response:
                payload = await response.read()
                elapsed = time.monotonic() - start_time
                logger.debug(
                    f"{method} {mask_url(url)} -> {response.status} in {elapsed * 1000:.1f}ms"
                )
                return TransportResponse(
                    status_code=response.status,
                    body=payload,
                    url=url,
                    elapsed_seconds=elapsed,
                )

        except asyncio.TimeoutError as e:
            raise TransportError(
                message=f"Request timed out after {self._timeout}s",
                source_name=self._source_name,
                request_url=mask_url(url),
                timeout=True,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise TransportError(
                message=f"Connection error: {e}",
                source_name=self._source_name,
                request_url=mask_url(url),
                original_error=e,
            )

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(timeout={self._timeout})>"


# =============================================================
# BODY DECODING
# =============================================================

def strip_bom(body: bytes) -> bytes:
    """Remove a leading UTF-8 byte-order mark."""
    if body.startswith(UTF8_BOM):
        return body[len(UTF8_BOM):]
    return body


def decode_json_body(
    body: bytes,
    request_url: Optional[str] = None,
    source_name: Optional[str] = None,
) -> Any:
    """
    Decode a response body as JSON after stripping any BOM.

    Raises:
        MalformedResponseError: If the body is empty or not valid JSON
    """
    raw = strip_bom(body)
    if not raw.strip():
        raise MalformedResponseError(
            message="Empty response body",
            source_name=source_name,
            request_url=mask_url(request_url) if request_url else None,
        )
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedResponseError(
            message=f"Response body is not valid JSON: {e}",
            source_name=source_name,
            request_url=mask_url(request_url) if request_url else None,
            body_excerpt=raw[:200].decode("utf-8", errors="replace"),
            original_error=e,
        )


# =============================================================
# MASKING
# =============================================================

def mask_url(url: str, extra_params: Iterable[str] = ()) -> str:
    """
    Mask sensitive query parameters in a URL.

    Args:
        url: URL string
        extra_params: Additional parameter names to mask

    Returns:
        URL with sensitive values replaced by ***
    """
    if not url:
        return url

    for param in SENSITIVE_PARAMS.union(extra_params):
        pattern = re.compile(f"([?&]{re.escape(param)}=)([^&]+)", re.IGNORECASE)
        url = pattern.sub(lambda m: f"{m.group(1)}***", url)

    return url

