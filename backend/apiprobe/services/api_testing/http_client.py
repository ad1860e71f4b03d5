"""Async HTTP client wrapper with timing, response capture and failure classification."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Literal

import httpx

from apiprobe.services.api_testing.request_builder import ConcreteRequest
from apiprobe.services.api_testing.response_normalizer import decode_body

logger = logging.getLogger(__name__)

FailureKind = Literal["timeout", "connection_error", "request_error"]


@dataclass
class HTTPResponse:
    """Captured HTTP response with timing information."""
    status_code: int
    headers: dict[str, str]
    body: str
    body_bytes: bytes
    elapsed_ms: int
    size_bytes: int = 0
    truncated: bool = False

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")


@dataclass
class TransportFailure:
    """No response was obtained."""
    kind: FailureKind
    reason: str
    elapsed_ms: int

    @property
    def message(self) -> str:
        labels = {
            "timeout": "Timeout",
            "connection_error": "Connection error",
            "request_error": "Request error",
        }
        return f"{labels[self.kind]}: {self.reason}"


class APIHttpClient:
    """Async HTTP client for API testing with timing capture.

    Sends exactly one request per call, never retries. Any received response,
    4xx and 5xx included, is a success at this layer.
    """

    def __init__(
        self,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        max_body_size: int = 10 * 1024 * 1024,  # 10MB max response body
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.max_body_size = max_body_size
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "APIHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        request: ConcreteRequest,
        timeout_ms: int,
    ) -> HTTPResponse | TransportFailure:
        """
        Send a request and capture the response.

        The whole exchange, body included, runs under a deadline of timeout_ms.
        On expiry the in-flight call is cancelled and a timeout failure returned.

        Args:
            request: The concrete request to send
            timeout_ms: Deadline in milliseconds

        Returns:
            HTTPResponse on any received response, TransportFailure otherwise
        """
        client = self._get_client()
        timeout = timeout_ms / 1000.0

        kwargs = {
            "method": request.method,
            "url": request.url,
            "headers": request.headers,
            "timeout": httpx.Timeout(timeout),
        }
        if request.body is not None:
            kwargs["json"] = request.body

        start_time = time.perf_counter()

        def elapsed() -> int:
            return int((time.perf_counter() - start_time) * 1000)

        # Fails on non-ASCII header values and malformed URLs
        try:
            http_request = client.build_request(**kwargs)
        except (httpx.InvalidURL, ValueError) as e:
            logger.warning("%s %s could not be built: %s", request.method, request.url, e)
            return TransportFailure(kind="request_error", reason=str(e) or type(e).__name__, elapsed_ms=elapsed())

        try:
            async with asyncio.timeout(timeout):
                response = await client.send(http_request)
                elapsed_ms = elapsed()
                body_bytes = await response.aread()

        except (TimeoutError, httpx.TimeoutException) as e:
            logger.warning("%s %s timed out after %dms", request.method, request.url, timeout_ms)
            return TransportFailure(
                kind="timeout",
                reason=str(e) or f"no response within {timeout_ms}ms",
                elapsed_ms=elapsed(),
            )
        except (httpx.ConnectError, httpx.NetworkError) as e:
            logger.warning("%s %s connection failed: %s", request.method, request.url, e)
            return TransportFailure(kind="connection_error", reason=str(e) or type(e).__name__, elapsed_ms=elapsed())
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning("%s %s request failed: %s", request.method, request.url, e)
            return TransportFailure(kind="request_error", reason=str(e) or type(e).__name__, elapsed_ms=elapsed())

        truncated = len(body_bytes) > self.max_body_size
        if truncated:
            body_bytes = body_bytes[:self.max_body_size]

        return HTTPResponse(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            body=decode_body(body_bytes),
            body_bytes=body_bytes,
            elapsed_ms=elapsed_ms,
            size_bytes=len(body_bytes),
            truncated=truncated,
        )
