"""Async HTTP client wrapper with timing and response capture."""

import asyncio
import time
from dataclasses import dataclass

import httpx

from apitest.services.runner.errors import TransportError


@dataclass
class HTTPResponse:
    """Captured HTTP response with timing information."""
    status_code: int
    headers: httpx.Headers
    body_bytes: bytes
    elapsed_ms: int

    @property
    def body(self) -> str:
        try:
            return self.body_bytes.decode("utf-8")
        except UnicodeDecodeError:
            return self.body_bytes.decode("latin-1")

    def get_header(self, name: str) -> str:
        """First value of a header (case-insensitive), or "" when absent."""
        values = self.headers.get_list(name)
        return values[0] if values else ""


class APIHttpClient:
    """Async HTTP client for API testing with timing capture."""

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        max_body_size: int = 10 * 1024 * 1024,  # 10MB max response body
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.max_body_size = max_body_size
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        request: httpx.Request,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> HTTPResponse:
        """
        Send a built request and read the full response body.

        Args:
            request: Outbound request
            timeout: Overall deadline in seconds (overrides default)
            cancel: Optional event; setting it aborts the request

        Returns:
            HTTPResponse with status, headers, body and timing

        Raises:
            TransportError: On network failure, timeout, cancellation, or a
                body larger than max_body_size.
                A non-2xx status is not an error here.
        """
        client = await self._get_client()
        deadline = timeout if timeout is not None else self.timeout

        request.extensions["timeout"] = httpx.Timeout(deadline).as_dict()

        start_time = time.perf_counter()
        send_task = asyncio.ensure_future(self._send(client, request, start_time))
        waiters = {send_task}
        cancel_task = None
        if cancel is not None:
            cancel_task = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, timeout=deadline, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in waiters if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if send_task in done:
            try:
                return send_task.result()
            except httpx.TimeoutException as e:
                raise TransportError(f"timeout: {e}") from e
            except httpx.ConnectError as e:
                raise TransportError(f"connection error: {e}") from e
            except (httpx.HTTPError, httpx.StreamError) as e:
                raise TransportError(f"request error: {e}") from e

        if cancel_task is not None and cancel_task in done:
            raise TransportError(f"request to {request.url} was canceled")
        raise TransportError(f"timeout: no response from {request.url} within {deadline}s")

    async def _send(self, client: httpx.AsyncClient, request: httpx.Request, start_time: float) -> HTTPResponse:
        response = await client.send(request, stream=True)
        try:
            # Read response body (with size limit)
            chunks = []
            size = 0
            async for chunk in response.aiter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if size > self.max_body_size:
                    raise TransportError(
                        f"response body from {request.url} exceeds max_body_size of {self.max_body_size} bytes"
                    )
        finally:
            await response.aclose()

        body_bytes = b"".join(chunks)
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        return HTTPResponse(
            status_code=response.status_code,
            headers=response.headers,
            body_bytes=body_bytes,
            elapsed_ms=elapsed_ms,
        )
