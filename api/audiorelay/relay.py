"""Relays the converted audio file from upstream to the caller.

The transfer has a single commit point. Until the upstream response is open
and known to be 2xx, failures raise :class:`UpstreamError` and become a JSON
error. Once the ``StreamingResponse`` headers are sent, a failure can only
abort the connection.
"""
import threading
from typing import Iterator, Optional

import requests
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send

from audiorelay.errors import StreamingFailure, UpstreamError
from audiorelay.upstream import SessionFactory, UpstreamRequestSpec, describe_failure, send
from audiorelay.utils.logging import get_logger
from audiorelay.utils.text import attachment_headers


logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept": "*/*",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}


class UpstreamStream:
    """An open upstream download. ``close`` releases the response and its session once."""

    def __init__(self, session: requests.Session, response: requests.Response, url: str) -> None:
        self.session = session
        self.response = response
        self.url = url
        self.bytes_sent = 0
        self.completed = False
        self._closed = False
        self._lock = threading.Lock()

    @property
    def content_length(self) -> Optional[str]:
        # requests decodes gzip/deflate bodies, so the upstream length only holds for identity encoding.
        if self.response.headers.get("Content-Encoding"):
            return None
        return self.response.headers.get("Content-Length")

    def iter_body(self) -> Iterator[bytes]:
        try:
            for chunk in self.response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    self.bytes_sent += len(chunk)
                    yield chunk
            self.completed = True
        except requests.RequestException as exc:
            logger.error("Upstream stream failed mid-transfer: %s", exc, extra={"url": self.url, "bytes": self.bytes_sent})
            raise StreamingFailure(f"Upstream stream failed: {exc}") from exc
        finally:
            self.close()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.response.close()
        finally:
            self.session.close()
        if self.completed:
            logger.info("Relay finished", extra={"url": self.url, "bytes": self.bytes_sent})
        else:
            logger.warning("Relay aborted before completion", extra={"url": self.url, "bytes": self.bytes_sent})


class RelayResponse(StreamingResponse):
    """Streaming response that treats a vanished client as a warning, not a server error."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except (ClientDisconnect, OSError):
            logger.warning("Client disconnected during relay")
            # Starlette skips the background task when the send fails.
            if self.background is not None:
                await self.background()


class StreamRelay:
    def __init__(
        self,
        timeout: float = 60.0,
        max_redirects: int = 10,
        session_factory: SessionFactory = requests.Session,
    ) -> None:
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._session_factory = session_factory

    def open(self, download_url: str) -> UpstreamStream:
        spec = UpstreamRequestSpec(
            url=download_url,
            headers=BROWSER_HEADERS,
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )
        session = self._session_factory()
        try:
            response = send(session, spec, stream=True)
        except requests.RequestException as exc:
            session.close()
            raise UpstreamError(f"Error fetching file: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = describe_failure(response)
            response.close()
            session.close()
            raise UpstreamError(f"Error fetching file: {message}", response.status_code)
        return UpstreamStream(session, response, download_url)

    def respond(self, download_url: str, title: Optional[str]) -> RelayResponse:
        logger.info("Streaming from upstream", extra={"url": download_url})
        upstream = self.open(download_url)
        headers = attachment_headers(title)
        if upstream.content_length:
            headers["Content-Length"] = upstream.content_length
        return RelayResponse(
            upstream.iter_body(),
            media_type="audio/mpeg",
            headers=headers,
            background=BackgroundTask(upstream.close),
        )
