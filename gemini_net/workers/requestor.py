"""Async Gemini requestor.

Runs one request/response exchange per call: TCP connect, TLS handshake,
request line, response line, and (for 2x) the body.  Whatever goes wrong
below the caller's own input, the result is a :class:`GeminiResponse`;
network and protocol failures come back as status 49 with the error text in
``meta`` rather than as exceptions, so callers working through many URLs do
not need per-request exception handling.

A single abort deadline covers every phase of an exchange.  Callers may
also pass an ``asyncio.Event`` to cancel an in-flight exchange.

A requestor only holds configuration, so one instance can serve any number
of concurrent exchanges.  See ``get_requestor`` for the shared instance.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import ssl
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from gemini_net.core.config import settings
from gemini_net.core.constants import BODY_CHUNK_SIZE
from gemini_net.core.errors import GeminiConnectionError, GeminiError, RequestCancelled
from gemini_net.models.response import GeminiResponse, TlsInfo
from gemini_net.models.url import GeminiUrl
from gemini_net.protocol.codec import encode_request
from gemini_net.protocol.parser import build_response
from gemini_net.protocol.scanner import ResponseLineScanner

logger = logging.getLogger(__name__)

#: Called with the URL and the peer's DER certificate; return False to reject.
CertificateValidator = Callable[[GeminiUrl, Optional[bytes]], bool]

# Module-level shared requestor
_requestor: Optional[GeminiRequestor] = None


def get_requestor() -> GeminiRequestor:
    """Return the shared requestor.  Creates one from settings if missing."""
    global _requestor  # noqa: PLW0603
    if _requestor is None:
        _requestor = GeminiRequestor()
    return _requestor


def reset_requestor() -> None:
    """Drop the shared requestor so the next call picks up new settings."""
    global _requestor  # noqa: PLW0603
    _requestor = None


def create_ssl_context() -> ssl.SSLContext:
    """TLS client context that accepts any server certificate.

    Capsules overwhelmingly serve self-signed certificates, so CA validation
    is off.  Pass a ``certificate_validator`` to the requestor to apply a
    policy of your own.
    """
    # TODO: trust-on-first-use certificate store keyed by GeminiUrl.authority.
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class ExchangeState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    SENDING_REQUEST = "sending request"
    READING_HEADER = "reading header"
    READING_BODY = "reading body"
    DONE = "done"
    FAILED = "failed"


@dataclass
class _Exchange:
    """Per-exchange progress.  Never shared between exchanges."""

    url: GeminiUrl
    state: ExchangeState = ExchangeState.IDLE
    request_sent: Optional[datetime] = None
    remote_address: Optional[str] = None
    tls: Optional[TlsInfo] = None
    connect_time: Optional[int] = None

    def failed(self, message: str) -> GeminiResponse:
        self.state = ExchangeState.FAILED
        return GeminiResponse.connection_error(
            self.url,
            message,
            request_sent=self.request_sent,
            response_received=datetime.now(timezone.utc),
            connect_time=self.connect_time,
            remote_address=self.remote_address,
            tls=self.tls,
        )


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


def _peer_address(writer: asyncio.StreamWriter) -> Optional[str]:
    peer = writer.get_extra_info("peername")
    return peer[0] if peer else None


def _tls_info(writer: asyncio.StreamWriter) -> TlsInfo:
    ssl_object = writer.get_extra_info("ssl_object")
    if ssl_object is None:
        return TlsInfo()
    cipher = ssl_object.cipher()
    return TlsInfo(
        protocol=ssl_object.version(),
        cipher_suite=cipher[0] if cipher else None,
        certificate=ssl_object.getpeercert(binary_form=True),
    )


async def _run_until_cancelled(exchange: Awaitable[GeminiResponse], cancel: asyncio.Event) -> GeminiResponse:
    """Await *exchange*, abandoning it as soon as *cancel* is set."""
    task = asyncio.ensure_future(exchange)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.wait({task})
    if task.cancelled():
        raise RequestCancelled("The request was cancelled")
    return task.result()


class GeminiRequestor:
    """Executes Gemini requests under connect/abort/size budgets.

    Timeouts are in seconds; ``max_response_size`` is in bytes.  Unset
    arguments fall back to :data:`gemini_net.core.config.settings`.
    """

    def __init__(
        self,
        connect_timeout: float | None = None,
        abort_timeout: float | None = None,
        max_response_size: int | None = None,
        ssl_context: ssl.SSLContext | None = None,
        certificate_validator: CertificateValidator | None = None,
    ) -> None:
        self.connect_timeout = (
            settings.connect_timeout if connect_timeout is None else connect_timeout
        )
        self.abort_timeout = (
            settings.abort_timeout if abort_timeout is None else abort_timeout
        )
        self.max_response_size = (
            settings.max_response_size if max_response_size is None else max_response_size
        )
        self.ssl_context = ssl_context or create_ssl_context()
        self.certificate_validator = certificate_validator

    async def request(
        self,
        url: GeminiUrl | str,
        address: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> GeminiResponse:
        """Request *url* and return the response.

        *address* connects to a specific IP instead of resolving the host;
        the hostname is still used for SNI and the request line.

        Only a malformed *url* string raises (``UrlFormatError``).  Every
        other failure, the abort deadline and *cancel* included, is returned
        as a status 49 response.
        """
        if not isinstance(url, GeminiUrl):
            url = GeminiUrl(url)

        exchange = _Exchange(url)
        deadline = asyncio.timeout(self.abort_timeout)
        try:
            async with deadline:
                if cancel is None:
                    return await self._run(exchange, address)
                return await _run_until_cancelled(self._run(exchange, address), cancel)
        except (GeminiError, OSError) as exc:
            if isinstance(exc, TimeoutError) and deadline.expired():
                message = f"Request aborted after {self.abort_timeout:g} seconds"
            else:
                message = str(exc) or (
                    f"{type(exc).__name__} while {exchange.state.value} {url.authority}"
                )
        logger.debug(
            "Request for %s failed while %s: %s", url, exchange.state.value, message
        )
        return exchange.failed(message)

    def request_sync(self, url: GeminiUrl | str, address: str | None = None) -> GeminiResponse:
        """Blocking wrapper around :meth:`request`.  Not for use inside a loop."""
        return asyncio.run(self.request(url, address))

    # ------------------------------------------------------------------
    # Exchange phases
    # ------------------------------------------------------------------

    async def _run(self, exchange: _Exchange, address: str | None) -> GeminiResponse:
        url = exchange.url
        exchange.state = ExchangeState.CONNECTING
        exchange.request_sent = datetime.now(timezone.utc)
        connect_started = time.perf_counter()
        reader, writer = await self._connect(address or url.hostname, url.port)
        try:
            exchange.remote_address = _peer_address(writer)

            exchange.state = ExchangeState.HANDSHAKING
            await writer.start_tls(self.ssl_context, server_hostname=url.hostname)
            exchange.tls = _tls_info(writer)
            exchange.connect_time = _elapsed_ms(connect_started)
            if self.certificate_validator is not None and not self.certificate_validator(
                url, exchange.tls.certificate
            ):
                raise GeminiConnectionError(
                    f"Certificate for {url.authority} was rejected"
                )

            exchange.state = ExchangeState.SENDING_REQUEST
            download_started = time.perf_counter()
            writer.write(encode_request(url))
            await writer.drain()

            exchange.state = ExchangeState.READING_HEADER
            line, leftover = await self._read_response_line(reader)
            response = build_response(url, line)
            response.request_sent = exchange.request_sent
            response.response_received = datetime.now(timezone.utc)
            response.connect_time = exchange.connect_time
            response.remote_address = exchange.remote_address
            response.tls = exchange.tls

            if response.is_success:
                exchange.state = ExchangeState.READING_BODY
                body, truncated = await self._read_body(reader, leftover)
                response.body_bytes = body
                response.is_body_truncated = truncated
                if truncated:
                    logger.info(
                        "Body for %s truncated at %d bytes", url, len(body)
                    )

            response.download_time = _elapsed_ms(download_started)
            exchange.state = ExchangeState.DONE
            return response
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _connect(
        self, host: str, port: int
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.connect_timeout
            )
        except TimeoutError as exc:
            raise GeminiConnectionError(
                f"Connection to {host}:{port} timed out after "
                f"{self.connect_timeout:g} seconds"
            ) from exc

    async def _read_response_line(self, reader: asyncio.StreamReader) -> tuple[str, bytes]:
        """Return the decoded line and any bytes read past its CRLF."""
        scanner = ResponseLineScanner()
        leftover = b""
        while not scanner.terminated:
            chunk = await reader.read(BODY_CHUNK_SIZE)
            if not chunk:
                scanner.close()
            leftover = scanner.feed(chunk)
        return scanner.line, leftover

    async def _read_body(self, reader: asyncio.StreamReader, leftover: bytes) -> tuple[bytes, bool]:
        """Read to EOF, stopping once the body exceeds ``max_response_size``.

        The check runs after each chunk is appended, so a truncated body can
        overshoot the limit by up to one chunk.
        """
        body = bytearray(leftover)
        truncated = len(body) > self.max_response_size
        while not truncated:
            chunk = await reader.read(BODY_CHUNK_SIZE)
            if not chunk:
                break
            body += chunk
            truncated = len(body) > self.max_response_size
        return bytes(body), truncated
