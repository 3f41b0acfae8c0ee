"""Turn decoded lines and raw buffers into :class:`GeminiResponse` objects."""

from __future__ import annotations

from gemini_net.core.constants import MAX_REQUEST_URL_LENGTH
from gemini_net.core.errors import ProtocolFormatError, UrlFormatError
from gemini_net.models.response import GeminiResponse
from gemini_net.models.url import GeminiUrl
from gemini_net.protocol.codec import (
    derive_media_info,
    is_success_status,
    normalize_legacy_separator,
    parse_status_and_meta,
)

_CRLF = b"\r\n"


def build_response(url: GeminiUrl, line: str) -> GeminiResponse:
    """Validate a decoded response line and derive media info for 2x."""
    status, meta = parse_status_and_meta(normalize_legacy_separator(line))
    response = GeminiResponse(url=url, status=status, meta=meta)
    if is_success_status(status):
        info = derive_media_info(meta)
        response.mime_type = info.mime_type
        response.charset = info.charset
        response.language = info.language
    return response


def parse_response_bytes(url: GeminiUrl, data: bytes) -> GeminiResponse:
    """Parse a complete captured response (status line plus optional body).

    Raises:
        ProtocolFormatError: the buffer is too short, has no CRLF, or the CRLF
            comes before a status could fit.
    """
    if len(data) < 5:
        raise ProtocolFormatError("Malformed Gemini response. Response line too short.")

    end = data.find(_CRLF)
    if end == -1:
        raise ProtocolFormatError("Malformed Gemini response. Missing response line ending.")
    if end < 3:
        raise ProtocolFormatError(
            "Malformed Gemini response. Response line ending appears too early."
        )

    response = build_response(url, data[:end].decode("utf-8", errors="replace"))
    body = data[end + len(_CRLF) :]
    if body:
        response.body_bytes = body
    return response


def read_request_line(data: bytes) -> GeminiUrl:
    """Validate a request line as received by a server.

    The line must be CRLF terminated and carry an absolute gemini URL of at
    most 1024 bytes.
    """
    end = data.find(_CRLF)
    if end == -1:
        raise ProtocolFormatError("Invalid request. Request line missing CRLF.")
    if end > MAX_REQUEST_URL_LENGTH:
        raise ProtocolFormatError(
            f"Invalid request. URL exceeds {MAX_REQUEST_URL_LENGTH} bytes."
        )
    if data[end + len(_CRLF) :]:
        raise ProtocolFormatError("Invalid request. Gemini requests have no body.")
    try:
        text = data[:end].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolFormatError(f"Invalid request. URL is not UTF-8: {exc}") from exc
    try:
        return GeminiUrl(text)
    except UrlFormatError as exc:
        raise ProtocolFormatError(f"Invalid request. {exc}") from exc
