"""Pure encode/decode helpers for the Gemini wire format.

Nothing here touches the network.  The transport and the offline parser
both call into these functions so that a response read from a socket and
one replayed from a byte buffer are interpreted identically.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import NamedTuple

import langcodes

from gemini_net.core.constants import (
    CONNECTION_ERROR_STATUS,
    DEFAULT_MIME_TYPE,
    HASH_ALGORITHM,
)
from gemini_net.core.errors import ProtocolFormatError
from gemini_net.models.url import GeminiUrl

logger = logging.getLogger(__name__)

_STATUS = re.compile(r"[1-6][0-9]")

# RFC 2045 / RFC 7230 token characters.
_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_QUOTED_STRING = r'"(?:[^"\\]|\\.)*"'
_MEDIA_TYPE = re.compile(rf"({_TOKEN})/({_TOKEN})")
_PARAMETER = re.compile(rf"({_TOKEN})=({_TOKEN}|{_QUOTED_STRING})")
_SEPARATOR = re.compile(r"\s*;\s*")
_QUOTED_PAIR = re.compile(r"\\(.)")


# ---------------------------------------------------------------------------
# Status classes
# ---------------------------------------------------------------------------


def _in_class(status: int, low: int) -> bool:
    return low <= status <= low + 9


def is_input_status(status: int) -> bool:
    return _in_class(status, 10)


def is_success_status(status: int) -> bool:
    return _in_class(status, 20)


def is_redirect_status(status: int) -> bool:
    return _in_class(status, 30)


def is_temp_fail_status(status: int) -> bool:
    return _in_class(status, 40)


def is_perm_fail_status(status: int) -> bool:
    return _in_class(status, 50)


def is_auth_status(status: int) -> bool:
    return _in_class(status, 60)


def is_connection_error_status(status: int) -> bool:
    return status == CONNECTION_ERROR_STATUS


# ---------------------------------------------------------------------------
# Request / status line
# ---------------------------------------------------------------------------


def encode_request(url: GeminiUrl) -> bytes:
    """Return the request line for *url*, CRLF included.

    The port is left out when it is the default: some servers reject a
    request that spells out 1965.
    """
    return f"{url.normalized_url}\r\n".encode("utf-8")


def normalize_legacy_separator(line: str) -> str:
    """Early servers put a tab between status and meta.  Turn it into a space."""
    return line.replace("\t", " ")


def parse_status_and_meta(line: str) -> tuple[int, str]:
    """Split a decoded response line into ``(status, meta)``.

    Raises:
        ProtocolFormatError: no space after a non-empty status, or the status
            is not a two digit number in 10..69.
    """
    index = line.find(" ")
    if index < 1:
        raise ProtocolFormatError(
            f"Response line '{line}' does not match Gemini format"
        )
    status_text = line[:index]
    if not _STATUS.fullmatch(status_text):
        raise ProtocolFormatError(f"Invalid status code '{status_text}'")
    return int(status_text), line[index + 1 :]


# ---------------------------------------------------------------------------
# Media type
# ---------------------------------------------------------------------------


class MediaInfo(NamedTuple):
    mime_type: str
    charset: str | None = None
    language: str | None = None


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Strictly parse ``type/subtype; name=value; ...``.

    Parameter names are lower-cased.  Raises ``ValueError`` on anything that
    is not a clean parameter list, including a repeated parameter name.
    """
    value = value.strip()
    match = _MEDIA_TYPE.match(value)
    if match is None:
        raise ValueError(f"Malformed media type '{value}'")

    mime_type = f"{match.group(1)}/{match.group(2)}".lower()
    params: dict[str, str] = {}
    pos = match.end()
    while pos < len(value):
        separator = _SEPARATOR.match(value, pos)
        if separator is None:
            raise ValueError(f"Unexpected character at offset {pos} in '{value}'")
        pos = separator.end()
        if pos == len(value):
            break
        param = _PARAMETER.match(value, pos)
        if param is None:
            raise ValueError(f"Malformed parameter at offset {pos} in '{value}'")
        name = param.group(1).lower()
        raw = param.group(2)
        if raw.startswith('"'):
            raw = _QUOTED_PAIR.sub(r"\1", raw[1:-1])
        if name in params:
            raise ValueError(f"Duplicate parameter '{name}' in '{value}'")
        params[name] = raw
        pos = param.end()
    return mime_type, params


def resolve_language(tag: str) -> str | None:
    """Reduce a ``lang`` parameter to its language code, or ``None``."""
    try:
        language = langcodes.Language.get(tag)
    except ValueError:
        return None
    if not language.is_valid():
        return None
    return language.language


def derive_media_info(meta: str) -> MediaInfo:
    """Media type, charset and language for a 2x response's meta.

    Malformed meta never fails the response: it degrades to a bare media
    type with no charset or language.  An unknown charset name is kept as
    is and only fails when the body is decoded.
    """
    meta = meta.strip()
    if not meta:
        # The first protocol revision defaulted empty meta to text/gemini.
        return MediaInfo(DEFAULT_MIME_TYPE)

    try:
        mime_type, params = parse_media_type(meta)
    except ValueError as exc:
        logger.debug("Falling back to bare media type: %s", exc)
        index = meta.find(";")
        return MediaInfo(meta[:index].strip() if index > 0 else meta)

    if not mime_type.startswith("text/"):
        return MediaInfo(mime_type)

    charset = params.get("charset")
    lang = params.get("lang")
    return MediaInfo(
        mime_type,
        charset.lower() if charset else None,
        resolve_language(lang) if lang else None,
    )


# ---------------------------------------------------------------------------
# Serialization and digests
# ---------------------------------------------------------------------------


def create_response_bytes(status: int, meta: str, body: bytes | None = None) -> bytes:
    """Serialize a response the way a server would put it on the wire."""
    data = f"{status} {meta}\r\n".encode("utf-8")
    if body:
        data += body
    return data


def hash_bytes(data: bytes) -> str:
    """``"sha256:<lowercase hex>"`` digest of *data*."""
    return f"{HASH_ALGORITHM}:{hashlib.new(HASH_ALGORITHM, data).hexdigest()}"


def body_hash(body: bytes) -> str:
    return hash_bytes(body)


def response_hash(status: int, meta: str, body: bytes | None = None) -> str:
    """Digest of the whole serialized response, status line included."""
    return hash_bytes(create_response_bytes(status, meta, body))
