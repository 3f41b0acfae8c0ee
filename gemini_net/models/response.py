from __future__ import annotations

import codecs
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from gemini_net.core.constants import CONNECTION_ERROR_STATUS, DEFAULT_CHARSET
from gemini_net.models.url import GeminiUrl
from gemini_net.protocol import codec


class TlsInfo(BaseModel):
    """What was negotiated for one TLS connection."""

    protocol: str | None = None
    cipher_suite: str | None = None
    certificate: bytes | None = None  # DER

    @property
    def certificate_fingerprint(self) -> str | None:
        return codec.hash_bytes(self.certificate) if self.certificate else None


class GeminiResponse(BaseModel):
    """Result of one request/response exchange.

    Built by the requestor (or the offline parser) and not mutated after it
    is handed to the caller. The digests and decoded text are memoized
    against the fields they are computed from.

    ``meta`` meaning depends on the status class:

    - 1x: prompt to show the user
    - 2x: media type
    - 3x: redirect target
    - 4x, 5x, 6x: error message
    - 49 produced locally: description of the connection failure
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: GeminiUrl
    status: int = Field(ge=10, le=69)
    meta: str = ""

    body_bytes: bytes | None = None
    is_body_truncated: bool = False

    # 2x text responses only
    mime_type: str | None = None
    charset: str | None = None
    language: str | None = None

    request_sent: datetime | None = None
    response_received: datetime | None = None
    connect_time: int | None = None  # ms, TCP connect + TLS handshake
    download_time: int | None = None  # ms, request write through body read

    remote_address: str | None = None
    tls: TlsInfo | None = None

    _memo: dict[str, tuple[tuple, Any]] = PrivateAttr(default_factory=dict)

    @classmethod
    def connection_error(cls, url: GeminiUrl, message: str, **captured) -> GeminiResponse:
        """The uniform failure response: status 49 with the error as meta."""
        return cls(url=url, status=CONNECTION_ERROR_STATUS, meta=message.strip(), **captured)

    # ------------------------------------------------------------------
    # Status classes
    # ------------------------------------------------------------------

    @property
    def is_input(self) -> bool:
        return codec.is_input_status(self.status)

    @property
    def is_success(self) -> bool:
        return codec.is_success_status(self.status)

    @property
    def is_redirect(self) -> bool:
        return codec.is_redirect_status(self.status)

    @property
    def is_temp_fail(self) -> bool:
        return codec.is_temp_fail_status(self.status)

    @property
    def is_perm_fail(self) -> bool:
        return codec.is_perm_fail_status(self.status)

    @property
    def is_auth(self) -> bool:
        return codec.is_auth_status(self.status)

    @property
    def is_fail(self) -> bool:
        return self.is_temp_fail or self.is_perm_fail

    @property
    def is_slow_down(self) -> bool:
        return self.status == 44

    @property
    def is_connection_error(self) -> bool:
        return codec.is_connection_error_status(self.status)

    @property
    def is_available(self) -> bool:
        return not self.is_connection_error

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    @property
    def response_line(self) -> str:
        return f"{self.status} {self.meta}"

    @property
    def has_body(self) -> bool:
        return bool(self.body_bytes)

    @property
    def body_size(self) -> int:
        return len(self.body_bytes) if self.body_bytes else 0

    @property
    def encoding(self) -> str:
        """Canonical codec name for the body.

        Raises ``LookupError`` if the server declared a charset Python does
        not know.
        """
        return codecs.lookup(self.charset or DEFAULT_CHARSET).name

    def _memoized(self, name: str, key: tuple, compute: Callable[[], Any]) -> Any:
        """Return the cached value for *name* if it was computed from *key*.

        The cache is keyed on the inputs, so a ``model_copy`` with a new
        body or meta recomputes instead of reporting the old value.
        """
        cached = self._memo.get(name)
        if cached is not None and cached[0] == key:
            return cached[1]
        value = compute()
        self._memo[name] = (key, value)
        return value

    @property
    def body_text(self) -> str:
        if not self.has_body:
            return ""
        return self._memoized(
            "body_text",
            (self.charset, self.body_bytes),
            lambda: self.body_bytes.decode(self.encoding, errors="replace"),
        )

    @property
    def has_body_text(self) -> bool:
        return bool(self.body_text)

    @property
    def body_hash(self) -> str | None:
        if not self.has_body:
            return None
        return self._memoized(
            "body_hash", (self.body_bytes,), lambda: codec.body_hash(self.body_bytes)
        )

    @property
    def response_hash(self) -> str:
        return self._memoized(
            "response_hash",
            (self.status, self.meta, self.body_bytes),
            lambda: codec.response_hash(self.status, self.meta, self.body_bytes),
        )

    def redirect_url(self) -> GeminiUrl | None:
        """Resolve a 3x meta against the request URL.

        Returns ``None`` when the target is not a gemini URL.
        """
        if not self.is_redirect:
            raise ValueError(f"Response is not a redirect: {self.response_line}")
        return GeminiUrl.resolve(self.url, self.meta.strip())

    def __str__(self) -> str:
        if self.has_body:
            return f"{self.response_line} [{self.body_size} body bytes]"
        return self.response_line
