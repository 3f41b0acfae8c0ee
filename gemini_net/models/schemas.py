from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from gemini_net.models.response import GeminiResponse


class ProbeResponse(BaseModel):
    """API response shape for one Gemini exchange.

    Body bytes are never returned; ``body_hash`` and ``body_size`` describe
    them instead.
    """

    url: str
    status: int
    meta: str
    is_available: bool
    mime_type: str | None = None
    charset: str | None = None
    language: str | None = None
    body_size: int = 0
    is_body_truncated: bool = False
    body_hash: str | None = None
    response_hash: str
    request_sent: datetime | None = None
    response_received: datetime | None = None
    connect_time: int | None = None
    download_time: int | None = None
    remote_address: str | None = None
    tls_protocol: str | None = None
    tls_cipher_suite: str | None = None
    certificate_fingerprint: str | None = None
    redirects: list[str] = []

    @classmethod
    def from_response(
        cls, response: GeminiResponse, redirects: list[str] | None = None
    ) -> ProbeResponse:
        tls = response.tls
        return cls(
            url=response.url.normalized_url,
            status=response.status,
            meta=response.meta,
            is_available=response.is_available,
            mime_type=response.mime_type,
            charset=response.charset,
            language=response.language,
            body_size=response.body_size,
            is_body_truncated=response.is_body_truncated,
            body_hash=response.body_hash,
            response_hash=response.response_hash,
            request_sent=response.request_sent,
            response_received=response.response_received,
            connect_time=response.connect_time,
            download_time=response.download_time,
            remote_address=response.remote_address,
            tls_protocol=tls.protocol if tls else None,
            tls_cipher_suite=tls.cipher_suite if tls else None,
            certificate_fingerprint=tls.certificate_fingerprint if tls else None,
            redirects=redirects or [],
        )
