from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gemini_net.core.config import settings
from gemini_net.models.response import GeminiResponse
from gemini_net.models.url import GeminiUrl
from gemini_net.protocol.parser import parse_response_bytes
from gemini_net.workers.requestor import GeminiRequestor

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    response: GeminiResponse
    redirects: list[GeminiUrl] = field(default_factory=list)


class ProbeService:
    """Single-URL probing on top of the requestor."""

    def __init__(self, requestor: GeminiRequestor) -> None:
        self._requestor = requestor

    async def probe(self, url: str | GeminiUrl, follow_redirects: bool = False) -> ProbeResult:
        """Request *url*, optionally following 3x responses.

        Redirects are followed up to ``settings.max_redirects`` times and
        stop at a loop or at a target that is not a gemini URL; the last
        response is returned either way.

        Raises:
            UrlFormatError: *url* is not a valid gemini URL.
        """
        target = url if isinstance(url, GeminiUrl) else GeminiUrl(url)
        visited = {target}
        redirects: list[GeminiUrl] = []

        response = await self._requestor.request(target)
        while follow_redirects and response.is_redirect:
            if len(redirects) >= settings.max_redirects:
                logger.info("Gave up on %s after %d redirects", url, len(redirects))
                break
            target = response.redirect_url()
            if target is None or target in visited:
                logger.info("Not following redirect from %s to %r", response.url, response.meta)
                break
            visited.add(target)
            redirects.append(target)
            response = await self._requestor.request(target)

        if response.is_connection_error:
            logger.warning("Could not reach %s: %s", response.url, response.meta)
        return ProbeResult(response=response, redirects=redirects)

    def parse(self, url: str | GeminiUrl, data: bytes) -> GeminiResponse:
        """Parse a captured response for *url*.

        Raises:
            UrlFormatError: *url* is not a valid gemini URL.
            ProtocolFormatError: *data* is not a Gemini response.
        """
        target = url if isinstance(url, GeminiUrl) else GeminiUrl(url)
        return parse_response_bytes(target, data)
