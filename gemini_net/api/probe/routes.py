from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from gemini_net.core.errors import ProtocolFormatError, UrlFormatError
from gemini_net.models.common import ErrorResponse
from gemini_net.models.schemas import ProbeResponse
from gemini_net.services.probe.service import ProbeService
from gemini_net.workers.requestor import get_requestor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/probe", tags=["probe"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> ProbeService:
    """FastAPI dependency that builds a ``ProbeService`` for each request."""
    return ProbeService(get_requestor())


# ---------------------------------------------------------------------------
# GET /probe
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=ProbeResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Request a gemini:// URL and describe the response",
)
async def get_probe(
    url: str,
    follow_redirects: bool = False,
    service: ProbeService = Depends(_get_service),
) -> ProbeResponse:
    """Run one Gemini exchange against *url*.

    Unreachable capsules are not an HTTP error: they come back as status 49
    with the failure in ``meta``.

    - **200**: exchange completed (any Gemini status, including 49)
    - **422**: ``url`` missing or not a valid gemini:// URL
    """
    try:
        result = await service.probe(url, follow_redirects=follow_redirects)
    except UrlFormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return ProbeResponse.from_response(
        result.response, [str(target) for target in result.redirects]
    )


# ---------------------------------------------------------------------------
# POST /probe/parse
# ---------------------------------------------------------------------------


@router.post(
    "/parse",
    response_model=ProbeResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Parse a captured Gemini response",
)
async def post_parse(
    url: str,
    request: Request,
    service: ProbeService = Depends(_get_service),
) -> ProbeResponse:
    """Parse the raw request body as a complete Gemini response for *url*.

    - **200**: response parsed
    - **422**: invalid URL or malformed response bytes
    """
    data = await request.body()
    try:
        response = service.parse(url, data)
    except (UrlFormatError, ProtocolFormatError) as exc:
        logger.warning("POST /probe/parse rejected for %s: %s", url, exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return ProbeResponse.from_response(response)
