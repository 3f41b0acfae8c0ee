from __future__ import annotations

import logging

from fastapi import FastAPI

from gemini_net.api.router import router
from gemini_net.core.config import settings


def _configure_logging() -> None:
    """Configure the ``gemini_net`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn installs its own).  Configuring the
    ``gemini_net`` namespace directly, with ``propagate = False``, keeps
    application logs on stdout regardless of the server's root setup.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("gemini_net")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


app = FastAPI(
    title="Gemini Probe",
    description="Runs single Gemini protocol exchanges and reports on them.",
    version="1.0.0",
)

app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
