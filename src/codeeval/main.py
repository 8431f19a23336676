"""FastAPI application entry point.

Creates the app with a lifespan that loads settings, configures logging,
connects the shared Docker provider and sets up the cleanup janitor.
Everything is stored in ``app.state``; pending cleanups are awaited and the
provider closed on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from codeeval import __version__
from codeeval.api.router import api_router
from codeeval.config import Settings
from codeeval.sandbox import DockerProvider
from codeeval.service import Janitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan -- set up and tear down shared resources.

    A provider or settings object already placed in ``app.state`` (by tests,
    for instance) is used as-is.
    """
    settings = getattr(app.state, "settings", None) or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not settings.psk:
        raise RuntimeError(
            "must set the EVAL_PSK environment variable to a preshared secret"
        )

    logger.info("Starting codeeval (log_level=%s)", settings.log_level)

    # ---- Provider (shared by every request) --------------------------------
    provider = getattr(app.state, "provider", None)
    owns_provider = provider is None
    if owns_provider:
        provider = DockerProvider()

    app.state.settings = settings
    app.state.provider = provider
    app.state.janitor = Janitor()

    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down codeeval")
        await app.state.janitor.drain()
        if owns_provider:
            provider.close()
        logger.info("Shutdown complete")


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": "could not decode request as valid json"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="codeeval",
        description="Runs untrusted code in throw-away containers.",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app on port 8080."""
    uvicorn.run("codeeval.main:app", host="0.0.0.0", port=8080)
