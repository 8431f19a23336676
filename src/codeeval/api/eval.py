"""Evaluation endpoint: authenticate, run the program, report its output."""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, HTTPException, Request

from codeeval.context import RequestContext
from codeeval.errors import ProvisionError, RunError
from codeeval.models.response import EvalRequest, EvalResponse
from codeeval.service import handle_request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["eval"])


@router.post("/", response_model=EvalResponse)
@router.post("/v1/eval", response_model=EvalResponse)
async def evaluate(body: EvalRequest, request: Request) -> EvalResponse:
    """Run ``body.contents`` in the ``body.env`` environment.

    Every provisioning or run failure is answered with 400, as before;
    telling client faults from server faults apart is still open.
    """
    settings = request.app.state.settings

    # Lone surrogates are valid JSON; they never match and never crash.
    key = body.key.encode("utf-8", errors="replace")
    if not secrets.compare_digest(key, settings.psk.encode("utf-8")):
        raise HTTPException(status_code=401, detail="permission denied; invalid key")

    code_size = len(body.contents.encode("utf-8", errors="surrogatepass"))
    if code_size > settings.max_code_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=(
                f"Code content exceeds maximum allowed size "
                f"({code_size:,} bytes > {settings.max_code_size_bytes:,} bytes)."
            ),
        )

    ctx = RequestContext.with_timeout(settings.request_timeout_seconds)
    try:
        response = await handle_request(
            body.env,
            body.contents,
            ctx,
            provider=request.app.state.provider,
            settings=settings,
            janitor=request.app.state.janitor,
        )
    except ProvisionError as exc:
        logger.info("Provisioning failed: env=%s err=%s", body.env, exc)
        raise HTTPException(status_code=400, detail=f"unable to start environment: {exc}") from exc
    except RunError as exc:
        logger.info("Run failed: env=%s err=%s", body.env, exc)
        raise HTTPException(status_code=400, detail=f"error running code: {exc}") from exc

    return EvalResponse(response=response)
