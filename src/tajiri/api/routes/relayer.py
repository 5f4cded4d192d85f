"""Gasless relay endpoint."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from tajiri.relay.service import RelayService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_relay_service(request: Request) -> RelayService:
    """Relay service created by the application lifespan."""
    return request.app.state.relay


@router.post("/relayer")
async def relay_transaction(
    request: Request,
    relay: RelayService = Depends(get_relay_service),
) -> JSONResponse:
    """Verify a signed transaction intent and execute it gaslessly.

    The body is read as raw JSON: the signature covers the fields exactly as
    the client sent them, so no model coercion happens before verification.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Relay request with a body that is not valid JSON")
        body = None

    result = await relay.relay(body)
    return JSONResponse(status_code=result.status_code, content=result.to_response())
