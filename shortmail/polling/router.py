"""``/socket.io/`` endpoints: plain-text long-polling GET and POST."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from shortmail.deps import get_transport
from shortmail.polling.transport import PollingError, PollingTransport, check_transport

logger = structlog.get_logger()

router = APIRouter(prefix="/socket.io", tags=["socket.io"])

_CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


def _text(body: str, status_code: int = 200) -> PlainTextResponse:
    return PlainTextResponse(body, status_code=status_code, headers=_CORS_HEADERS)


def _rejected(exc: PollingError) -> PlainTextResponse:
    logger.info("polling_request_rejected", reason=str(exc))
    return _text(str(exc), status_code=400)


@router.get("/", response_class=PlainTextResponse)
async def poll(
    transport: Annotated[PollingTransport, Depends(get_transport)],
    transport_name: str | None = Query(default=None, alias="transport"),
    sid: str | None = Query(default=None),
):
    """Open a session (no ``sid``) or drain its pending packets."""
    try:
        check_transport(transport_name)
        payload = transport.handle_get(sid)
    except PollingError as exc:
        return _rejected(exc)
    return _text(payload)


@router.post("/", response_class=PlainTextResponse)
async def push(
    request: Request,
    transport: Annotated[PollingTransport, Depends(get_transport)],
    transport_name: str | None = Query(default=None, alias="transport"),
    sid: str | None = Query(default=None),
):
    """Feed client packets into the session."""
    try:
        check_transport(transport_name)
        body = await request.body()
        reply = await transport.handle_post(sid, body)
    except PollingError as exc:
        return _rejected(exc)
    return _text(reply)
