"""Health and readiness probes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shortmail.deps import get_registry
from shortmail.polling.sessions import SessionRegistry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(registry: Annotated[SessionRegistry, Depends(get_registry)]) -> JSONResponse:
    return JSONResponse({
        "service": "shortmail",
        "sessions": len(registry),
        "mailboxes": len(registry.mailboxes),
    })


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    is_ready = getattr(request.app.state, "store", None) is not None
    return JSONResponse(
        {"ready": is_ready},
        status_code=200 if is_ready else 503,
    )
