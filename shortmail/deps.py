"""FastAPI dependency-injection helpers for objects built in the lifespan."""

from __future__ import annotations

from fastapi import Request

from shortmail.polling.sessions import SessionRegistry
from shortmail.polling.transport import PollingTransport


def get_transport(request: Request) -> PollingTransport:
    return request.app.state.transport


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry
