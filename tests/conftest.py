"""Shared test fixtures for the shortmail test suite."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from shortmail.app import create_app
from shortmail.config import Settings
from shortmail.deps import get_registry, get_transport
from shortmail.polling.sessions import SessionRegistry
from shortmail.polling.transport import PollingTransport


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(idle_seconds=3600, clock=clock)


@pytest.fixture
def history() -> AsyncMock:
    store = AsyncMock()
    store.query_recent = AsyncMock(return_value=[])
    return store


@pytest.fixture
def transport(registry: SessionRegistry, history: AsyncMock) -> PollingTransport:
    return PollingTransport(registry, history, blacklist=["admin", "postmaster"])


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite://", smtp_port=0, retention_interval_seconds=0)


@pytest.fixture
async def app(settings, transport, registry):
    application = create_app(settings)
    application.dependency_overrides[get_transport] = lambda: transport
    application.dependency_overrides[get_registry] = lambda: registry
    return application


@pytest.fixture
async def client(app):
    """Async HTTP test client. Lifespan is not started; state comes from dependency_overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ------------------------------------------------------------------
# Stored mail records and raw messages
# ------------------------------------------------------------------


def make_record(
    *,
    subject: str = "Hello",
    body_text: str = "Hi there",
    body_html: str = "",
    sender: str = "alice@example.org",
    created_at: int = 1_700_000_000,
) -> SimpleNamespace:
    """Build an object shaped like a stored ``Mail`` row."""
    return SimpleNamespace(
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        sender=sender,
        created_at=created_at,
    )


def build_plain_email(
    body: str = "Hello",
    *,
    subject: str = "Test Subject",
    content_type: str | None = "text/plain; charset=utf-8",
) -> str:
    lines = [
        "From: sender@example.org",
        "To: box@example.com",
        f"Subject: {subject}",
    ]
    if content_type:
        lines.append(f"Content-Type: {content_type}")
    return "\r\n".join(lines) + "\r\n\r\n" + body + "\r\n"


def build_multipart_email(
    *,
    text: str | None = "Hi",
    html: str | None = "<b>Hi</b>",
    subject: str = "Multipart",
    boundary: str = "b1_abc",
) -> str:
    parts = [
        "From: sender@example.org",
        "To: box@example.com",
        f"Subject: {subject}",
        "MIME-Version: 1.0",
        f'Content-Type: multipart/alternative; boundary="{boundary}"',
        "",
        "This is a multi-part message in MIME format.",
    ]
    if text is not None:
        parts += [f"--{boundary}", "Content-Type: text/plain; charset=utf-8", "", text]
    if html is not None:
        parts += [f"--{boundary}", "Content-Type: text/html; charset=utf-8", "", html]
    parts += [f"--{boundary}--", ""]
    return "\r\n".join(parts)
