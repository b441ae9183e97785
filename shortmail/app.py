"""FastAPI application factory."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from shortmail.config import Settings
from shortmail.db import Database, MailStore
from shortmail.ingestion import IngestionPipeline
from shortmail.polling.sessions import SessionRegistry
from shortmail.polling.transport import PollingTransport
from shortmail.retention import RetentionSweeper
from shortmail.smtp import MailboxSMTPHandler, SMTPListener

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: database, registry, transport, SMTP, retention. Shutdown: reverse."""
    settings: Settings = app.state.settings

    db = Database(settings.database_url)
    await db.create_schema()
    store = MailStore(db.session)
    logger.info("database_ready")

    registry = SessionRegistry(idle_seconds=settings.session_idle_seconds)
    transport = PollingTransport(
        registry,
        store,
        blacklist=settings.pre_blacklist,
        ping_interval_ms=settings.ping_interval_ms,
        ping_timeout_ms=settings.ping_timeout_ms,
        history_limit=settings.history_limit,
    )
    pipeline = IngestionPipeline.from_settings(settings, store, registry.mailboxes)

    app.state.db = db
    app.state.store = store
    app.state.registry = registry
    app.state.transport = transport
    app.state.pipeline = pipeline

    smtp: SMTPListener | None = None
    if settings.smtp_port:
        smtp = SMTPListener(
            MailboxSMTPHandler(pipeline),
            host=settings.smtp_host,
            port=settings.smtp_port,
            hostname=settings.smtp_hostname,
        )
        await smtp.start()

    sweeper: RetentionSweeper | None = None
    sweeper_task: asyncio.Task | None = None
    if settings.retention_interval_seconds > 0:
        sweeper = RetentionSweeper(
            store,
            retention_days=settings.retention_days,
            interval_seconds=settings.retention_interval_seconds,
        )
        sweeper_task = asyncio.create_task(sweeper.run())

    yield

    if sweeper is not None and sweeper_task is not None:
        sweeper.stop()
        await sweeper_task
    if smtp is not None:
        await smtp.stop()
    await transport.wait_background()
    await db.close()
    logger.info("shutdown_complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="shortmail",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    from shortmail.health import router as health_router
    from shortmail.polling.router import router as polling_router

    app.include_router(polling_router)
    app.include_router(health_router)

    return app
