"""SMTP boundary: an aiosmtpd handler feeding the ingestion pipeline.

The listener runs on the application's event loop so the handler shares the
session registry and database engine with the HTTP side.
"""

from __future__ import annotations

import asyncio
import email.parser
import email.policy

import structlog
from aiosmtpd.smtp import SMTP, Envelope, Session

from .ingestion import IngestionPipeline

logger = structlog.get_logger()


class MailboxSMTPHandler:
    """aiosmtpd handler: policy checks at RCPT time, storage at DATA time."""

    def __init__(self, pipeline: IngestionPipeline) -> None:
        self._pipeline = pipeline

    async def handle_RCPT(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        rcpt_options: list[str],
    ) -> str:
        reason = self._pipeline.validate(envelope.mail_from, address)
        if reason is not None:
            logger.info("smtp_rcpt_rejected", recipient=address, reason=reason)
            return f"550 {reason}"
        envelope.rcpt_tos.append(address)
        return "250 OK"

    async def handle_DATA(self, server: SMTP, session: Session, envelope: Envelope) -> str:
        if not envelope.rcpt_tos:
            return "554 No valid recipients"

        raw = envelope.original_content or envelope.content or b""
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        headers = email.parser.BytesHeaderParser(policy=email.policy.default).parsebytes(raw)

        reasons: list[str] = []
        failed: list[str] = []
        stored = 0
        for recipient in envelope.rcpt_tos:
            try:
                result = await self._pipeline.ingest(
                    sender=envelope.mail_from,
                    recipient=recipient,
                    raw=raw,
                    headers=headers,
                )
            except Exception:
                logger.exception("smtp_store_failed", recipient=recipient)
                failed.append(recipient)
                continue
            if result.accepted:
                stored += 1
            else:
                reasons.append(result.body)

        # A retry after a partial store would duplicate the stored copies
        if stored:
            if failed:
                logger.warning("smtp_partial_store", stored=stored, failed=failed)
            return "250 stored"
        if failed:
            return "451 Temporary failure, please retry"
        return f"550 {reasons[0]}"


class SMTPListener:
    """Owns the asyncio server socket for the SMTP handler."""

    def __init__(
        self,
        handler: MailboxSMTPHandler,
        *,
        host: str,
        port: int,
        hostname: str | None = None,
    ) -> None:
        self._handler = handler
        self._host = host
        self._port = port
        self._hostname = hostname
        self._server: asyncio.AbstractServer | None = None

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._server = await loop.create_server(
            lambda: SMTP(self._handler, hostname=self._hostname),
            host=self._host,
            port=self._port,
        )
        logger.info("smtp_listener_started", host=self._host, port=self._port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("smtp_listener_stopped")
