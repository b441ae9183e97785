"""IngestionPipeline: accept or refuse inbound mail, then store and fan it out."""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from .config import DEFAULT_PRE_BLACKLIST, Settings
from .mime import MimeParser
from .schemas import ClientMail

logger = structlog.get_logger()

_ADDRESS = re.compile(r"([\w.+-]+)@([\w.-]+)", re.ASCII)

REASON_INVALID_RECIPIENT = "invalid recipient"
REASON_DOMAIN_NOT_ACCEPTED = "domain not accepted"
REASON_RECIPIENT_BLACKLISTED = "recipient blacklisted"
REASON_SENDER_BLOCKED = "sender domain blocked"


class MailSink(Protocol):
    async def insert(
        self,
        mailbox_id: str,
        subject: str,
        text: str,
        html: str,
        sender: str,
        created_at: int,
    ) -> Any: ...


class Notifier(Protocol):
    def notify(self, mailbox_id: str, payload: Any) -> int: ...


@dataclass(frozen=True)
class Address:
    local: str
    domain: str


@dataclass(frozen=True)
class IngestionResult:
    """Outcome surfaced to the mail transport (HTTP-style status codes)."""

    accepted: bool
    status_code: int
    body: str

    @classmethod
    def stored(cls) -> IngestionResult:
        return cls(accepted=True, status_code=202, body="stored")

    @classmethod
    def rejected(cls, reason: str) -> IngestionResult:
        return cls(accepted=False, status_code=550, body=reason)


def parse_address(value: str | None) -> Address | None:
    """Find the first ``local@domain`` in *value*, lowercased."""
    if not value:
        return None
    match = _ADDRESS.search(value)
    if match is None:
        return None
    return Address(local=match.group(1).lower(), domain=match.group(2).lower())


def _header(headers: Mapping[str, Any] | None, name: str) -> str:
    """Case-insensitive lookup over a dict or an ``email.message.Message``."""
    if not headers:
        return ""
    value = next((v for k, v in headers.items() if k.lower() == name), None)
    return str(value).strip() if value else ""


class IngestionPipeline:
    """Validate an inbound message, persist it and push it to live sessions."""

    def __init__(
        self,
        store: MailSink,
        notifier: Notifier,
        *,
        mail_domain: str = "",
        blacklist: Collection[str] = DEFAULT_PRE_BLACKLIST,
        banned_sender_domains: Collection[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._mail_domain = mail_domain.strip().lower()
        self._blacklist = frozenset(item.lower() for item in blacklist)
        self._banned = frozenset(item.lower() for item in banned_sender_domains)
        self._clock = clock
        self._parser = MimeParser()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: MailSink,
        notifier: Notifier,
    ) -> IngestionPipeline:
        return cls(
            store,
            notifier,
            mail_domain=settings.mail_domain,
            blacklist=settings.pre_blacklist,
            banned_sender_domains=settings.ban_send_from_domain,
        )

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def validate(self, sender: str | None, recipient: str | None) -> str | None:
        """Return the rejection reason for this sender/recipient, or None."""
        to_address = parse_address(recipient)
        if to_address is None or not to_address.local or not to_address.domain:
            return REASON_INVALID_RECIPIENT
        if self._mail_domain and to_address.domain != self._mail_domain:
            return REASON_DOMAIN_NOT_ACCEPTED
        if to_address.local in self._blacklist:
            return REASON_RECIPIENT_BLACKLISTED

        from_address = parse_address(sender)
        if from_address is not None and from_address.domain in self._banned:
            return REASON_SENDER_BLOCKED
        return None

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest(
        self,
        *,
        sender: str | None,
        recipient: str | None,
        raw: str | bytes,
        headers: Mapping[str, Any] | None = None,
    ) -> IngestionResult:
        """Store one message for one recipient.

        Storage errors propagate; the caller decides how to report them.
        """
        reason = self.validate(sender, recipient)
        if reason is not None:
            logger.info("mail_rejected", sender=sender, recipient=recipient, reason=reason)
            return IngestionResult.rejected(reason)

        to_address = parse_address(recipient)
        assert to_address is not None

        parsed = self._parser.parse(raw)
        subject = _header(headers, "subject") or parsed.subject
        created_at = int(self._clock())

        await self._store.insert(
            to_address.local,
            subject,
            parsed.text,
            parsed.html,
            sender or "",
            created_at,
        )

        mail = ClientMail.from_fields(
            subject=subject,
            text=parsed.text,
            html_body=parsed.html,
            sender=sender,
            created_at=created_at,
        )
        delivered = self._notifier.notify(to_address.local, mail.to_payload())

        logger.info(
            "mail_stored",
            mailbox_id=to_address.local,
            sender=sender,
            live_sessions=delivered,
        )
        return IngestionResult.stored()
