"""MailStore: insert, replay and expiry of stored mail."""

from __future__ import annotations

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortmail.db.models import Mail

logger = structlog.get_logger()


class MailStore:
    """Durable mail records keyed by mailbox id.

    Errors from the database propagate to the caller; this layer does not
    retry.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(
        self,
        mailbox_id: str,
        subject: str,
        text: str,
        html: str,
        sender: str,
        created_at: int,
    ) -> Mail:
        mail = Mail(
            recipient=mailbox_id,
            subject=subject,
            body_text=text,
            body_html=html,
            sender=sender,
            created_at=created_at,
        )
        async with self._session_factory() as session:
            session.add(mail)
            await session.commit()
            await session.refresh(mail)
        logger.debug("mail_inserted", mail_id=mail.id, mailbox_id=mailbox_id)
        return mail

    async def query_recent(self, mailbox_id: str, limit: int = 50) -> list[Mail]:
        """Return up to *limit* mails for *mailbox_id*, newest first."""
        stmt = (
            select(Mail)
            .where(Mail.recipient == mailbox_id)
            .order_by(Mail.created_at.desc(), Mail.id.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def delete_older_than(self, cutoff: int) -> int:
        """Delete mails created before *cutoff* (epoch seconds)."""
        async with self._session_factory() as session:
            result = await session.execute(delete(Mail).where(Mail.created_at < cutoff))
            await session.commit()
        return result.rowcount or 0
