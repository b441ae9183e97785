"""Mailbox index: which sessions are watching which mailbox."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from .packets import EventPacket

if TYPE_CHECKING:
    from .sessions import Session, SessionRegistry

logger = structlog.get_logger()

MAIL_EVENT = "mail"


class MailboxBinding:
    """Maps mailbox ids to the set of session ids bound to them.

    A session is bound to at most one mailbox at a time. Shares the
    registry's lock so binding, sweeping and queue appends never interleave.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._index: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._index)

    def bind(self, sid: str, mailbox_id: str) -> bool:
        """Bind *sid* to *mailbox_id*, leaving any previous mailbox first."""
        with self._registry.lock:
            session = self._registry.get(sid)
            if session is None:
                return False
            if session.mailbox_id is not None and session.mailbox_id != mailbox_id:
                self._discard(session.mailbox_id, sid)
            session.mailbox_id = mailbox_id
            self._index.setdefault(mailbox_id, set()).add(sid)
        logger.info("mailbox_bound", sid=sid, mailbox_id=mailbox_id)
        return True

    def unbind(self, sid: str) -> None:
        with self._registry.lock:
            session = self._registry.get(sid)
            if session is not None:
                self.unbind_session(session)

    def unbind_session(self, session: Session) -> None:
        with self._registry.lock:
            if session.mailbox_id is not None:
                self._discard(session.mailbox_id, session.sid)
                session.mailbox_id = None

    def sessions_for(self, mailbox_id: str) -> set[str]:
        with self._registry.lock:
            return set(self._index.get(mailbox_id, ()))

    def notify(self, mailbox_id: str, payload: Any) -> int:
        """Queue a ``mail`` event for every session bound to *mailbox_id*.

        Returns the number of sessions reached. Nothing is buffered for
        mailboxes without listeners.
        """
        packet = EventPacket(MAIL_EVENT, payload)
        delivered = 0
        with self._registry.lock:
            for sid in self._index.get(mailbox_id, ()):
                if self._registry.enqueue(sid, packet):
                    delivered += 1
        logger.debug("mailbox_notified", mailbox_id=mailbox_id, sessions=delivered)
        return delivered

    def deliver(self, sid: str, mailbox_id: str, payload: Any) -> bool:
        """Queue a ``mail`` event for *sid* only while it is bound to *mailbox_id*."""
        with self._registry.lock:
            session = self._registry.get(sid)
            if session is None or session.mailbox_id != mailbox_id:
                return False
            session.queue.append(EventPacket(MAIL_EVENT, payload))
            return True

    def _discard(self, mailbox_id: str, sid: str) -> None:
        sids = self._index.get(mailbox_id)
        if sids is None:
            return
        sids.discard(sid)
        if not sids:
            del self._index[mailbox_id]
