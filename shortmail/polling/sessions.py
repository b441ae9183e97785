"""In-memory registry of polling sessions."""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import structlog

from .mailboxes import MailboxBinding
from .packets import Packet

logger = structlog.get_logger()

DEFAULT_IDLE_SECONDS = 60 * 60


@dataclass
class Session:
    """Server-side state of one polling client."""

    sid: str
    last_seen: float
    mailbox_id: str | None = None
    queue: deque[Packet] = field(default_factory=deque)


class SessionRegistry:
    """Owns every live session and the mailbox index built on top of them.

    All mutations, including those made through :attr:`mailboxes`, are
    serialized by :attr:`lock`.
    """

    def __init__(
        self,
        *,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._idle_seconds = idle_seconds
        self._clock = clock
        self.lock = threading.RLock()
        self.mailboxes = MailboxBinding(self)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, sid: object) -> bool:
        return sid in self._sessions

    @property
    def idle_seconds(self) -> float:
        return self._idle_seconds

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, initial: Iterable[Packet] = ()) -> str:
        """Register a new session, optionally pre-loading its queue."""
        sid = uuid.uuid4().hex
        session = Session(sid=sid, last_seen=self._clock(), queue=deque(initial))
        with self.lock:
            self._sessions[sid] = session
        logger.debug("session_created", sid=sid)
        return sid

    def get(self, sid: str | None) -> Session | None:
        if sid is None:
            return None
        return self._sessions.get(sid)

    def touch(self, sid: str) -> bool:
        """Record activity on *sid*. Returns False for unknown sessions."""
        with self.lock:
            session = self._sessions.get(sid)
            if session is None:
                return False
            session.last_seen = self._clock()
            return True

    def remove(self, sid: str) -> Session | None:
        """Drop a session and its mailbox membership."""
        with self.lock:
            session = self._sessions.pop(sid, None)
            if session is not None:
                self.mailboxes.unbind_session(session)
        if session is not None:
            logger.debug("session_removed", sid=sid)
        return session

    def sweep(self, now: float | None = None, idle_threshold: float | None = None) -> list[str]:
        """Remove sessions idle for longer than *idle_threshold* seconds."""
        now = self._clock() if now is None else now
        threshold = self._idle_seconds if idle_threshold is None else idle_threshold

        with self.lock:
            expired = [
                session
                for session in self._sessions.values()
                if now - session.last_seen > threshold
            ]
            for session in expired:
                del self._sessions[session.sid]
                self.mailboxes.unbind_session(session)

        if expired:
            logger.info("sessions_swept", count=len(expired), remaining=len(self._sessions))
        return [session.sid for session in expired]

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, sid: str, packet: Packet) -> bool:
        """Append *packet* to a session's queue. Returns False if it is gone."""
        with self.lock:
            session = self._sessions.get(sid)
            if session is None:
                return False
            session.queue.append(packet)
            return True

    def drain(self, sid: str) -> list[Packet]:
        """Pop every queued packet in FIFO order."""
        with self.lock:
            session = self._sessions.get(sid)
            if session is None:
                return []
            packets = list(session.queue)
            session.queue.clear()
            return packets
