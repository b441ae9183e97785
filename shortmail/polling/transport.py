"""Long-polling transport, the HTTP-facing side of the Engine.IO protocol.

GET drains a session's queue (or opens a new session), POST feeds client
packets in. GET never waits for data. An empty queue is answered with a
single noop packet and the client polls again.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import Awaitable, Callable, Collection, Sequence
from typing import Any, Protocol

import structlog

from ..schemas import ClientMail, MailRecordLike
from .codec import decode_payload, encode_payload
from .packets import (
    ClosePacket,
    ConnectPacket,
    EventPacket,
    NoopPacket,
    OpenPacket,
    Packet,
    PingPacket,
    PongPacket,
    parse_packet,
)
from .sessions import SessionRegistry

logger = structlog.get_logger()

POLLING = "polling"
SHORTID_EVENT = "shortid"
MAX_SHORTID_LENGTH = 64

_SHORTID_STRIP = re.compile(r"[^a-z0-9_-]")


class PollingError(Exception):
    """Client protocol violation, answered with HTTP 400."""


class UnsupportedTransportError(PollingError):
    def __init__(self, transport: str | None) -> None:
        super().__init__("transport not supported")
        self.transport = transport


class UnknownSessionError(PollingError):
    def __init__(self, sid: str | None) -> None:
        super().__init__("unknown sid")
        self.sid = sid


class HistorySource(Protocol):
    async def query_recent(self, mailbox_id: str, limit: int) -> Sequence[MailRecordLike]: ...


def sanitize_shortid(value: str) -> str:
    """Lowercase, keep ``[a-z0-9_-]`` and truncate to 64 characters."""
    return _SHORTID_STRIP.sub("", value.lower())[:MAX_SHORTID_LENGTH]


def generate_shortid() -> str:
    return uuid.uuid4().hex[:8]


def check_transport(transport: str | None) -> None:
    if transport != POLLING:
        raise UnsupportedTransportError(transport)


class PollingTransport:
    """Protocol state machine for ``transport=polling`` clients."""

    def __init__(
        self,
        registry: SessionRegistry,
        history: HistorySource,
        *,
        blacklist: Collection[str] = (),
        ping_interval_ms: int = 25000,
        ping_timeout_ms: int = 20000,
        history_limit: int = 50,
        shortid_factory: Callable[[], str] = generate_shortid,
    ) -> None:
        self._registry = registry
        self._history = history
        self._blacklist = frozenset(blacklist)
        self._ping_interval_ms = ping_interval_ms
        self._ping_timeout_ms = ping_timeout_ms
        self._history_limit = history_limit
        self._shortid_factory = shortid_factory
        self._background: set[asyncio.Task] = set()
        self._event_handlers: dict[str, Callable[[str, EventPacket], None]] = {
            "request shortid": self._on_request_shortid,
            "set shortid": self._on_set_shortid,
        }

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def handle_get(self, sid: str | None) -> str:
        """Answer a poll: open a new session or drain an existing one."""
        if not sid:
            return self._open()

        if not self._registry.touch(sid):
            raise UnknownSessionError(sid)

        packets: list[Packet] = self._registry.drain(sid) or [NoopPacket()]
        return encode_payload(packet.encode() for packet in packets)

    def _open(self) -> str:
        sid = self._registry.create(initial=[ConnectPacket()])
        handshake = OpenPacket(
            sid=sid,
            ping_interval=self._ping_interval_ms,
            ping_timeout=self._ping_timeout_ms,
        )
        packets = [handshake, *self._registry.drain(sid)]
        logger.info("session_opened", sid=sid)
        return encode_payload(packet.encode() for packet in packets)

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    async def handle_post(self, sid: str | None, body: str | bytes) -> str:
        """Apply every packet in *body* to the session and reply ``ok``."""
        if not sid or not self._registry.touch(sid):
            raise UnknownSessionError(sid)

        for raw in decode_payload(body):
            packet = parse_packet(raw)
            if isinstance(packet, PingPacket):
                self._registry.enqueue(sid, PongPacket(packet.data))
            elif isinstance(packet, EventPacket):
                self._dispatch(sid, packet)
            elif isinstance(packet, ClosePacket):
                self._registry.remove(sid)
                logger.info("session_closed", sid=sid)
                break
            else:
                logger.debug("packet_ignored", sid=sid, packet=raw[:32])

        self._registry.sweep()
        return "ok"

    def _dispatch(self, sid: str, packet: EventPacket) -> None:
        handler = self._event_handlers.get(packet.name)
        if handler is None:
            logger.debug("event_ignored", sid=sid, event=packet.name)
            return
        handler(sid, packet)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _on_request_shortid(self, sid: str, packet: EventPacket) -> None:
        self._assign_mailbox(sid, self._shortid_factory())

    def _on_set_shortid(self, sid: str, packet: EventPacket) -> None:
        requested = sanitize_shortid(str(packet.payload) if packet.payload else "")
        if not requested or requested in self._blacklist:
            logger.info("shortid_refused", sid=sid, requested=requested)
            requested = self._shortid_factory()
        self._assign_mailbox(sid, requested)

    def _assign_mailbox(self, sid: str, mailbox_id: str) -> None:
        if not self._registry.mailboxes.bind(sid, mailbox_id):
            return
        self._registry.enqueue(sid, EventPacket(SHORTID_EVENT, mailbox_id))
        self._spawn(self.load_history(mailbox_id, sid))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def load_history(self, mailbox_id: str, sid: str) -> int:
        """Replay stored mail for *mailbox_id* to *sid*, oldest first.

        Replay stops once the session is gone or has moved to another mailbox.
        """
        records = await self._history.query_recent(mailbox_id, self._history_limit)
        delivered = 0
        for record in reversed(records):
            payload = ClientMail.from_record(record).to_payload()
            if not self._registry.mailboxes.deliver(sid, mailbox_id, payload):
                break
            delivered += 1
        logger.debug("history_loaded", sid=sid, mailbox_id=mailbox_id, mails=delivered)
        return delivered

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("history_load_failed", exc_info=exc)

    async def wait_background(self) -> None:
        """Wait for pending history loads to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
