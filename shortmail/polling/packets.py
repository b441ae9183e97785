"""Engine.IO / Socket.IO packet variants.

Packets are parsed once when they enter the transport and carried as typed
values afterwards; ``encode()`` produces the wire string that goes into a
payload frame.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# Engine.IO packet types
OPEN = "0"
CLOSE = "1"
PING = "2"
PONG = "3"
MESSAGE = "4"
NOOP = "6"

# Socket.IO packet types, carried inside an Engine.IO message
SIO_CONNECT = "0"
SIO_EVENT = "2"

EVENT_PREFIX = MESSAGE + SIO_EVENT


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class OpenPacket:
    """Handshake sent as the first packet of a new session."""

    sid: str
    ping_interval: int = 25000
    ping_timeout: int = 20000
    upgrades: tuple[str, ...] = ()

    def encode(self) -> str:
        handshake = {
            "sid": self.sid,
            "upgrades": list(self.upgrades),
            "pingInterval": self.ping_interval,
            "pingTimeout": self.ping_timeout,
        }
        return OPEN + _dumps(handshake)


@dataclass(frozen=True)
class ClosePacket:
    def encode(self) -> str:
        return CLOSE


@dataclass(frozen=True)
class PingPacket:
    data: str = ""

    def encode(self) -> str:
        return PING + self.data


@dataclass(frozen=True)
class PongPacket:
    data: str = ""

    def encode(self) -> str:
        return PONG + self.data


@dataclass(frozen=True)
class NoopPacket:
    def encode(self) -> str:
        return NOOP


@dataclass(frozen=True)
class ConnectPacket:
    """Socket.IO connect acknowledgement for the default namespace."""

    def encode(self) -> str:
        return MESSAGE + SIO_CONNECT


@dataclass(frozen=True)
class EventPacket:
    """Socket.IO event: ``42["name", payload]``."""

    name: str
    payload: Any = None
    has_payload: bool = field(default=True, compare=False)

    def encode(self) -> str:
        args: list[Any] = [self.name]
        if self.has_payload:
            args.append(self.payload)
        return EVENT_PREFIX + _dumps(args)


Packet = (
    OpenPacket
    | ClosePacket
    | PingPacket
    | PongPacket
    | NoopPacket
    | ConnectPacket
    | EventPacket
)


def parse_packet(raw: str) -> Packet | None:
    """Parse a client packet string.

    Returns ``None`` for packet types the server does not act on and for
    events whose JSON body is malformed.
    """
    if raw == CLOSE:
        return ClosePacket()
    if raw.startswith(PING):
        return PingPacket(raw[1:])
    if raw.startswith(PONG):
        return PongPacket(raw[1:])
    if raw == NOOP:
        return NoopPacket()
    if raw.startswith(EVENT_PREFIX):
        return _parse_event(raw[len(EVENT_PREFIX):])
    return None


def _parse_event(body: str) -> EventPacket | None:
    try:
        args = json.loads(body)
    except ValueError:
        return None
    if not isinstance(args, list) or not args or not isinstance(args[0], str):
        return None
    if len(args) == 1:
        return EventPacket(args[0], None, has_payload=False)
    return EventPacket(args[0], args[1])
