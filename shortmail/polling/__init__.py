"""Engine.IO / Socket.IO long-polling transport."""

from .codec import decode_payload, encode_payload
from .mailboxes import MailboxBinding
from .sessions import Session, SessionRegistry
from .transport import PollingError, PollingTransport, UnknownSessionError, UnsupportedTransportError

__all__ = [
    "MailboxBinding",
    "PollingError",
    "PollingTransport",
    "Session",
    "SessionRegistry",
    "UnknownSessionError",
    "UnsupportedTransportError",
    "decode_payload",
    "encode_payload",
]
