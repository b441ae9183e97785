"""shortmail: disposable mailboxes with live Socket.IO long-polling updates."""

from .ingestion import IngestionPipeline, IngestionResult
from .mime import MimeParser
from .polling import MailboxBinding, PollingTransport, SessionRegistry

__all__ = [
    "IngestionPipeline",
    "IngestionResult",
    "MailboxBinding",
    "MimeParser",
    "PollingTransport",
    "SessionRegistry",
]
