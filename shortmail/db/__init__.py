"""Mail persistence."""

from .engine import Database
from .models import Base, Mail
from .store import MailStore

__all__ = [
    "Base",
    "Database",
    "Mail",
    "MailStore",
]
