"""Payload schemas pushed to browser clients."""

from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, Field


class MailRecordLike(Protocol):
    subject: str | None
    body_text: str | None
    body_html: str | None
    sender: str | None
    created_at: int


def wrap_pre(text: str) -> str:
    """Render plain text as HTML by escaping it inside a ``<pre>`` block."""
    return f"<pre>{html.escape(text, quote=False)}</pre>"


def iso_timestamp(epoch_seconds: int | float) -> str:
    """Format epoch seconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ClientMail(BaseModel):
    """Display-oriented projection of a stored mail.

    Uses ``Field(alias="from")`` because ``"from"`` is a Python reserved word.
    ``populate_by_name=True`` allows construction via either key.
    """

    model_config = {"populate_by_name": True}

    subject: str = ""
    text: str = ""
    date: str
    from_address: str = Field(default="", alias="from")
    texthtml: str = ""
    html: str = ""

    @classmethod
    def from_record(cls, record: MailRecordLike) -> ClientMail:
        return cls.from_fields(
            subject=record.subject,
            text=record.body_text,
            html_body=record.body_html,
            sender=record.sender,
            created_at=record.created_at,
        )

    @classmethod
    def from_fields(
        cls,
        *,
        subject: str | None,
        text: str | None,
        html_body: str | None,
        sender: str | None,
        created_at: int,
    ) -> ClientMail:
        text = text or ""
        html_body = html_body or ""
        return cls(
            subject=subject or "",
            text=text,
            date=iso_timestamp(created_at),
            from_address=sender or "",
            texthtml=html_body or text,
            html=html_body or wrap_pre(text),
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize with wire field names (``from`` rather than ``from_address``)."""
        return self.model_dump(by_alias=True)
