"""Minimal RFC 822 / MIME parser for inbound mail.

Handles single-part messages and single-level multiparts carrying one
``text/plain`` and one ``text/html`` part. Transfer encodings and nested
multiparts are left as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .schemas import wrap_pre

_BLANK_LINE = re.compile(r"\r?\n\r?\n")
_FOLDED_LINE = re.compile(r"\r?\n[ \t]+")
_BOUNDARY = re.compile(r"""boundary\s*=\s*"?([^";\r\n]+)"?""", re.IGNORECASE)
_CONTENT_TYPE = re.compile(r"^content-type\s*:", re.IGNORECASE | re.MULTILINE)
_TAG = re.compile(r"<[^>]+>")


@dataclass
class MimePart:
    """One header block with its body."""

    headers: str
    body: str


@dataclass
class ParsedMail:
    """Structured representation of a parsed inbound message."""

    subject: str
    text: str
    html: str


def split_part(raw: str) -> MimePart:
    """Split *raw* on its first blank line into headers and body."""
    pieces = _BLANK_LINE.split(raw, maxsplit=1)
    return MimePart(headers=pieces[0], body=pieces[1] if len(pieces) > 1 else "")


def get_header(headers: str, name: str) -> str:
    """Case-insensitive header lookup; folded continuation lines are joined."""
    unfolded = _FOLDED_LINE.sub(" ", headers)
    match = re.search(rf"^{re.escape(name)}:[ \t]*(.*)$", unfolded, re.IGNORECASE | re.MULTILINE)
    return match.group(1).strip() if match else ""


def strip_tags(html: str) -> str:
    return _TAG.sub(" ", html).strip()


class MimeParser:
    """Stateless parser: raw message text → ParsedMail."""

    def parse(self, raw: str | bytes) -> ParsedMail:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        top = split_part(raw)
        boundary = _BOUNDARY.search(top.headers)

        if boundary is None:
            parts = [top]
            # RFC 2045: a message without Content-Type is text/plain
            plain_default = _CONTENT_TYPE.search(top.headers) is None
        else:
            parts = self._split_multipart(raw, boundary.group(1).strip())
            plain_default = False

        text, html = self._extract_bodies(parts, plain_default=plain_default)
        return ParsedMail(subject=get_header(top.headers, "subject"), text=text, html=html)

    def _split_multipart(self, raw: str, boundary: str) -> list[MimePart]:
        delimiter = re.compile(rf"--{re.escape(boundary)}(?:--)?")
        segments = (segment.strip() for segment in delimiter.split(raw))
        return [split_part(segment) for segment in segments if segment]

    def _extract_bodies(
        self,
        parts: list[MimePart],
        *,
        plain_default: bool = False,
    ) -> tuple[str, str]:
        """Return (plain_text, html) from the first matching parts."""
        text: str | None = None
        html: str | None = None

        for part in parts:
            headers = part.headers.lower()
            if "text/html" in headers:
                if html is None:
                    html = part.body.strip()
            elif "text/plain" in headers or plain_default:
                if text is None:
                    text = part.body.strip()

        text = text or ""
        html = html or ""
        if not text and html:
            text = strip_tags(html)
        if not html and text:
            html = wrap_pre(text)
        return text, html
