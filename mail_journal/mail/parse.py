"""Parsing inbound mail and extracting the journal text from a reply."""

from __future__ import annotations

import email.parser
import email.policy
import html
import re
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import parseaddr, parsedate_to_datetime

from mail_journal.journal.types import InboundMail

_MSGID_RE = re.compile(r"<[^<>\s]+>")

# "On Tue, 12 Jun 2023 at 20:01, Mail Journal <journal@example.com> wrote:"
_QUOTE_HEADER_RE = re.compile(r"^\s*On\b.+\bwrote:\s*$", re.IGNORECASE)
# Gmail sometimes wraps the "On ... wrote:" header across two lines
_QUOTE_HEADER_START_RE = re.compile(r"^\s*On\s.+\d", re.IGNORECASE)
_ORIGINAL_MESSAGE_RE = re.compile(r"^\s*-{2,}\s*(Original Message|Forwarded message)\s*-{2,}\s*$", re.IGNORECASE)
_OUTLOOK_HEADER_RE = re.compile(r"^\s*From:\s.+", re.IGNORECASE)
_MOBILE_FOOTER_RE = re.compile(r"^\s*(Sent from my \w+|Get Outlook for \w+)", re.IGNORECASE)
_SIGNATURE_DELIMITER = "-- "


def parse_message(raw: bytes, uid: str | None = None) -> InboundMail:
    """Parse an RFC 822 message into an InboundMail.

    Messages without a Message-ID get a synthetic one derived from ``uid``.
    """
    msg = email.parser.BytesParser(policy=email.policy.default).parsebytes(raw or b"")

    message_id = _first_msgid(str(msg.get("Message-ID", "") or ""))
    if not message_id:
        message_id = f"<uid-{uid}@imap>" if uid else ""

    return InboundMail(
        sender=str(msg.get("From", "") or ""),
        subject=str(msg.get("Subject", "") or ""),
        body=_extract_text(msg),
        message_id=message_id,
        in_reply_to=_first_msgid(str(msg.get("In-Reply-To", "") or "")) or None,
        references=_MSGID_RE.findall(str(msg.get("References", "") or "")),
        received_at=_parse_date(str(msg.get("Date", "") or "")),
        uid=uid,
    )


def sender_address(sender: str) -> str:
    """Bare lower-cased address from a From header value."""
    return parseaddr(sender)[1].strip().lower()


def extract_reply_text(body: str) -> str:
    """
    Best-effort extraction of what the user actually wrote.

    Drops the quoted original message, quote headers, forwarded/original
    message blocks, ``-- `` signatures and mobile footers. The first line
    that opens a quoted block ends the reply; everything the user typed
    above it is kept verbatim apart from trailing whitespace.
    """
    lines = body.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    kept: list[str] = []

    for i, line in enumerate(lines):
        if line == _SIGNATURE_DELIMITER or line.rstrip() == "--":
            break
        if line.lstrip().startswith(">"):
            break
        if _QUOTE_HEADER_RE.match(line) or _ORIGINAL_MESSAGE_RE.match(line):
            break
        if _QUOTE_HEADER_START_RE.match(line) and i + 1 < len(lines) and lines[i + 1].rstrip().endswith("wrote:"):
            break
        if _OUTLOOK_HEADER_RE.match(line) and _looks_like_outlook_block(lines[i:]):
            break
        if _MOBILE_FOOTER_RE.match(line):
            break
        kept.append(line.rstrip())

    return "\n".join(kept).strip()


def _looks_like_outlook_block(lines: list[str]) -> bool:
    # Outlook quotes with a From:/Sent:/To:/Subject: header block and no ">"
    head = [line.strip().lower() for line in lines[:5]]
    return any(h.startswith("sent:") or h.startswith("date:") for h in head[1:]) and any(
        h.startswith("subject:") for h in head
    )


def _first_msgid(value: str) -> str:
    match = _MSGID_RE.search(value)
    if match:
        return match.group(0)
    return value.strip()


def _parse_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _extract_text(msg: EmailMessage) -> str:
    """Prefer the first text/plain part; fall back to stripped text/html."""
    text_plain: str | None = None
    text_html: str | None = None

    for part in msg.walk() if msg.is_multipart() else [msg]:
        if part.is_multipart():
            continue
        if (part.get_content_disposition() or "").lower() == "attachment":
            continue
        ctype = (part.get_content_type() or "").lower()
        if ctype == "text/plain" and text_plain is None:
            text_plain = _part_content(part)
        elif ctype == "text/html" and text_html is None:
            text_html = _part_content(part)

    if text_plain is not None:
        return text_plain
    if text_html is not None:
        return _strip_html_to_text(text_html)
    return ""


def _part_content(part: EmailMessage) -> str:
    try:
        return str(part.get_content())
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _strip_html_to_text(html_s: str) -> str:
    # Drop the quoted thread before flattening so it can't leak into the entry
    s = re.sub(r"(?is)<blockquote.*?</blockquote>", " ", html_s)
    s = re.sub(r"(?is)<div[^>]*class=\"?gmail_quote.*", " ", s)
    s = re.sub(r"(?is)<(script|style).*?>.*?</\1>", " ", s)
    s = re.sub(r"(?is)<br\s*/?>", "\n", s)
    s = re.sub(r"(?is)</(p|div)\s*>", "\n", s)
    s = re.sub(r"(?is)<[^>]+>", " ", s)
    s = html.unescape(s)
    s = re.sub(r"[ \t\r]+", " ", s)
    s = re.sub(r" *\n *", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()
