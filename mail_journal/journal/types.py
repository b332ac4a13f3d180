"""Types for the journal core."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JournalEntry:
    """A single journal entry. ``entry_date`` is the day it is about."""

    entry_date: date
    body: str
    received_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SentPrompt:
    """A reminder that actually went out."""

    prompt_date: date
    message_id: str
    sent_at: datetime


@dataclass
class InboundMail:
    """One message returned by a receive transport."""

    sender: str
    subject: str
    body: str
    message_id: str
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)
    received_at: datetime | None = None
    uid: str | None = None

    @property
    def thread_ids(self) -> list[str]:
        """Message-IDs this mail claims to answer, closest first."""
        ids: list[str] = []
        if self.in_reply_to:
            ids.append(self.in_reply_to)
        # References are oldest-first; the direct parent is the last one
        for ref in reversed(self.references):
            if ref not in ids:
                ids.append(ref)
        return ids


@dataclass(frozen=True)
class OutboundMail:
    """A composed message ready for the send transport."""

    to: str
    to_name: str
    subject: str
    body: str
