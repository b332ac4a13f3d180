"""Shared fixtures: a tmp database, fake transports, a test config."""

from datetime import datetime, timezone
from typing import Iterator

import pytest

from mail_journal.config.schema import Config
from mail_journal.errors import TransportError
from mail_journal.journal.service import LoopState
from mail_journal.journal.store import SqliteEntryStore
from mail_journal.journal.types import InboundMail
from mail_journal.mail.base import MailReceiver, MailSender

TARGET = "jane@example.com"


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FakeSender(MailSender):
    """Records every message instead of talking to SMTP."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to, subject, body, to_name=None) -> str:
        if self.fail:
            raise TransportError("connection refused")
        message_id = f"<prompt-{len(self.sent) + 1}@test>"
        self.sent.append(
            {"to": to, "to_name": to_name, "subject": subject, "body": body, "message_id": message_id}
        )
        return message_id


class FakeReceiver(MailReceiver):
    """In-memory inbox. Messages come back on every poll until marked."""

    def __init__(self):
        self.inbox: list[InboundMail] = []
        self.processed: set[str] = set()
        self.marked: list[str] = []
        self.fail_poll = False

    def deliver(self, mail: InboundMail) -> None:
        self.inbox.append(mail)

    def poll_new(self) -> Iterator[InboundMail]:
        if self.fail_poll:
            raise TransportError("IMAP connect failed")
        pending = [m for m in self.inbox if m.message_id not in self.processed]
        yield from pending

    def mark_processed(self, message_id: str) -> None:
        self.processed.add(message_id)
        self.marked.append(message_id)


def make_reply(
    body: str = "It was a good day",
    message_id: str = "<reply-1@mail.example.com>",
    in_reply_to: str | None = None,
    sender: str = f"Jane Doe <{TARGET}>",
    written_at: datetime | None = None,
) -> InboundMail:
    return InboundMail(
        sender=sender,
        subject="Re: Daily Journal Entry",
        body=body,
        message_id=message_id,
        in_reply_to=in_reply_to,
        references=[in_reply_to] if in_reply_to else [],
        received_at=written_at,
    )


@pytest.fixture
def config(tmp_path):
    return Config(
        target_email=TARGET,
        target_name="Jane Doe",
        db_filename=str(tmp_path / "journal.db"),
        journal_email="journal@example.com",
        utc_reminder_hour=18,
    )


@pytest.fixture
def store(tmp_path):
    return SqliteEntryStore(tmp_path / "journal.db")


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def receiver():
    return FakeReceiver()


@pytest.fixture
def state(config, store, sender, receiver):
    return LoopState.build(config, store=store, sender=sender, receiver=receiver)
