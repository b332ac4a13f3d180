"""Main loop: one tick checks the reminder, then the inbox, then sleeps."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from loguru import logger

from mail_journal.config.schema import Config
from mail_journal.errors import StoreError, TransportError
from mail_journal.journal.processor import ReplyProcessor
from mail_journal.journal.scheduler import ReminderScheduler, utc_date
from mail_journal.journal.store import BaseEntryStore, SqliteEntryStore
from mail_journal.journal.types import JournalEntry, SentPrompt, utc_now
from mail_journal.mail.base import MailReceiver, MailSender
from mail_journal.mail.imap import ImapReceiver
from mail_journal.mail.smtp import SmtpSender


@dataclass
class LoopState:
    """Everything a tick reads or writes. Owned by the loop, passed in explicitly."""

    store: BaseEntryStore
    sender: MailSender
    receiver: MailReceiver
    scheduler: ReminderScheduler
    processor: ReplyProcessor
    last_sent_date: date | None = None

    @classmethod
    def from_config(cls, config: Config) -> "LoopState":
        store = SqliteEntryStore(config.db_path)
        return cls.build(
            config,
            store=store,
            sender=SmtpSender.from_config(config),
            receiver=ImapReceiver.from_config(config),
        )

    @classmethod
    def build(
        cls,
        config: Config,
        store: BaseEntryStore,
        sender: MailSender,
        receiver: MailReceiver,
    ) -> "LoopState":
        return cls(
            store=store,
            sender=sender,
            receiver=receiver,
            scheduler=ReminderScheduler(config.utc_reminder_hour),
            processor=ReplyProcessor(
                store,
                target_email=config.target_email,
                target_name=config.target_name,
                subject=config.reminder_subject,
            ),
            last_sent_date=store.get_last_sent_date(),
        )


@dataclass
class TickResult:
    """What happened during one tick."""

    reminder_sent: bool = False
    entries: list[JournalEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def send_reminder_if_due(state: LoopState, now: datetime) -> bool:
    """
    Send today's reminder if it is due.

    ``last_sent_date`` only moves after the send succeeded, so a failure
    (or a crash right after sending) can cause a duplicate, never a gap.

    Raises:
        TransportError: Sending failed; nothing was persisted.
        StoreError: Persisting the sent reminder failed.
    """
    if not state.scheduler.is_due(now, state.last_sent_date):
        return False

    today = utc_date(now)
    outbound = state.processor.compose_reminder(today)
    message_id = state.sender.send(
        outbound.to, outbound.subject, outbound.body, to_name=outbound.to_name
    )

    state.store.record_prompt(SentPrompt(prompt_date=today, message_id=message_id, sent_at=now))
    state.store.set_last_sent_date(today)
    state.last_sent_date = today

    next_at = state.scheduler.next_at(now, today)
    logger.info(f"Journal reminder for {today} sent. Next reminder scheduled for {next_at}")
    return True


def process_inbox(state: LoopState, now: datetime) -> list[JournalEntry]:
    """Poll the receiver and ingest every new message.

    Raises:
        TransportError: Polling or marking failed.
        StoreError: Storage failed; the current message stays unprocessed.
    """
    stored: list[JournalEntry] = []
    for mail in state.receiver.poll_new():
        entry = state.processor.handle(mail, state.receiver, now=now)
        if entry is not None:
            stored.append(entry)
    return stored


def tick(state: LoopState, now: datetime | None = None) -> TickResult:
    """
    Run one iteration: reminder check, then inbox check.

    Transport failures skip only the step they happened in. A store failure
    abandons the rest of the tick. Neither is raised; the next tick retries.
    """
    now = now or utc_now()
    result = TickResult()

    try:
        result.reminder_sent = send_reminder_if_due(state, now)
    except TransportError as e:
        logger.warning(f"Reminder not sent, will retry next tick: {e}")
        result.errors.append(str(e))
    except StoreError as e:
        logger.error(f"Store failure while sending reminder: {e}")
        result.errors.append(str(e))
        return result

    try:
        result.entries = process_inbox(state, now)
    except TransportError as e:
        logger.warning(f"Inbox check failed, will retry next tick: {e}")
        result.errors.append(str(e))
    except StoreError as e:
        logger.error(f"Store failure while processing replies: {e}")
        result.errors.append(str(e))

    return result


class JournalService:
    """Runs ticks forever, sleeping ``poll_interval_s`` between them."""

    def __init__(
        self,
        state: LoopState,
        poll_interval_s: float = 60,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.state = state
        self.poll_interval_s = poll_interval_s
        self._clock = clock
        self._sleep = sleep
        self._running = False

    def run(self, max_ticks: int | None = None) -> None:
        """Loop until stopped, or for ``max_ticks`` ticks when given."""
        self._running = True
        now = self._clock()
        next_at = self.state.scheduler.next_at(now, self.state.last_sent_date)
        if self.state.last_sent_date == utc_date(now):
            logger.info(f"Journal reminder for today has been sent. Next one at {next_at}")
        else:
            logger.info(f"Journal reminder scheduled at {next_at}")
        logger.info("Mail Journal running.")

        ticks = 0
        while self._running:
            tick(self.state, self._clock())
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self._sleep(self.poll_interval_s)
        self._running = False

    def stop(self) -> None:
        self._running = False
