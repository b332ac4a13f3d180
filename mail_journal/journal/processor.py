"""Reply processing: inbound replies become entries, reminders get composed."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from loguru import logger

from mail_journal.errors import DuplicateEntry, UnrecognizedReply
from mail_journal.journal.store import BaseEntryStore
from mail_journal.journal.types import InboundMail, JournalEntry, OutboundMail, utc_now
from mail_journal.mail.base import MailReceiver
from mail_journal.mail.parse import extract_reply_text, sender_address

REMINDER_INVITATION = "How was your day today? Reply to this email with your daily journal entry."
DEFAULT_SUBJECT = "Daily Journal Entry"

# Tolerated drift between the replying client's Date header and our clock
CLOCK_SKEW = timedelta(minutes=5)


def one_year_before(day: date) -> date | None:
    """Same month and day one year earlier, or None if that day doesn't exist (Feb 29)."""
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return None


def compose_reminder_body(prior: JournalEntry | None) -> str:
    body = REMINDER_INVITATION
    if prior is not None:
        when = prior.entry_date.strftime("%A, %B %d, %Y")
        body += f"\n\nOn this day, one year ago ({when}):\n\n\"{prior.body.strip()}\""
    return body


class ReplyProcessor:
    """
    Turns replies into journal entries and builds the daily reminder.

    Replies are attributed to the day of the reminder they answer, not the
    day they arrived. A reply that threads (In-Reply-To/References) to a
    known reminder lands on that reminder's date. Anything else from the
    target address lands on the latest reminder sent before the reply's
    ``Date`` header, or the latest reminder overall when it has none.
    """

    def __init__(
        self,
        store: BaseEntryStore,
        target_email: str,
        target_name: str = "",
        subject: str = DEFAULT_SUBJECT,
    ):
        self.store = store
        self.target_email = target_email.strip()
        self.target_name = target_name
        self.subject = subject

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def resolve_entry_date(self, mail: InboundMail) -> date:
        """Date of the reminder this mail answers.

        Raises:
            UnrecognizedReply: No sent reminder can be matched.
        """
        prompt = self.store.find_prompt(mail.thread_ids)
        if prompt is None and mail.received_at is not None:
            # The newest prompt at the time the reply was written, not at processing time
            prompt = self.store.latest_prompt(before=mail.received_at + CLOCK_SKEW)
        elif prompt is None:
            prompt = self.store.latest_prompt()
        if prompt is None:
            raise UnrecognizedReply(f"No outstanding reminder to attribute {mail.message_id} to")
        return prompt.prompt_date

    def ingest(self, mail: InboundMail, now: datetime | None = None) -> JournalEntry:
        """
        Store ``mail`` as a journal entry.

        Raises:
            UnrecognizedReply: Wrong sender, no matching reminder, or empty body.
            DuplicateEntry: The day already has an entry.
            StoreError: Storage failed.
        """
        sender = sender_address(mail.sender)
        if sender != self.target_email.lower():
            raise UnrecognizedReply(f"Ignoring email from {mail.sender or '<unknown>'}")

        entry_date = self.resolve_entry_date(mail)

        text = extract_reply_text(mail.body)
        if not text:
            raise UnrecognizedReply(f"Reply {mail.message_id} has no text outside the quoted message")

        if self.store.get(entry_date) is not None:
            raise DuplicateEntry(entry_date)

        entry = JournalEntry(entry_date=entry_date, body=text, received_at=now or utc_now())
        self.store.insert(entry)
        logger.info(f"Journal entry for {entry_date} stored ({len(text)} chars)")
        return entry

    def handle(self, mail: InboundMail, receiver: MailReceiver, now: datetime | None = None) -> JournalEntry | None:
        """Ingest one mail and mark it processed unless storage failed.

        StoreError and TransportError propagate; the message then stays
        unprocessed and is picked up again on the next poll.
        """
        try:
            entry = self.ingest(mail, now=now)
        except UnrecognizedReply as e:
            logger.warning(f"Discarding {mail.message_id}: {e}")
            entry = None
        except DuplicateEntry as e:
            logger.info(f"{e}; ignoring {mail.message_id}")
            entry = None

        receiver.mark_processed(mail.message_id)
        return entry

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def compose_reminder(self, today: date) -> OutboundMail:
        prior_date = one_year_before(today)
        prior = self.store.get(prior_date) if prior_date else None
        if prior is not None:
            logger.debug(f"Including entry from {prior_date} in reminder")

        return OutboundMail(
            to=self.target_email,
            to_name=self.target_name,
            subject=self.subject,
            body=compose_reminder_body(prior),
        )
