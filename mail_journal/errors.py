"""Shared error types for mail-journal.

Each error maps to one recovery policy in the main loop:
config errors are fatal at startup, everything else is handled per tick.
"""


class MailJournalError(Exception):
    """Base error for mail-journal."""


class ConfigError(MailJournalError):
    """Configuration is missing or invalid."""


class TransportError(MailJournalError):
    """Sending or polling against the mail server failed."""


class UnrecognizedReply(MailJournalError):
    """Inbound message can't be correlated to a sent reminder."""


class DuplicateEntry(MailJournalError):
    """An entry already exists for this date. First write wins."""

    def __init__(self, entry_date):
        super().__init__(f"Journal entry for {entry_date.isoformat()} already exists")
        self.entry_date = entry_date


class StoreError(MailJournalError):
    """Underlying storage is unavailable or corrupt."""
