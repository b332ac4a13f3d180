"""Mail transport interfaces consumed by the journal core."""

from abc import ABC, abstractmethod
from typing import Iterator

from mail_journal.journal.types import InboundMail


class MailSender(ABC):
    """Delivers single outbound emails."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str, to_name: str | None = None) -> str:
        """
        Send one plain-text email.

        Returns:
            The Message-ID of the sent message.

        Raises:
            TransportError: The server refused the message or couldn't be reached.
        """
        ...


class MailReceiver(ABC):
    """Polls an inbox for messages that haven't been processed yet."""

    @abstractmethod
    def poll_new(self) -> Iterator[InboundMail]:
        """
        Yield unprocessed messages.

        Each call produces a finite sequence. The same message may show up
        again on a later call until ``mark_processed`` is called for it.

        Raises:
            TransportError: Connecting to or searching the mailbox failed.
        """
        ...

    @abstractmethod
    def mark_processed(self, message_id: str) -> None:
        """Make sure ``message_id`` is not returned by later polls."""
        ...
