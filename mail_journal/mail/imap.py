"""IMAP receive transport."""

from __future__ import annotations

import imaplib
import re
from typing import Iterator

from loguru import logger

from mail_journal.config.schema import Config
from mail_journal.errors import TransportError
from mail_journal.journal.types import InboundMail
from mail_journal.mail.base import MailReceiver
from mail_journal.mail.parse import parse_message


def _imap_quote_mailbox(mailbox: str) -> str:
    """Quote mailbox names with spaces or special chars, e.g. ``[Gmail]/All Mail``."""
    m = mailbox or ""
    if re.fullmatch(r"[A-Za-z0-9_.-]+", m):
        return m
    m = m.replace("\\", "\\\\").replace('"', r"\"")
    return f"\"{m}\""


def _fetched_bytes(data: list) -> bytes:
    raw = b""
    for item in data or []:
        if isinstance(item, tuple) and len(item) == 2 and isinstance(item[1], (bytes, bytearray)):
            raw += bytes(item[1])
    return raw


class ImapReceiver(MailReceiver):
    """
    Polls the journal inbox for unseen mail from the target address.

    Messages are fetched with ``BODY.PEEK[]`` so they stay unseen until
    ``mark_processed`` sets ``\\Seen`` on them. A message that was polled but
    never marked will therefore come back on the next poll.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        from_address: str,
        port: int = 993,
        mailbox: str = "INBOX",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.mailbox = mailbox
        self.timeout = timeout
        self._imap: imaplib.IMAP4 | None = None
        self._uids: dict[str, str] = {}  # message_id -> uid

    @classmethod
    def from_config(cls, config: Config) -> "ImapReceiver":
        return cls(
            host=config.journal_email_imap,
            port=config.imap_port,
            username=config.journal_email,
            password=config.journal_email_password,
            from_address=config.target_email,
            mailbox=config.mailbox,
        )

    def _connect(self) -> imaplib.IMAP4:
        try:
            imap = imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)
            imap.login(self.username, self.password)
            typ, _ = imap.select(_imap_quote_mailbox(self.mailbox))
        except (imaplib.IMAP4.error, OSError) as e:
            raise TransportError(f"IMAP connect to {self.host}:{self.port} failed: {e}") from e
        if typ != "OK":
            _logout(imap)
            raise TransportError(f"IMAP select {self.mailbox!r} failed")
        return imap

    def poll_new(self) -> Iterator[InboundMail]:
        imap = self._connect()
        self._imap = imap
        try:
            try:
                typ, data = imap.uid("search", None, "UNSEEN", "FROM", f'"{self.from_address}"')
            except (imaplib.IMAP4.error, OSError) as e:
                raise TransportError(f"IMAP search failed: {e}") from e
            if typ != "OK":
                raise TransportError("IMAP search failed")

            uids = [u.decode() for u in (data[0] or b"").split()] if data else []
            if uids:
                logger.info(f"{len(uids)} new email(s)")

            for uid in uids:
                try:
                    typ, msg_data = imap.uid("fetch", uid, "(BODY.PEEK[])")
                except (imaplib.IMAP4.error, OSError) as e:
                    raise TransportError(f"IMAP fetch of UID {uid} failed: {e}") from e
                if typ != "OK":
                    logger.warning(f"Failed to fetch UID {uid}")
                    continue

                mail = parse_message(_fetched_bytes(msg_data), uid=uid)
                self._uids[mail.message_id] = uid
                yield mail
        finally:
            self._imap = None
            _logout(imap)

    def mark_processed(self, message_id: str) -> None:
        uid = self._uids.get(message_id)
        if uid is None:
            logger.warning(f"No known UID for {message_id}; cannot mark it processed")
            return

        imap = self._imap
        owned = imap is None
        if owned:
            imap = self._connect()
        try:
            typ, _ = imap.uid("store", uid, "+FLAGS", "(\\Seen)")
        except (imaplib.IMAP4.error, OSError) as e:
            raise TransportError(f"IMAP store for UID {uid} failed: {e}") from e
        finally:
            if owned:
                _logout(imap)
        if typ != "OK":
            raise TransportError(f"IMAP store for UID {uid} failed")
        self._uids.pop(message_id, None)
        logger.debug(f"Marked {message_id} (UID {uid}) as seen")


def _logout(imap: imaplib.IMAP4) -> None:
    try:
        imap.logout()
    except (imaplib.IMAP4.error, OSError) as e:
        logger.debug(f"IMAP logout failed: {e}")
