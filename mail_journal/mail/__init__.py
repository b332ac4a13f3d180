"""Mail transports: SMTP out, IMAP in."""

from mail_journal.mail.base import MailReceiver, MailSender
from mail_journal.mail.imap import ImapReceiver
from mail_journal.mail.smtp import SmtpSender

__all__ = ["MailReceiver", "MailSender", "ImapReceiver", "SmtpSender"]
