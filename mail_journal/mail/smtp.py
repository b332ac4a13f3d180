"""SMTP send transport."""

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid

from loguru import logger

from mail_journal.config.schema import Config
from mail_journal.errors import TransportError
from mail_journal.mail.base import MailSender


class SmtpSender(MailSender):
    """Sends mail through the journal account's SMTP server.

    A fresh connection is opened for every message; at one reminder a day
    there is nothing worth reusing.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        port: int = 465,
        starttls: bool = False,
        from_name: str = "Mail Journal",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> "SmtpSender":
        return cls(
            host=config.journal_email_smtp,
            port=config.smtp_port,
            username=config.journal_email,
            password=config.journal_email_password,
            starttls=config.smtp_starttls,
            from_name=config.sender_name,
        )

    def build_message(self, to: str, subject: str, body: str, to_name: str | None = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.username))
        msg["To"] = formataddr((to_name, to)) if to_name else to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=False, usegmt=True)
        domain = self.username.rsplit("@", 1)[-1] if "@" in self.username else None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg.set_content(body)
        return msg

    def send(self, to: str, subject: str, body: str, to_name: str | None = None) -> str:
        msg = self.build_message(to, subject, body, to_name=to_name)
        context = ssl.create_default_context()

        try:
            if self.starttls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.ehlo()
                    server.starttls(context=context)
                    server.ehlo()
                    server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context) as server:
                    server.login(self.username, self.password)
                    server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise TransportError(f"SMTP authentication failed for {self.username}: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"SMTP send to {to} via {self.host}:{self.port} failed: {e}") from e

        logger.info(f"Sent \"{subject}\" to {to}")
        return str(msg["Message-ID"])
