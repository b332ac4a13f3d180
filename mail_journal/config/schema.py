"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Root configuration for mail-journal.

    Loaded once at startup and never mutated afterwards. Any field can be
    overridden with a ``MAIL_JOURNAL_<FIELD>`` environment variable, which is
    the usual place for ``journal_email_password``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAIL_JOURNAL_",
        extra="ignore",
        frozen=True,
    )

    # Who gets the reminders
    target_email: str = "john.smith@example.com"
    target_name: str = "John Smith"

    # Storage
    db_filename: str = "~/.mail-journal/mail-journal.db"

    # The journal's own mailbox
    journal_email_smtp: str = "smtp.example.com"
    journal_email_imap: str = "imap.example.com"
    journal_email: str = "mail-journal@example.com"
    journal_email_password: str = "password"
    smtp_port: int = Field(default=465, ge=1, le=65535)
    smtp_starttls: bool = False  # plain connect + STARTTLS instead of implicit TLS
    imap_port: int = Field(default=993, ge=1, le=65535)
    mailbox: str = "INBOX"

    # Schedule
    utc_reminder_hour: int = 0
    poll_interval_s: int = Field(default=60, ge=1, description="Seconds to sleep between ticks")

    # Outgoing mail
    sender_name: str = "Mail Journal"
    reminder_subject: str = "Daily Journal Entry"

    @field_validator("utc_reminder_hour")
    @classmethod
    def _check_reminder_hour(cls, v: int) -> int:
        if v < 0 or v > 23:
            raise ValueError("utc_reminder_hour must be an integer between 0 and 23 (inclusive)")
        return v

    @property
    def db_path(self) -> Path:
        """Get expanded database path."""
        return Path(self.db_filename).expanduser()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values read from config.json
        return env_settings, init_settings, dotenv_settings, file_secret_settings
