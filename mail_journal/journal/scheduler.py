"""Reminder scheduling.

All times are UTC. A reminder is due once per calendar day, at or after
``utc_reminder_hour``. Days missed while the process was down are not
caught up; on resume exactly one reminder goes out for today.
"""

from datetime import date, datetime, time, timedelta, timezone

from loguru import logger

from mail_journal.errors import ConfigError


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def utc_date(now: datetime) -> date:
    """Calendar date of ``now`` in UTC."""
    return _as_utc(now).date()


def is_reminder_due(now: datetime, reminder_hour: int, last_sent: date | None) -> bool:
    """True if today's reminder hasn't gone out and the hour has been reached."""
    now = _as_utc(now)
    return now.date() != last_sent and now.hour >= reminder_hour


def next_reminder_at(now: datetime, reminder_hour: int, last_sent: date | None) -> datetime:
    """UTC datetime at which the next reminder becomes due.

    Returns ``now`` itself when a reminder is already due.
    """
    now = _as_utc(now)
    if is_reminder_due(now, reminder_hour, last_sent):
        return now
    today_slot = datetime.combine(now.date(), time(hour=reminder_hour), tzinfo=timezone.utc)
    if now.date() != last_sent and now < today_slot:
        return today_slot
    return today_slot + timedelta(days=1)


class ReminderScheduler:
    """Decides, once per tick, whether the daily reminder should be sent."""

    def __init__(self, reminder_hour: int):
        if reminder_hour < 0 or reminder_hour > 23:
            raise ConfigError(f"utc_reminder_hour must be within 0..23, got {reminder_hour}")
        self.reminder_hour = reminder_hour

    def is_due(self, now: datetime, last_sent: date | None) -> bool:
        due = is_reminder_due(now, self.reminder_hour, last_sent)
        if due:
            logger.debug(f"Reminder due (now={now.isoformat()}, last_sent={last_sent})")
        return due

    def next_at(self, now: datetime, last_sent: date | None) -> datetime:
        return next_reminder_at(now, self.reminder_hour, last_sent)
