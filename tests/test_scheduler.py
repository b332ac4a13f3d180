"""Tests for reminder scheduling."""

from datetime import date

import pytest

from mail_journal.errors import ConfigError
from mail_journal.journal.scheduler import ReminderScheduler, is_reminder_due, next_reminder_at

from conftest import utc


@pytest.mark.parametrize("reminder_hour", range(24))
@pytest.mark.parametrize("hour", range(24))
def test_due_iff_hour_reached_and_not_sent_today(hour, reminder_hour):
    now = utc(2024, 6, 15, hour)

    assert is_reminder_due(now, reminder_hour, None) == (hour >= reminder_hour)
    assert is_reminder_due(now, reminder_hour, date(2024, 6, 14)) == (hour >= reminder_hour)
    assert is_reminder_due(now, reminder_hour, date(2024, 6, 15)) is False


def test_resume_after_downtime_sends_once_for_today():
    # Down for a week: due now, and only today's date matters
    now = utc(2024, 6, 22, 19)
    assert is_reminder_due(now, 18, date(2024, 6, 15)) is True
    assert is_reminder_due(now, 18, date(2024, 6, 22)) is False


def test_naive_datetimes_are_treated_as_utc():
    from datetime import datetime

    assert is_reminder_due(datetime(2024, 6, 15, 18), 18, None) is True


def test_next_reminder_later_today():
    assert next_reminder_at(utc(2024, 6, 15, 9), 18, date(2024, 6, 14)) == utc(2024, 6, 15, 18)


def test_next_reminder_tomorrow_after_sending():
    assert next_reminder_at(utc(2024, 6, 15, 20), 18, date(2024, 6, 15)) == utc(2024, 6, 16, 18)


def test_next_reminder_is_now_when_due():
    now = utc(2024, 6, 15, 20, 30)
    assert next_reminder_at(now, 18, date(2024, 6, 14)) == now


def test_scheduler_rejects_out_of_range_hour():
    with pytest.raises(ConfigError, match="utc_reminder_hour"):
        ReminderScheduler(24)
    with pytest.raises(ConfigError, match="utc_reminder_hour"):
        ReminderScheduler(-1)
