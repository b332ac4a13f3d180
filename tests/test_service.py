"""Tests for the main loop: tick ordering, failure recovery, idempotence."""

from datetime import date

from mail_journal.errors import StoreError
from mail_journal.journal.service import JournalService, LoopState, tick
from mail_journal.journal.types import JournalEntry

from conftest import make_reply, utc


class TestReminder:
    def test_fires_once_per_day(self, state, sender, store):
        first = tick(state, utc(2024, 6, 15, 18, 0))
        second = tick(state, utc(2024, 6, 15, 18, 1))
        later = tick(state, utc(2024, 6, 15, 23, 59))

        assert first.reminder_sent is True
        assert second.reminder_sent is False
        assert later.reminder_sent is False
        assert len(sender.sent) == 1
        assert store.get_last_sent_date() == date(2024, 6, 15)

    def test_not_before_reminder_hour(self, state, sender):
        result = tick(state, utc(2024, 6, 15, 17, 59))

        assert result.reminder_sent is False
        assert sender.sent == []

    def test_fires_again_next_day(self, state, sender):
        tick(state, utc(2024, 6, 15, 18))
        tick(state, utc(2024, 6, 16, 18))

        assert len(sender.sent) == 2
        assert state.last_sent_date == date(2024, 6, 16)

    def test_restart_does_not_resend(self, config, store, sender, receiver):
        tick(LoopState.build(config, store=store, sender=sender, receiver=receiver), utc(2024, 6, 15, 18))

        restarted = LoopState.build(config, store=store, sender=sender, receiver=receiver)
        tick(restarted, utc(2024, 6, 15, 20))

        assert len(sender.sent) == 1

    def test_send_failure_keeps_last_sent_date(self, state, sender, store):
        sender.fail = True

        result = tick(state, utc(2024, 6, 15, 18))

        assert result.reminder_sent is False
        assert result.errors
        assert store.get_last_sent_date() is None
        assert state.last_sent_date is None

        sender.fail = False
        assert tick(state, utc(2024, 6, 15, 18, 1)).reminder_sent is True

    def test_reminder_carries_last_years_entry(self, state, sender, store):
        store.insert(JournalEntry(entry_date=date(2023, 6, 15), body="It was a good day"))

        tick(state, utc(2024, 6, 15, 18))

        sent = sender.sent[0]
        assert sent["to"] == "jane@example.com"
        assert sent["to_name"] == "Jane Doe"
        assert "It was a good day" in sent["body"]

    def test_store_failure_after_send_aborts_tick(self, state, sender, receiver, store, monkeypatch):
        def broken(prompt):
            raise StoreError("database is locked")

        monkeypatch.setattr(store, "record_prompt", broken)
        receiver.deliver(make_reply())

        result = tick(state, utc(2024, 6, 15, 18))

        assert result.errors == ["database is locked"]
        assert state.last_sent_date is None
        # Inbox was not touched this tick
        assert receiver.marked == []


class TestInbox:
    def test_late_reply_lands_on_prompt_day(self, state, sender, receiver, store):
        tick(state, utc(2024, 6, 15, 18))
        receiver.deliver(make_reply(in_reply_to=sender.sent[0]["message_id"]))

        result = tick(state, utc(2024, 6, 16, 1))

        assert [e.entry_date for e in result.entries] == [date(2024, 6, 15)]
        assert store.get(date(2024, 6, 15)).body == "It was a good day"

    def test_reply_read_after_downtime_keeps_its_day(self, state, sender, receiver, store):
        tick(state, utc(2024, 6, 15, 18))
        receiver.deliver(make_reply(body="Saturday notes", written_at=utc(2024, 6, 15, 22)))

        # Loop was down overnight; the next tick sends today's prompt before reading mail
        tick(state, utc(2024, 6, 16, 19))
        receiver.deliver(
            make_reply(
                body="Sunday notes",
                message_id="<reply-2@mail.example.com>",
                in_reply_to=sender.sent[1]["message_id"],
            )
        )
        tick(state, utc(2024, 6, 16, 20))

        assert store.get(date(2024, 6, 15)).body == "Saturday notes"
        assert store.get(date(2024, 6, 16)).body == "Sunday notes"

    def test_duplicate_delivery_stores_one_entry(self, state, sender, receiver, store):
        tick(state, utc(2024, 6, 15, 18))
        mail = make_reply()

        # Same message shows up twice in one poll, e.g. a retried delivery
        receiver.deliver(mail)
        receiver.deliver(mail)
        tick(state, utc(2024, 6, 15, 19))

        assert store.count() == 1
        assert receiver.marked == [mail.message_id, mail.message_id]

    def test_redelivered_message_is_ignored(self, state, sender, receiver, store):
        tick(state, utc(2024, 6, 14, 18))
        tick(state, utc(2024, 6, 15, 18))
        mail = make_reply()
        receiver.deliver(mail)
        tick(state, utc(2024, 6, 15, 19))

        # Transport forgot it was processed
        receiver.processed.clear()
        result = tick(state, utc(2024, 6, 15, 20))

        assert result.entries == []
        assert store.count() == 1
        assert store.get(date(2024, 6, 14)) is None

    def test_poll_failure_is_not_fatal(self, state, receiver, sender):
        receiver.fail_poll = True

        result = tick(state, utc(2024, 6, 15, 18))

        assert result.reminder_sent is True
        assert result.errors == ["IMAP connect failed"]

    def test_unsolicited_mail_is_discarded(self, state, receiver, store):
        receiver.deliver(make_reply(message_id="<early@x>"))

        result = tick(state, utc(2024, 6, 15, 9))

        assert result.entries == []
        assert store.count() == 0
        assert receiver.marked == ["<early@x>"]

    def test_store_failure_leaves_message_for_next_tick(self, state, sender, receiver, store, monkeypatch):
        tick(state, utc(2024, 6, 15, 18))
        receiver.deliver(make_reply())
        real_insert = store.insert

        def broken(entry):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "insert", broken)
        failed = tick(state, utc(2024, 6, 15, 19))
        assert failed.errors == ["disk full"]
        assert receiver.marked == []

        monkeypatch.setattr(store, "insert", real_insert)
        recovered = tick(state, utc(2024, 6, 15, 20))
        assert len(recovered.entries) == 1
        assert store.count() == 1


class TestJournalService:
    def test_run_sleeps_between_ticks(self, state, sender):
        clock_times = iter([
            utc(2024, 6, 15, 17),  # startup log
            utc(2024, 6, 15, 17),
            utc(2024, 6, 15, 18),
            utc(2024, 6, 15, 19),
        ])
        sleeps: list[float] = []

        service = JournalService(
            state,
            poll_interval_s=30,
            clock=lambda: next(clock_times),
            sleep=sleeps.append,
        )
        service.run(max_ticks=3)

        assert sleeps == [30, 30]
        assert len(sender.sent) == 1

    def test_stop_ends_loop(self, state):
        service = JournalService(state, clock=lambda: utc(2024, 6, 15, 9))
        service._sleep = lambda _: service.stop()

        service.run()

        assert service._running is False
