"""Entry store: journal entries keyed by date, plus reminder state."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable

from loguru import logger

from mail_journal.errors import DuplicateEntry, StoreError
from mail_journal.journal.types import JournalEntry, SentPrompt

_LAST_SENT_KEY = "last_sent_date"


class BaseEntryStore(ABC):
    """
    Abstract base for entry stores.

    The core only needs point lookup and insert for entries, a single
    ``last_sent_date`` scalar, and the ledger of sent prompts used to
    correlate replies. No range queries, updates or deletes.
    """

    @abstractmethod
    def get(self, entry_date: date) -> JournalEntry | None:
        """Return the entry for ``entry_date``, or None."""
        ...

    @abstractmethod
    def insert(self, entry: JournalEntry) -> None:
        """
        Store a new entry.

        Raises:
            DuplicateEntry: An entry for ``entry.entry_date`` already exists.
        """
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def get_last_sent_date(self) -> date | None:
        ...

    @abstractmethod
    def set_last_sent_date(self, sent_date: date) -> None:
        ...

    @abstractmethod
    def record_prompt(self, prompt: SentPrompt) -> None:
        """Remember a reminder that went out, for reply correlation."""
        ...

    @abstractmethod
    def find_prompt(self, message_ids: Iterable[str]) -> SentPrompt | None:
        """Find the first sent prompt whose Message-ID is in ``message_ids``."""
        ...

    @abstractmethod
    def latest_prompt(self, before: datetime | None = None) -> SentPrompt | None:
        """Most recently sent prompt, answered or not.

        With ``before``, only prompts sent at or before that moment count.
        """
        ...


class SqliteEntryStore(BaseEntryStore):
    """SQLite-backed store. Every method is its own transaction."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_db()

    def _con(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path), timeout=30.0)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute("PRAGMA synchronous=NORMAL;")
        return con

    def _init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            con = self._con()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Failed to open database {self.db_path}: {e}") from e
        try:
            with con:
                con.execute(
                    "CREATE TABLE IF NOT EXISTS entries("
                    "entry_date TEXT PRIMARY KEY, body TEXT NOT NULL, received_at TEXT NOT NULL)"
                )
                con.execute(
                    "CREATE TABLE IF NOT EXISTS reminder_state("
                    "key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
                con.execute(
                    "CREATE TABLE IF NOT EXISTS sent_prompts("
                    "message_id TEXT PRIMARY KEY, prompt_date TEXT NOT NULL, sent_at TEXT NOT NULL)"
                )
                con.execute(
                    "CREATE INDEX IF NOT EXISTS sent_prompts_date_idx ON sent_prompts(prompt_date DESC)"
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize database {self.db_path}: {e}") from e
        finally:
            con.close()
        logger.debug(f"Entry store ready at {self.db_path}")

    def _execute(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            con = self._con()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open database {self.db_path}: {e}") from e
        try:
            with con:
                return con.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Database error: {e}") from e
        finally:
            con.close()

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, entry_date: date) -> JournalEntry | None:
        rows = self._execute(
            "SELECT entry_date, body, received_at FROM entries WHERE entry_date = ?",
            (entry_date.isoformat(),),
        )
        if not rows:
            return None
        return _row_to_entry(rows[0])

    def insert(self, entry: JournalEntry) -> None:
        try:
            con = self._con()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open database {self.db_path}: {e}") from e
        try:
            with con:
                con.execute(
                    "INSERT INTO entries (entry_date, body, received_at) VALUES (?, ?, ?)",
                    (entry.entry_date.isoformat(), entry.body, entry.received_at.isoformat()),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateEntry(entry.entry_date) from e
        except sqlite3.Error as e:
            raise StoreError(f"Database error: {e}") from e
        finally:
            con.close()
        logger.debug(f"Stored entry for {entry.entry_date}")

    def count(self) -> int:
        rows = self._execute("SELECT COUNT(*) AS n FROM entries")
        return int(rows[0]["n"])

    # ------------------------------------------------------------------
    # Reminder state
    # ------------------------------------------------------------------

    def get_last_sent_date(self) -> date | None:
        rows = self._execute("SELECT value FROM reminder_state WHERE key = ?", (_LAST_SENT_KEY,))
        if not rows:
            return None
        try:
            return date.fromisoformat(rows[0]["value"])
        except ValueError as e:
            raise StoreError(f"Corrupt {_LAST_SENT_KEY} value: {rows[0]['value']!r}") from e

    def set_last_sent_date(self, sent_date: date) -> None:
        self._execute(
            "INSERT INTO reminder_state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (_LAST_SENT_KEY, sent_date.isoformat()),
        )

    # ------------------------------------------------------------------
    # Sent prompts
    # ------------------------------------------------------------------

    def record_prompt(self, prompt: SentPrompt) -> None:
        self._execute(
            "INSERT OR REPLACE INTO sent_prompts (message_id, prompt_date, sent_at) VALUES (?, ?, ?)",
            (prompt.message_id, prompt.prompt_date.isoformat(), _utc_iso(prompt.sent_at)),
        )

    def find_prompt(self, message_ids: Iterable[str]) -> SentPrompt | None:
        for message_id in message_ids:
            rows = self._execute(
                "SELECT message_id, prompt_date, sent_at FROM sent_prompts WHERE message_id = ?",
                (message_id,),
            )
            if rows:
                return _row_to_prompt(rows[0])
        return None

    def latest_prompt(self, before: datetime | None = None) -> SentPrompt | None:
        if before is None:
            rows = self._execute(
                "SELECT message_id, prompt_date, sent_at FROM sent_prompts "
                "ORDER BY prompt_date DESC, sent_at DESC LIMIT 1"
            )
        else:
            # sent_at is stored as fixed-width UTC ISO text, so string order is time order
            rows = self._execute(
                "SELECT message_id, prompt_date, sent_at FROM sent_prompts WHERE sent_at <= ? "
                "ORDER BY sent_at DESC LIMIT 1",
                (_utc_iso(before),),
            )
        if not rows:
            return None
        return _row_to_prompt(rows[0])


def _utc_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_entry(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        entry_date=date.fromisoformat(row["entry_date"]),
        body=row["body"],
        received_at=datetime.fromisoformat(row["received_at"]),
    )


def _row_to_prompt(row: sqlite3.Row) -> SentPrompt:
    return SentPrompt(
        prompt_date=date.fromisoformat(row["prompt_date"]),
        message_id=row["message_id"],
        sent_at=datetime.fromisoformat(row["sent_at"]),
    )
