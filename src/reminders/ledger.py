"""Reminder ledger: per-subject notification history with cooldowns."""

from __future__ import annotations

import asyncio
import logging
from contextlib import closing
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import ReminderRecordRow
from reminders.domain import DedupSubject, IssueType
from reminders.errors import LedgerError
from reminders.interfaces import ReminderStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7

LedgerKey = tuple[str, int, str]


def _as_utc(value: datetime) -> datetime:
    """Normalize timestamps; SQLite returns naive datetimes for aware columns."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ledger_key(subject: DedupSubject, destination: int, issue_type: IssueType) -> LedgerKey:
    """Return the composite storage key for a reminder."""
    return (subject.storage_key, destination, IssueType(issue_type).value)


class SqlAlchemyReminderStore:
    """Reminder store backed by the ``telegram_reminders`` table.

    Session work is blocking, so each call runs in a worker thread.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def get(self, key: LedgerKey) -> datetime | None:
        return await asyncio.to_thread(self._get, key)

    async def upsert(self, key: LedgerKey, timestamp: datetime) -> None:
        await asyncio.to_thread(self._upsert, key, timestamp)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await asyncio.to_thread(self._delete_older_than, cutoff)

    def _query(self, session: Session, key: LedgerKey):
        subject_key, destination, issue_type = key
        return (
            session.query(ReminderRecordRow)
            .filter(ReminderRecordRow.card_public_id == subject_key)
            .filter(ReminderRecordRow.telegram_chat_id == destination)
            .filter(ReminderRecordRow.reminder_type == issue_type)
        )

    def _get(self, key: LedgerKey) -> datetime | None:
        with closing(self._session_factory()) as session:
            row = self._query(session, key).first()
            if row is None:
                return None
            return _as_utc(row.last_reminder_at)

    def _upsert(self, key: LedgerKey, timestamp: datetime) -> None:
        timestamp = _as_utc(timestamp)
        with closing(self._session_factory()) as session:
            if self._update_existing(session, key, timestamp):
                session.commit()
                return
            subject_key, destination, issue_type = key
            session.add(
                ReminderRecordRow(
                    card_public_id=subject_key,
                    telegram_chat_id=destination,
                    reminder_type=issue_type,
                    last_reminder_at=timestamp,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                # Lost an insert race to a concurrent writer; update its row instead.
                session.rollback()
                self._update_existing(session, key, timestamp)
                session.commit()

    def _update_existing(self, session: Session, key: LedgerKey, timestamp: datetime) -> bool:
        row = self._query(session, key).first()
        if row is None:
            return False
        if _as_utc(row.last_reminder_at) < timestamp:
            row.last_reminder_at = timestamp
        return True

    def _delete_older_than(self, cutoff: datetime) -> int:
        with closing(self._session_factory()) as session:
            result = session.execute(
                delete(ReminderRecordRow).where(
                    ReminderRecordRow.last_reminder_at < _normalize_cutoff(session, cutoff)
                )
            )
            session.commit()
            return int(result.rowcount or 0)


def _normalize_cutoff(session: Session, cutoff: datetime) -> datetime:
    """Normalize comparison timestamps for storage backends."""
    cutoff = _as_utc(cutoff)
    if session.bind is not None and session.bind.dialect.name == "sqlite":
        return cutoff.replace(tzinfo=None)
    return cutoff


class ReminderLedger:
    """Answers whether a reminder is due and records reminders that were sent.

    Store failures surface as ``LedgerError`` so callers can suppress the
    send instead of risking duplicate reminders.
    """

    def __init__(
        self,
        store: ReminderStore,
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))

    async def last_sent_at(
        self,
        subject: DedupSubject,
        destination: int,
        issue_type: IssueType,
    ) -> datetime | None:
        key = ledger_key(subject, destination, issue_type)
        try:
            return await self._store.get(key)
        except Exception as exc:
            raise LedgerError(f"Reminder lookup failed for {key}: {exc}") from exc

    async def due_for(
        self,
        subject: DedupSubject,
        destination: int,
        issue_type: IssueType,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Return True when no reminder was sent or the cooldown has elapsed."""
        last_sent = await self.last_sent_at(subject, destination, issue_type)
        if last_sent is None:
            return True
        elapsed = (now or self._now_provider()) - last_sent
        return elapsed >= timedelta(hours=IssueType(issue_type).cooldown_hours)

    async def record(
        self,
        subject: DedupSubject,
        destination: int,
        issue_type: IssueType,
        now: datetime | None = None,
    ) -> None:
        """Record that a reminder was sent, replacing any previous timestamp."""
        key = ledger_key(subject, destination, issue_type)
        try:
            await self._store.upsert(key, now or self._now_provider())
        except Exception as exc:
            raise LedgerError(f"Reminder write failed for {key}: {exc}") from exc

    async def prune(
        self,
        older_than_days: int = DEFAULT_RETENTION_DAYS,
        *,
        now: datetime | None = None,
    ) -> int:
        """Delete records whose last reminder predates the retention horizon."""
        cutoff = (now or self._now_provider()) - timedelta(days=older_than_days)
        try:
            removed = await self._store.delete_older_than(cutoff)
        except Exception as exc:
            raise LedgerError(f"Reminder prune failed: {exc}") from exc
        logger.info("Pruned %s reminder records older than %s", removed, cutoff.isoformat())
        return removed


__all__ = [
    "DEFAULT_RETENTION_DAYS",
    "LedgerKey",
    "ReminderLedger",
    "SqlAlchemyReminderStore",
    "ledger_key",
]
