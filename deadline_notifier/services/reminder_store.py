"""
Reminder Store.

Persisted table of pending/processed reminders. The only ways to change a
row are the keyed upsert, the delete of unprocessed rows and the atomic
claim; nothing reads a row and writes it back.
"""

import abc
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from deadline_notifier.models.reminder import Reminder, ReminderKind
from deadline_notifier.utils.clock import normalize_instant, utcnow

logger = logging.getLogger(__name__)

REMINDER_TABLE = Reminder.__table__


class ReminderStore(abc.ABC):
    """Abstract reminder table."""

    @abc.abstractmethod
    def upsert_many(self, assignment_id: str, schedule: Dict[ReminderKind, datetime]) -> List[Reminder]:
        """
        Insert or overwrite one row per kind, all or nothing.

        Existing rows get the new scheduled_for and processed reset to False.

        Args:
            assignment_id: Assignment the reminders belong to
            schedule: Instant per reminder kind

        Returns:
            The rows as stored
        """

    @abc.abstractmethod
    def delete_unprocessed(self, assignment_id: str) -> int:
        """Delete the assignment's pending rows and return how many went."""

    @abc.abstractmethod
    def find_due(self, now: datetime) -> List[Reminder]:
        """Rows with processed = false and scheduled_for <= now."""

    @abc.abstractmethod
    def claim(self, reminder_id: int, now: Optional[datetime] = None) -> bool:
        """
        Atomically flip a row from pending to processed.

        Returns:
            True for exactly one caller per pending row, False when the row
            was already claimed, no longer exists or was rescheduled past now
        """

    @abc.abstractmethod
    def list_for_assignment(self, assignment_id: str) -> List[Reminder]:
        """All rows of an assignment, processed or not, ordered by scheduled_for."""

    @abc.abstractmethod
    def get(self, reminder_id: int) -> Optional[Reminder]:
        """Single row by id."""


class SqlReminderStore(ReminderStore):
    """Reminder store backed by the assignment_reminder table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def _upsert_statement(self, dialect_name: str, values: dict):
        if dialect_name == "postgresql":
            insert = postgresql_insert
        elif dialect_name == "sqlite":
            insert = sqlite_insert
        else:
            return None
        statement = insert(REMINDER_TABLE).values(**values)
        return statement.on_conflict_do_update(
            index_elements=["assignment_id", "kind"],
            set_={
                "scheduled_for": statement.excluded.scheduled_for,
                "processed": False,
                "processed_at": None,
                "updated_at": statement.excluded.updated_at,
            },
        )

    def upsert_many(self, assignment_id: str, schedule: Dict[ReminderKind, datetime]) -> List[Reminder]:
        now = utcnow()
        with self._session() as session:
            dialect_name = session.get_bind().dialect.name
            # One transaction for every kind: either all rows land or none do
            for kind, scheduled_for in schedule.items():
                values = {
                    "assignment_id": assignment_id,
                    "kind": kind,
                    "scheduled_for": normalize_instant(scheduled_for),
                    "processed": False,
                    "processed_at": None,
                    "created_at": now,
                    "updated_at": now,
                }
                statement = self._upsert_statement(dialect_name, values)
                if statement is not None:
                    session.connection().execute(statement)
                else:
                    self._portable_upsert(session, values)
            session.commit()

            rows = session.exec(
                select(Reminder)
                .where(Reminder.assignment_id == assignment_id)
                .where(Reminder.kind.in_(list(schedule.keys())))
                .order_by(Reminder.scheduled_for)
            ).all()
            return list(rows)

    def _portable_upsert(self, session: Session, values: dict) -> None:
        """Fallback for dialects without ON CONFLICT; relies on the unique key."""
        existing = session.exec(
            select(Reminder)
            .where(Reminder.assignment_id == values["assignment_id"])
            .where(Reminder.kind == values["kind"])
            .with_for_update()
        ).first()
        if existing is None:
            session.add(Reminder(**values))
        else:
            existing.scheduled_for = values["scheduled_for"]
            existing.processed = False
            existing.processed_at = None
            existing.updated_at = values["updated_at"]
            session.add(existing)
        session.flush()

    def delete_unprocessed(self, assignment_id: str) -> int:
        with self._session() as session:
            result = session.connection().execute(
                delete(REMINDER_TABLE)
                .where(REMINDER_TABLE.c.assignment_id == assignment_id)
                .where(REMINDER_TABLE.c.processed == False)
            )
            session.commit()
            deleted = result.rowcount or 0
        logger.debug(f"Deleted {deleted} pending reminders for assignment {assignment_id}")
        return deleted

    def find_due(self, now: datetime) -> List[Reminder]:
        now = normalize_instant(now)
        with self._session() as session:
            statement = (
                select(Reminder)
                .where(Reminder.processed == False)
                .where(Reminder.scheduled_for <= now)
                .order_by(Reminder.scheduled_for, Reminder.id)
            )
            return list(session.exec(statement).all())

    def claim(self, reminder_id: int, now: Optional[datetime] = None) -> bool:
        claimed_at = normalize_instant(now) if now is not None else utcnow()
        with self._session() as session:
            # Single compare-and-set round trip; the affected-row count decides the winner
            result = session.connection().execute(
                update(REMINDER_TABLE)
                .where(REMINDER_TABLE.c.id == reminder_id)
                .where(REMINDER_TABLE.c.processed == False)
                .where(REMINDER_TABLE.c.scheduled_for <= claimed_at)
                .values(processed=True, processed_at=claimed_at, updated_at=claimed_at)
            )
            session.commit()
            return result.rowcount == 1

    def list_for_assignment(self, assignment_id: str) -> List[Reminder]:
        with self._session() as session:
            statement = (
                select(Reminder)
                .where(Reminder.assignment_id == assignment_id)
                .order_by(Reminder.scheduled_for)
            )
            return list(session.exec(statement).all())

    def get(self, reminder_id: int) -> Optional[Reminder]:
        with self._session() as session:
            return session.get(Reminder, reminder_id)


class InMemoryReminderStore(ReminderStore):
    """Process-local reminder store guarded by a lock, for tests and dev runs."""

    def __init__(self):
        self._rows: Dict[int, Reminder] = {}
        self._keys: Dict[Tuple[str, ReminderKind], int] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def upsert_many(self, assignment_id: str, schedule: Dict[ReminderKind, datetime]) -> List[Reminder]:
        now = utcnow()
        normalized = {kind: normalize_instant(when) for kind, when in schedule.items()}
        stored = []
        with self._lock:
            for kind, scheduled_for in normalized.items():
                key = (assignment_id, ReminderKind(kind))
                row_id = self._keys.get(key)
                if row_id is None:
                    row = Reminder(
                        id=self._next_id,
                        assignment_id=assignment_id,
                        kind=ReminderKind(kind),
                        scheduled_for=scheduled_for,
                        processed=False,
                        created_at=now,
                        updated_at=now,
                    )
                    self._rows[row.id] = row
                    self._keys[key] = row.id
                    self._next_id += 1
                else:
                    row = self._rows[row_id]
                    row.scheduled_for = scheduled_for
                    row.processed = False
                    row.processed_at = None
                    row.updated_at = now
                stored.append(row.copy_row())
        return sorted(stored, key=lambda r: r.scheduled_for)

    def delete_unprocessed(self, assignment_id: str) -> int:
        with self._lock:
            doomed = [
                row for row in self._rows.values()
                if row.assignment_id == assignment_id and not row.processed
            ]
            for row in doomed:
                del self._rows[row.id]
                del self._keys[(row.assignment_id, row.kind)]
            return len(doomed)

    def find_due(self, now: datetime) -> List[Reminder]:
        now = normalize_instant(now)
        with self._lock:
            due = [
                row.copy_row() for row in self._rows.values()
                if not row.processed and row.scheduled_for <= now
            ]
        return sorted(due, key=lambda r: (r.scheduled_for, r.id))

    def claim(self, reminder_id: int, now: Optional[datetime] = None) -> bool:
        claimed_at = normalize_instant(now) if now is not None else utcnow()
        with self._lock:
            row = self._rows.get(reminder_id)
            if row is None or row.processed or row.scheduled_for > claimed_at:
                return False
            row.processed = True
            row.processed_at = claimed_at
            row.updated_at = claimed_at
            return True

    def list_for_assignment(self, assignment_id: str) -> List[Reminder]:
        with self._lock:
            rows = [row.copy_row() for row in self._rows.values() if row.assignment_id == assignment_id]
        return sorted(rows, key=lambda r: r.scheduled_for)

    def get(self, reminder_id: int) -> Optional[Reminder]:
        with self._lock:
            row = self._rows.get(reminder_id)
            return row.copy_row() if row is not None else None
