"""
Notification Store.

Append-only audit trail of delivery attempts. Rows are written once with
their outcome; the only later change is stamping read_at.
"""

import abc
import threading
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from deadline_notifier.models.notification import NotificationRecord, NotificationStatus
from deadline_notifier.utils.clock import utcnow

RECORD_TABLE = NotificationRecord.__table__


class NotificationStore(abc.ABC):
    """Abstract notification record table."""

    @abc.abstractmethod
    def record(self, record: NotificationRecord) -> NotificationRecord:
        """Append a record and return it with its id assigned."""

    @abc.abstractmethod
    def list_for_recipient(self, recipient_id: str, limit: int = 20, offset: int = 0) -> List[NotificationRecord]:
        """Newest first."""

    @abc.abstractmethod
    def list_for_assignment(self, assignment_id: str) -> List[NotificationRecord]:
        """Oldest first."""

    @abc.abstractmethod
    def count_by_status(self, assignment_id: Optional[str] = None) -> Dict[NotificationStatus, int]:
        """Record counts per status, optionally for one assignment."""

    @abc.abstractmethod
    def mark_read(self, record_id: int, recipient_id: str) -> bool:
        """Stamp read_at on one of the recipient's records."""

    @abc.abstractmethod
    def mark_all_read(self, recipient_id: str) -> int:
        """Stamp read_at on every unread record of the recipient."""

    @abc.abstractmethod
    def unread_count(self, recipient_id: str) -> int:
        """Unread records of the recipient."""


class SqlNotificationStore(NotificationStore):
    """Notification store backed by the notification_record table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def record(self, record: NotificationRecord) -> NotificationRecord:
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def list_for_recipient(self, recipient_id: str, limit: int = 20, offset: int = 0) -> List[NotificationRecord]:
        with self._session() as session:
            statement = (
                select(NotificationRecord)
                .where(NotificationRecord.recipient_id == recipient_id)
                .order_by(NotificationRecord.created_at.desc(), NotificationRecord.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def list_for_assignment(self, assignment_id: str) -> List[NotificationRecord]:
        with self._session() as session:
            statement = (
                select(NotificationRecord)
                .where(NotificationRecord.assignment_id == assignment_id)
                .order_by(NotificationRecord.id)
            )
            return list(session.exec(statement).all())

    def count_by_status(self, assignment_id: Optional[str] = None) -> Dict[NotificationStatus, int]:
        counts = {status: 0 for status in NotificationStatus}
        with self._session() as session:
            statement = select(NotificationRecord.status, func.count(NotificationRecord.id)).group_by(
                NotificationRecord.status
            )
            if assignment_id is not None:
                statement = statement.where(NotificationRecord.assignment_id == assignment_id)
            for status, count in session.exec(statement).all():
                counts[NotificationStatus(status)] = count
        return counts

    def mark_read(self, record_id: int, recipient_id: str) -> bool:
        with self._session() as session:
            result = session.connection().execute(
                update(RECORD_TABLE)
                .where(RECORD_TABLE.c.id == record_id)
                .where(RECORD_TABLE.c.recipient_id == recipient_id)
                .where(RECORD_TABLE.c.read_at.is_(None))
                .values(read_at=utcnow())
            )
            session.commit()
            return result.rowcount == 1

    def mark_all_read(self, recipient_id: str) -> int:
        with self._session() as session:
            result = session.connection().execute(
                update(RECORD_TABLE)
                .where(RECORD_TABLE.c.recipient_id == recipient_id)
                .where(RECORD_TABLE.c.read_at.is_(None))
                .values(read_at=utcnow())
            )
            session.commit()
            return result.rowcount or 0

    def unread_count(self, recipient_id: str) -> int:
        with self._session() as session:
            statement = (
                select(func.count(NotificationRecord.id))
                .where(NotificationRecord.recipient_id == recipient_id)
                .where(NotificationRecord.read_at.is_(None))
            )
            return session.exec(statement).one()


class InMemoryNotificationStore(NotificationStore):
    """Process-local notification store, for tests and dev runs."""

    def __init__(self):
        self._records: List[NotificationRecord] = []
        self._lock = threading.Lock()

    def record(self, record: NotificationRecord) -> NotificationRecord:
        with self._lock:
            record.id = len(self._records) + 1
            self._records.append(record)
        return record

    @property
    def records(self) -> List[NotificationRecord]:
        with self._lock:
            return list(self._records)

    def list_for_recipient(self, recipient_id: str, limit: int = 20, offset: int = 0) -> List[NotificationRecord]:
        mine = [r for r in self.records if r.recipient_id == recipient_id]
        mine.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return mine[offset:offset + limit]

    def list_for_assignment(self, assignment_id: str) -> List[NotificationRecord]:
        return [r for r in self.records if r.assignment_id == assignment_id]

    def count_by_status(self, assignment_id: Optional[str] = None) -> Dict[NotificationStatus, int]:
        counts = {status: 0 for status in NotificationStatus}
        for r in self.records:
            if assignment_id is None or r.assignment_id == assignment_id:
                counts[NotificationStatus(r.status)] += 1
        return counts

    def mark_read(self, record_id: int, recipient_id: str) -> bool:
        with self._lock:
            for r in self._records:
                if r.id == record_id and r.recipient_id == recipient_id and r.read_at is None:
                    r.read_at = utcnow()
                    return True
        return False

    def mark_all_read(self, recipient_id: str) -> int:
        marked = 0
        with self._lock:
            for r in self._records:
                if r.recipient_id == recipient_id and r.read_at is None:
                    r.read_at = utcnow()
                    marked += 1
        return marked

    def unread_count(self, recipient_id: str) -> int:
        return sum(1 for r in self.records if r.recipient_id == recipient_id and r.read_at is None)
