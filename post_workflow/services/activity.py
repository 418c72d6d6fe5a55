"""Activity recording: the append-only timeline of a post.

Append order equals call order, and ``created_at`` never goes backwards for a
given post. There is deliberately no update or delete operation.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import PostActivityLog
from ..schemas import ActivityRecord
from .errors import ActivityOrderError


logger = logging.getLogger(__name__)


class ActivityRecorder(ABC):
    """Sink for activity records produced by workflow operations."""

    @abstractmethod
    def append(self, record: ActivityRecord) -> None:
        """Append one record to its post's timeline."""

    @abstractmethod
    def list_for(self, post_id: str, limit: int | None = None) -> list[ActivityRecord]:
        """Records of a post, oldest first; with ``limit``, only the latest ones."""


class InMemoryActivityRecorder(ActivityRecorder):
    """Process-local timeline, used by tests and dry runs."""

    def __init__(self) -> None:
        self._records: dict[str, list[ActivityRecord]] = defaultdict(list)

    def append(self, record: ActivityRecord) -> None:
        timeline = self._records[record.post_id]
        if timeline and record.created_at < timeline[-1].created_at:
            raise ActivityOrderError(
                f"Activity for post {record.post_id} at {record.created_at.isoformat()} "
                f"precedes the last recorded entry ({timeline[-1].created_at.isoformat()})"
            )
        timeline.append(record)

    def list_for(self, post_id: str, limit: int | None = None) -> list[ActivityRecord]:
        timeline = self._records.get(post_id, [])
        if limit is not None:
            timeline = timeline[-limit:] if limit > 0 else []
        return list(timeline)


class SqlActivityRecorder(ActivityRecorder):
    """Timeline stored in ``post_activities``, written in the caller's transaction."""

    def __init__(self, session: Session):
        self._session = session

    def append(self, record: ActivityRecord) -> None:
        last_created_at = self._session.execute(
            select(PostActivityLog.created_at)
            .where(PostActivityLog.post_id == record.post_id)
            .order_by(PostActivityLog.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        if last_created_at is not None and record.created_at < last_created_at:
            raise ActivityOrderError(
                f"Activity for post {record.post_id} at {record.created_at.isoformat()} "
                f"precedes the last recorded entry ({last_created_at.isoformat()})"
            )

        self._session.add(
            PostActivityLog(
                id=record.id,
                post_id=record.post_id,
                type=record.type,
                actor_id=record.actor_id,
                actor_name=record.actor_name,
                details=dict(record.metadata),
                created_at=record.created_at,
            )
        )
        # Flushed so the next append in this transaction sees it; committed with the post
        self._session.flush()
        logger.debug(f"Recorded {record.type.value} for post {record.post_id}")

    def list_for(self, post_id: str, limit: int | None = None) -> list[ActivityRecord]:
        query = select(PostActivityLog).where(PostActivityLog.post_id == post_id)
        if limit is None:
            rows = self._session.execute(
                query.order_by(PostActivityLog.seq.asc())
            ).scalars().all()
        else:
            # Latest ``limit`` rows, returned in append order
            rows = self._session.execute(
                query.order_by(PostActivityLog.seq.desc()).limit(limit)
            ).scalars().all()[::-1]

        return [
            ActivityRecord(
                id=row.id,
                post_id=row.post_id,
                type=row.type,
                actor_id=row.actor_id,
                actor_name=row.actor_name,
                metadata=row.details or {},
                created_at=row.created_at,
            )
            for row in rows
        ]
