"""
Post Store: persistence of post documents with optimistic concurrency.

Every stored post carries a ``revision``. A save only succeeds when the
revision it was loaded at is still current (compare-and-swap); otherwise a
``ConcurrencyError`` tells the caller to reload and re-apply its change.
Two voters writing the same poll concurrently therefore never overwrite
each other's votes.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import PostRecord
from ..schemas import TERMINAL_STATUSES, AssignmentTarget, Poll, Post
from .errors import ConcurrencyError, PostNotFoundError


logger = logging.getLogger(__name__)


class PostStore(ABC):
    """Load/save collaborator of the workflow core."""

    @abstractmethod
    def load(self, post_id: str) -> Post:
        """Return the current post or raise ``PostNotFoundError``."""

    @abstractmethod
    def save(self, post: Post) -> Post:
        """Persist ``post`` if its revision is current; return the stored copy."""

    @abstractmethod
    def list_active(self) -> list[Post]:
        """Posts whose status is not terminal, oldest first."""

    @abstractmethod
    def count_by_author_since(self, author_id: str, since: datetime) -> int:
        """Number of posts ``author_id`` created at or after ``since``."""


class SqlPostStore(PostStore):
    """Posts in the ``posts`` table, written in the caller's transaction."""

    def __init__(self, session: Session):
        self._session = session

    def load(self, post_id: str) -> Post:
        row = self._session.execute(
            select(PostRecord)
            .where(PostRecord.id == post_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if row is None:
            raise PostNotFoundError(f"Post {post_id} not found")

        return self._to_post(row)

    def save(self, post: Post) -> Post:
        if post.revision == 0:
            return self._insert(post)
        return self._compare_and_swap(post)

    def list_active(self) -> list[Post]:
        rows = self._session.execute(
            select(PostRecord)
            .where(PostRecord.status.notin_(list(TERMINAL_STATUSES)))
            .order_by(PostRecord.created_at.asc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [self._to_post(row) for row in rows]

    def count_by_author_since(self, author_id: str, since: datetime) -> int:
        return self._session.execute(
            select(func.count())
            .select_from(PostRecord)
            .where(PostRecord.author_id == author_id, PostRecord.created_at >= since)
        ).scalar_one()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _insert(self, post: Post) -> Post:
        self._session.add(PostRecord(id=post.id, revision=1, **self._to_values(post)))
        try:
            self._session.flush()
        except IntegrityError as e:
            raise ConcurrencyError(f"Post {post.id} already exists: {e}") from e

        logger.debug(f"Inserted post {post.id}")
        return post.model_copy(update={"revision": 1})

    def _compare_and_swap(self, post: Post) -> Post:
        new_revision = post.revision + 1
        result = self._session.execute(
            update(PostRecord)
            .where(PostRecord.id == post.id, PostRecord.revision == post.revision)
            .values(revision=new_revision, **self._to_values(post))
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            exists = self._session.execute(
                select(PostRecord.revision).where(PostRecord.id == post.id)
            ).scalar_one_or_none()
            if exists is None:
                raise PostNotFoundError(f"Post {post.id} not found")
            raise ConcurrencyError(
                f"Revision mismatch for post {post.id}: expected r{post.revision}, "
                f"but current is r{exists}. The post was modified concurrently."
            )

        logger.debug(f"Saved post {post.id} at r{new_revision}")
        return post.model_copy(update={"revision": new_revision})

    @staticmethod
    def _to_values(post: Post) -> dict[str, Any]:
        return {
            "type": post.type,
            "title": post.title,
            "author_id": post.author_id,
            "is_anonymous": post.is_anonymous,
            "status": post.status,
            "priority": post.priority,
            "assigned_to": post.assigned_to.model_dump(mode="json") if post.assigned_to else None,
            "due_date": post.due_date,
            "status_changed_at": post.status_changed_at,
            "last_escalation_notified_at": post.last_escalation_notified_at,
            "poll": post.poll.model_dump(mode="json") if post.poll else None,
            "created_at": post.created_at,
            "updated_at": post.updated_at,
        }

    @staticmethod
    def _to_post(row: PostRecord) -> Post:
        return Post(
            id=row.id,
            type=row.type,
            title=row.title,
            author_id=row.author_id,
            is_anonymous=row.is_anonymous,
            status=row.status,
            priority=row.priority,
            assigned_to=AssignmentTarget.model_validate(row.assigned_to) if row.assigned_to else None,
            due_date=row.due_date,
            status_changed_at=row.status_changed_at,
            last_escalation_notified_at=row.last_escalation_notified_at,
            poll=Poll.model_validate(row.poll) if row.poll else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
            revision=row.revision,
        )
