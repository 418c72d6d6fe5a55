"""
Post Workflow Engine: status/priority state machine of a post.

State machine:
- Any active status may move to any other status directly (admins may skip
  states), including straight to a terminal one.
- Terminal statuses (resolved, closed, rejected, not_a_problem) are locked;
  the only way out is ``reopen``, which returns the post to ``open``.

Every successful call appends its activity records before returning. The post
passed in is never modified; an updated copy is returned for the caller to
persist.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.clock import Clock, SystemClock, ensure_utc
from ..schemas import (
    DEFAULT_PRIORITY,
    ActivityRecord,
    ActivityType,
    Actor,
    Poll,
    Post,
    PostPriority,
    PostStatus,
    PostType,
)
from .activity import ActivityRecorder
from .errors import (
    EmptyCommentError,
    EmptyTitleError,
    InvalidDueDateError,
    InvalidPollError,
    InvalidTransitionError,
    PostIsTerminalError,
    PostNotTerminalError,
)
from .poll_engine import PollEngine


logger = logging.getLogger(__name__)


def _coerce(enum_cls: type[Enum], value: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidTransitionError(f"Unknown {enum_cls.__name__} value: {value!r}") from e


class PostWorkflowEngine:
    """Validates and applies status, priority and due-date changes."""

    def __init__(
        self,
        recorder: ActivityRecorder,
        clock: Clock | None = None,
        poll_engine: PollEngine | None = None,
    ):
        self._recorder = recorder
        self._clock = clock or SystemClock()
        self._polls = poll_engine or PollEngine(self._clock)

    # =========================================================================
    # CREATE
    # =========================================================================

    def create_post(
        self,
        post_type: PostType,
        title: str,
        actor: Actor,
        priority: PostPriority = DEFAULT_PRIORITY,
        poll: Poll | None = None,
        is_anonymous: bool = False,
        post_id: str | None = None,
    ) -> Post:
        """Open a new post authored by ``actor`` and record CREATED."""
        if not title or not title.strip():
            raise EmptyTitleError("Post title is required")

        now = self._clock.now()

        if poll is not None:
            validation = self._polls.validate(poll, now)
            if not validation.is_valid:
                raise InvalidPollError(validation.errors)

        fields: dict[str, Any] = {}
        if post_id is not None:
            fields["id"] = post_id

        post = Post(
            type=post_type,
            title=title.strip(),
            author_id=actor.id,
            is_anonymous=is_anonymous,
            status=PostStatus.OPEN,
            priority=priority,
            created_at=now,
            updated_at=now,
            poll=poll,
            **fields,
        )

        self._record(
            post,
            ActivityType.CREATED,
            actor,
            now,
            {
                "type": post.type.value,
                "priority": post.priority.value,
                "has_poll": poll is not None,
            },
        )
        logger.info(f"Post {post.id} created ({post.type.value}, {post.priority.value})")
        return post

    # =========================================================================
    # STATUS
    # =========================================================================

    def change_status(
        self,
        post: Post,
        new_status: PostStatus,
        actor: Actor,
        comment: str | None = None,
    ) -> Post:
        """
        Move a post to ``new_status``.

        Raises:
            PostIsTerminalError: the post is terminal (use ``reopen``)
            InvalidTransitionError: ``new_status`` is the current status
        """
        new_status = _coerce(PostStatus, new_status)

        if post.is_terminal:
            raise PostIsTerminalError(
                f"Post {post.id} is {post.status.value}; reopen it before changing status"
            )

        if new_status == post.status:
            raise InvalidTransitionError(f"Post {post.id} is already {new_status.value}")

        now = self._clock.now()
        old_status = post.status
        updated = post.model_copy(
            update={
                "status": new_status,
                "status_changed_at": now,
                "updated_at": now,
                "last_escalation_notified_at": None,
            },
            deep=True,
        )

        self._record(
            updated,
            ActivityType.STATUS_CHANGED,
            actor,
            now,
            {
                "old_status": old_status.value,
                "new_status": new_status.value,
                "comment": comment,
            },
        )

        if new_status == PostStatus.RESOLVED:
            self._record(
                updated,
                ActivityType.RESOLVED,
                actor,
                now,
                {"old_status": old_status.value, "comment": comment},
            )

        logger.info(f"Post {post.id} status {old_status.value} -> {new_status.value} by {actor.id}")
        return updated

    def reopen(self, post: Post, actor: Actor, reason: str) -> Post:
        """
        The single exit from a terminal status: back to ``open``.

        Raises:
            PostNotTerminalError: the post is still active
        """
        if not post.is_terminal:
            raise PostNotTerminalError(
                f"Post {post.id} is {post.status.value}; only terminal posts can be reopened"
            )

        now = self._clock.now()
        old_status = post.status
        updated = post.model_copy(
            update={
                "status": PostStatus.OPEN,
                "status_changed_at": now,
                "updated_at": now,
                "last_escalation_notified_at": None,
            },
            deep=True,
        )

        self._record(
            updated,
            ActivityType.REOPENED,
            actor,
            now,
            {"reason": reason, "old_status": old_status.value},
        )
        logger.info(f"Post {post.id} reopened from {old_status.value} by {actor.id}")
        return updated

    # =========================================================================
    # PRIORITY
    # =========================================================================

    def change_priority(self, post: Post, new_priority: PostPriority, actor: Actor) -> Post:
        """Set a new priority. Escalation and de-escalation are both allowed."""
        new_priority = _coerce(PostPriority, new_priority)

        if new_priority == post.priority:
            raise InvalidTransitionError(
                f"Post {post.id} already has priority {new_priority.value}"
            )

        now = self._clock.now()
        old_priority = post.priority
        updated = post.model_copy(
            update={
                "priority": new_priority,
                "updated_at": now,
                # Reminders follow the new cadence from scratch
                "last_escalation_notified_at": None,
            },
            deep=True,
        )

        self._record(
            updated,
            ActivityType.PRIORITY_CHANGED,
            actor,
            now,
            {"old_priority": old_priority.value, "new_priority": new_priority.value},
        )
        return updated

    # =========================================================================
    # DUE DATE
    # =========================================================================

    def set_due_date(self, post: Post, due_date: datetime, actor: Actor) -> Post:
        """Set or move the due date. Dates in the past are rejected."""
        due_date = ensure_utc(due_date)
        now = self._clock.now()

        if due_date < now:
            raise InvalidDueDateError(
                f"Due date {due_date.isoformat()} is in the past"
            )

        old_due_date = post.due_date
        activity_type = (
            ActivityType.DUE_DATE_CHANGED if old_due_date is not None
            else ActivityType.DUE_DATE_SET
        )
        updated = post.model_copy(
            update={"due_date": due_date, "updated_at": now},
            deep=True,
        )

        self._record(
            updated,
            activity_type,
            actor,
            now,
            {
                "old_due_date": old_due_date.isoformat() if old_due_date else None,
                "new_due_date": due_date.isoformat(),
            },
        )
        return updated

    # =========================================================================
    # ADMIN COMMENTS
    # =========================================================================

    def add_admin_comment(self, post: Post, actor: Actor, text: str) -> ActivityRecord:
        """Append an admin comment to the timeline; the post is left untouched."""
        if not text or not text.strip():
            raise EmptyCommentError("Comment text is required")

        return self._record(
            post,
            ActivityType.ADMIN_COMMENT,
            actor,
            self._clock.now(),
            {"comment": text.strip()},
        )

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _record(
        self,
        post: Post,
        activity_type: ActivityType,
        actor: Actor,
        at: datetime,
        metadata: dict[str, Any],
    ) -> ActivityRecord:
        record = ActivityRecord(
            post_id=post.id,
            type=activity_type,
            actor_id=actor.id,
            actor_name=actor.name,
            metadata=metadata,
            created_at=at,
        )
        self._recorder.append(record)
        return record
