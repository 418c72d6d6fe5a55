"""Post service: runs workflow operations as store transactions.

Each operation is one unit of work:
1. Load the post
2. Apply the core operation (workflow, assignment or vote)
3. Save with compare-and-swap; activity rows share the transaction
4. Commit, then hand notification intents to the notifier

When the save loses a race the whole unit is rolled back, the post is
reloaded and the operation re-applied against the fresh state. Re-applying
after a reload is what makes vote toggles safe to retry.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, get_settings
from ..core.database import get_session_context, get_session_factory
from ..schemas import (
    DEFAULT_PRIORITY,
    ActivityRecord,
    Actor,
    AssignmentTarget,
    Poll,
    PollStats,
    Post,
    PostPriority,
    PostStatus,
    PostType,
)
from .activity import ActivityRecorder, SqlActivityRecorder
from .assignment import AssignmentManager
from .errors import (
    ActivityOrderError,
    ConcurrencyError,
    NoPollError,
    PermissionDeniedError,
    RateLimitExceededError,
)
from .notifications import LoggingNotifier, Notifier, intents_for
from .poll_engine import PollEngine
from .store import SqlPostStore
from .workflow_engine import PostWorkflowEngine


logger = logging.getLogger(__name__)


class _CapturingRecorder(ActivityRecorder):
    """Delegates to the real recorder and remembers what one unit appended."""

    def __init__(self, inner: ActivityRecorder):
        self._inner = inner
        self.appended: list[ActivityRecord] = []

    def append(self, record: ActivityRecord) -> None:
        self._inner.append(record)
        self.appended.append(record)

    def list_for(self, post_id: str, limit: int | None = None) -> list[ActivityRecord]:
        return self._inner.list_for(post_id, limit)


@dataclass
class _UnitOfWork:
    session: Session
    store: SqlPostStore
    recorder: _CapturingRecorder
    workflow: PostWorkflowEngine
    assignments: AssignmentManager


@dataclass
class _Outcome:
    post: Post
    value: Any = None


class PostService:
    """Entry point of the calling layer for post workflow operations."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._settings = settings or get_settings()
        self._polls = PollEngine(self._clock)

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def create_post(
        self,
        actor: Actor,
        post_type: PostType,
        title: str,
        priority: PostPriority = DEFAULT_PRIORITY,
        poll: Poll | None = None,
        is_anonymous: bool = False,
    ) -> Post:
        """Any user may submit a post, up to ``post_rate_limit`` per rate window."""
        with get_session_context(self._session_factory) as session:
            unit = self._unit(session)
            self._check_rate_limit(unit.store, actor)
            post = unit.workflow.create_post(
                post_type=post_type,
                title=title,
                actor=actor,
                priority=priority,
                poll=poll,
                is_anonymous=is_anonymous,
            )
            return unit.store.save(post)

    def get_post(self, post_id: str) -> Post:
        with get_session_context(self._session_factory) as session:
            return SqlPostStore(session).load(post_id)

    def get_timeline(self, post_id: str, limit: int | None = None) -> list[ActivityRecord]:
        """Timeline of a post, oldest first; ``limit`` keeps only the latest entries."""
        with get_session_context(self._session_factory) as session:
            return SqlActivityRecorder(session).list_for(post_id, limit)

    def poll_stats(self, post_id: str) -> PollStats:
        post = self.get_post(post_id)
        if post.poll is None:
            raise NoPollError(f"Post {post_id} has no poll")
        return self._polls.stats(post.poll)

    # =========================================================================
    # WORKFLOW (admins only, reopen also for the author)
    # =========================================================================

    def change_status(
        self,
        post_id: str,
        new_status: PostStatus,
        actor: Actor,
        comment: str | None = None,
    ) -> Post:
        self._require_admin(actor, "update post status")
        return self._mutate(
            post_id,
            lambda unit, post: _Outcome(
                unit.workflow.change_status(post, new_status, actor, comment)
            ),
        ).post

    def reopen(self, post_id: str, actor: Actor, reason: str) -> Post:
        def apply(unit: _UnitOfWork, post: Post) -> _Outcome:
            if not actor.is_admin and actor.id != post.author_id:
                raise PermissionDeniedError("Only admins or the author can reopen a post")
            return _Outcome(unit.workflow.reopen(post, actor, reason))

        return self._mutate(post_id, apply).post

    def change_priority(self, post_id: str, new_priority: PostPriority, actor: Actor) -> Post:
        self._require_admin(actor, "update post priority")
        return self._mutate(
            post_id,
            lambda unit, post: _Outcome(unit.workflow.change_priority(post, new_priority, actor)),
        ).post

    def set_due_date(self, post_id: str, due_date: datetime, actor: Actor) -> Post:
        self._require_admin(actor, "set due dates")
        return self._mutate(
            post_id,
            lambda unit, post: _Outcome(unit.workflow.set_due_date(post, due_date, actor)),
        ).post

    def add_admin_comment(self, post_id: str, actor: Actor, text: str) -> ActivityRecord:
        self._require_admin(actor, "add admin comments")

        def apply(unit: _UnitOfWork, post: Post) -> _Outcome:
            record = unit.workflow.add_admin_comment(post, actor, text)
            return _Outcome(post.model_copy(update={"updated_at": record.created_at}), record)

        return self._mutate(post_id, apply).value

    # =========================================================================
    # ASSIGNMENT (admins only)
    # =========================================================================

    def assign(
        self,
        post_id: str,
        target: AssignmentTarget | Mapping[str, Any],
        actor: Actor,
    ) -> Post:
        self._require_admin(actor, "assign posts")
        return self._mutate(
            post_id,
            lambda unit, post: _Outcome(unit.assignments.assign(post, target, actor)),
        ).post

    def unassign(self, post_id: str, actor: Actor) -> Post:
        self._require_admin(actor, "unassign posts")
        return self._mutate(
            post_id,
            lambda unit, post: _Outcome(unit.assignments.unassign(post, actor)),
        ).post

    # =========================================================================
    # VOTING (any user)
    # =========================================================================

    def cast_vote(self, post_id: str, option_index: int, voter: Actor) -> Post:
        """Toggle ``voter``'s vote; retried against fresh state on conflicts."""

        def apply(unit: _UnitOfWork, post: Post) -> _Outcome:
            if post.poll is None:
                raise NoPollError(f"Post {post_id} has no poll")
            now = self._clock.now()
            poll = self._polls.cast_vote(post.poll, option_index, voter.id, now)
            return _Outcome(post.model_copy(update={"poll": poll, "updated_at": now}))

        return self._mutate(post_id, apply).post

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _unit(self, session: Session) -> _UnitOfWork:
        recorder = _CapturingRecorder(SqlActivityRecorder(session))
        return _UnitOfWork(
            session=session,
            store=SqlPostStore(session),
            recorder=recorder,
            workflow=PostWorkflowEngine(recorder, self._clock, self._polls),
            assignments=AssignmentManager(recorder, self._clock),
        )

    def _mutate(
        self,
        post_id: str,
        apply: Callable[[_UnitOfWork, Post], _Outcome],
    ) -> _Outcome:
        attempts = self._settings.max_write_retries
        attempt = 0

        while True:
            attempt += 1
            try:
                with get_session_context(self._session_factory) as session:
                    unit = self._unit(session)
                    post = unit.store.load(post_id)
                    outcome = apply(unit, post)
                    outcome.post = unit.store.save(outcome.post)
            except (ConcurrencyError, ActivityOrderError):
                # Another writer committed first; its revision or newer activity wins
                if attempt >= attempts:
                    raise
                logger.warning(
                    f"Write conflict on post {post_id} (attempt {attempt}/{attempts}), retrying"
                )
                continue

            self._notify(outcome.post, unit.recorder.appended)
            return outcome

    def _check_rate_limit(self, store: SqlPostStore, actor: Actor) -> None:
        window = timedelta(minutes=self._settings.post_rate_window_minutes)
        recent = store.count_by_author_since(actor.id, self._clock.now() - window)
        if recent >= self._settings.post_rate_limit:
            logger.warning(f"Rate limit hit for {actor.id}: {recent} posts in {window}")
            raise RateLimitExceededError(
                f"Too many posts: at most {self._settings.post_rate_limit} "
                f"per {self._settings.post_rate_window_minutes} minutes"
            )

    def _notify(self, post: Post, records: list[ActivityRecord]) -> None:
        for intent in intents_for(post, records):
            self._notifier.notify(intent)

    @staticmethod
    def _require_admin(actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(f"Only admins can {action}")
