"""Assignment of posts to a single responder (a user or a department)."""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from ..core.clock import Clock, SystemClock
from ..schemas import (
    ActivityRecord,
    ActivityType,
    Actor,
    AssignmentKind,
    AssignmentTarget,
    Post,
)
from .activity import ActivityRecorder
from .errors import AlreadyAssignedError, InvalidTargetError, NothingAssignedError


logger = logging.getLogger(__name__)


class AssignmentManager:
    """
    Keeps at most one assignee per post.

    Re-assigning replaces the previous target and is recorded as two entries,
    UNASSIGNED for the old target followed by ASSIGNED for the new one.
    """

    def __init__(self, recorder: ActivityRecorder, clock: Clock | None = None):
        self._recorder = recorder
        self._clock = clock or SystemClock()

    def assign(
        self,
        post: Post,
        target: AssignmentTarget | Mapping[str, Any],
        actor: Actor,
    ) -> Post:
        """
        Assign ``post`` to ``target``, replacing any previous assignee.

        Raises:
            InvalidTargetError: unknown kind, blank id, or a user target on an
                anonymous post (those may only go to departments)
            AlreadyAssignedError: the post is already assigned to this target
        """
        target = self._coerce_target(target)

        if post.is_anonymous and target.kind == AssignmentKind.USER:
            raise InvalidTargetError("Anonymous posts can only be assigned to departments")

        previous = post.assigned_to
        if previous is not None and previous.same_target(target):
            raise AlreadyAssignedError(
                f"Post {post.id} is already assigned to {target.kind.value} {target.id}"
            )

        now = self._clock.now()
        assignee = target.model_copy(update={"assigned_at": now, "assigned_by_id": actor.id})
        updated = post.model_copy(
            update={"assigned_to": assignee, "updated_at": now},
            deep=True,
        )

        if previous is not None:
            self._record(
                updated,
                ActivityType.UNASSIGNED,
                actor,
                {"previous": previous.describe(), "replaced_by": assignee.describe()},
            )

        self._record(
            updated,
            ActivityType.ASSIGNED,
            actor,
            {"assignee": assignee.describe()},
        )
        logger.info(
            f"Post {post.id} assigned to {assignee.kind.value} {assignee.id} by {actor.id}"
        )
        return updated

    def unassign(self, post: Post, actor: Actor) -> Post:
        """Remove the current assignee."""
        previous = post.assigned_to
        if previous is None:
            raise NothingAssignedError(f"Post {post.id} is not assigned")

        now = self._clock.now()
        updated = post.model_copy(
            update={"assigned_to": None, "updated_at": now},
            deep=True,
        )
        self._record(
            updated,
            ActivityType.UNASSIGNED,
            actor,
            {"previous": previous.describe()},
        )
        return updated

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    @staticmethod
    def _coerce_target(target: AssignmentTarget | Mapping[str, Any]) -> AssignmentTarget:
        if not isinstance(target, AssignmentTarget):
            try:
                target = AssignmentTarget.model_validate(dict(target))
            except (ValidationError, TypeError, ValueError) as e:
                raise InvalidTargetError(f"Invalid assignment target: {e}") from e

        if not target.id or not target.id.strip():
            raise InvalidTargetError("Assignment target id is required")

        return target

    def _record(
        self,
        post: Post,
        activity_type: ActivityType,
        actor: Actor,
        metadata: dict[str, Any],
    ) -> ActivityRecord:
        record = ActivityRecord(
            post_id=post.id,
            type=activity_type,
            actor_id=actor.id,
            actor_name=actor.name,
            metadata=metadata,
            created_at=post.updated_at,
        )
        self._recorder.append(record)
        return record
