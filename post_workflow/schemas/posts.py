"""Pydantic schemas for posts, assignments and activity records."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import ConfigDict, Field, field_validator

from .base import (
    DEFAULT_PRIORITY,
    ActivityType,
    AssignmentKind,
    PostPriority,
    PostStatus,
    PostType,
    WorkflowBaseModel,
    utc_or_none,
)
from .polls import Poll


def new_id() -> str:
    return uuid4().hex


# =============================================================================
# ASSIGNMENT
# =============================================================================


class AssignmentTarget(WorkflowBaseModel):
    """A user or department responsible for a post."""

    kind: AssignmentKind
    id: str
    name: str = ""
    assigned_at: datetime | None = None
    assigned_by_id: str | None = None

    @field_validator("assigned_at")
    @classmethod
    def normalize_assigned_at(cls, v: datetime | None) -> datetime | None:
        return utc_or_none(v)

    def same_target(self, other: "AssignmentTarget") -> bool:
        """Targets are identified by kind and id; names are display only."""
        return self.kind == other.kind and self.id == other.id

    def describe(self) -> dict[str, str]:
        return {"kind": self.kind.value, "id": self.id, "name": self.name}


# =============================================================================
# POST
# =============================================================================


class Post(WorkflowBaseModel):
    """A user-submitted item subject to the status/priority workflow."""

    id: str = Field(default_factory=new_id)
    type: PostType
    title: str = ""
    author_id: str | None = None
    is_anonymous: bool = False

    status: PostStatus = PostStatus.OPEN
    priority: PostPriority = DEFAULT_PRIORITY
    assigned_to: AssignmentTarget | None = None
    due_date: datetime | None = None

    created_at: datetime
    updated_at: datetime
    status_changed_at: datetime | None = None

    # Last escalation reminder for the current window; cleared by workflow changes
    last_escalation_notified_at: datetime | None = None

    poll: Poll | None = None

    # 0 = never persisted; bumped by the store on every successful save
    revision: int = Field(default=0, ge=0)

    @field_validator(
        "created_at",
        "updated_at",
        "status_changed_at",
        "due_date",
        "last_escalation_notified_at",
    )
    @classmethod
    def normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return utc_or_none(v)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def clock_started_at(self) -> datetime:
        """Start of the current escalation window."""
        return self.status_changed_at or self.created_at


# =============================================================================
# ACTIVITY RECORD
# =============================================================================


class ActivityRecord(WorkflowBaseModel):
    """Immutable timeline entry describing one change to a post."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(default_factory=new_id)
    post_id: str
    type: ActivityType
    actor_id: str
    actor_name: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return utc_or_none(v)
