"""Pydantic schemas and enumerations for the post workflow."""

from .base import (
    ADMIN_ROLES,
    DEFAULT_PRIORITY,
    PRIORITY_RULES,
    TERMINAL_STATUSES,
    ActivityType,
    Actor,
    AssignmentKind,
    NotificationCadence,
    PostPriority,
    PostStatus,
    PostType,
    PriorityRule,
    UserRole,
    WorkflowBaseModel,
)
from .polls import Poll, PollOption, PollOptionStats, PollStats, PollValidation
from .posts import ActivityRecord, AssignmentTarget, Post, new_id

__all__ = [
    # Enums & tables
    "PostType",
    "PostStatus",
    "PostPriority",
    "PriorityRule",
    "NotificationCadence",
    "AssignmentKind",
    "ActivityType",
    "UserRole",
    "TERMINAL_STATUSES",
    "PRIORITY_RULES",
    "DEFAULT_PRIORITY",
    "ADMIN_ROLES",
    # Base
    "WorkflowBaseModel",
    "Actor",
    # Posts
    "Post",
    "AssignmentTarget",
    "ActivityRecord",
    "new_id",
    # Polls
    "Poll",
    "PollOption",
    "PollValidation",
    "PollStats",
    "PollOptionStats",
]
