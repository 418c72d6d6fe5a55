"""Business logic services for the post workflow."""

from .activity import ActivityRecorder, InMemoryActivityRecorder, SqlActivityRecorder
from .assignment import AssignmentManager
from .errors import (
    ActivityOrderError,
    AlreadyAssignedError,
    AssignmentError,
    ConcurrencyError,
    EmptyCommentError,
    EmptyTitleError,
    InvalidDueDateError,
    InvalidOptionError,
    InvalidPollError,
    InvalidTargetError,
    InvalidTransitionError,
    NoPollError,
    NothingAssignedError,
    PermissionDeniedError,
    PollEndedError,
    PostIsTerminalError,
    PostNotFoundError,
    PostNotTerminalError,
    RateLimitExceededError,
    VoteError,
    WorkflowError,
    WorkflowTransitionError,
)
from .escalation import EscalationConfig, EscalationPolicy
from .notifications import (
    CollectingNotifier,
    LoggingNotifier,
    NotificationIntent,
    NotificationKind,
    Notifier,
)
from .poll_engine import PollEngine
from .posts import PostService
from .store import PostStore, SqlPostStore
from .workflow_engine import PostWorkflowEngine

__all__ = [
    # Engines
    "PostWorkflowEngine",
    "AssignmentManager",
    "EscalationPolicy",
    "EscalationConfig",
    "PollEngine",
    # Collaborators
    "ActivityRecorder",
    "InMemoryActivityRecorder",
    "SqlActivityRecorder",
    "PostStore",
    "SqlPostStore",
    "Notifier",
    "LoggingNotifier",
    "CollectingNotifier",
    "NotificationIntent",
    "NotificationKind",
    # Calling layer
    "PostService",
    # Errors
    "WorkflowError",
    "WorkflowTransitionError",
    "InvalidTransitionError",
    "PostIsTerminalError",
    "PostNotTerminalError",
    "InvalidDueDateError",
    "EmptyCommentError",
    "EmptyTitleError",
    "InvalidPollError",
    "AssignmentError",
    "InvalidTargetError",
    "NothingAssignedError",
    "AlreadyAssignedError",
    "VoteError",
    "PollEndedError",
    "InvalidOptionError",
    "NoPollError",
    "PermissionDeniedError",
    "PostNotFoundError",
    "ConcurrencyError",
    "ActivityOrderError",
    "RateLimitExceededError",
]
