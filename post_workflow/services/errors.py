"""Typed errors raised by the workflow core.

Every error rejects a single requested operation; none is fatal. Failures of
collaborators (store, recorder, clock) are never wrapped in these types.
"""


class WorkflowError(Exception):
    """Base exception for post workflow operations."""
    pass


# =============================================================================
# STATUS / PRIORITY WORKFLOW
# =============================================================================


class WorkflowTransitionError(WorkflowError):
    """A workflow operation is not allowed in the post's current state."""
    pass


class InvalidTransitionError(WorkflowTransitionError):
    """Target status or priority is unknown or equals the current one."""
    pass


class PostIsTerminalError(WorkflowTransitionError):
    """Post is resolved/closed/rejected/not_a_problem; only reopen may exit."""
    pass


class PostNotTerminalError(WorkflowTransitionError):
    """Reopen was requested on a post that is still active."""
    pass


class InvalidDueDateError(WorkflowTransitionError):
    """Due date lies in the past."""
    pass


class EmptyCommentError(WorkflowTransitionError):
    """Admin comment text is blank."""
    pass


class EmptyTitleError(WorkflowTransitionError):
    """Post title is blank."""
    pass


class InvalidPollError(WorkflowTransitionError):
    """Poll attached to a new post failed validation."""

    def __init__(self, errors: list[str]):
        super().__init__("Invalid poll: " + "; ".join(errors))
        self.errors = errors


# =============================================================================
# ASSIGNMENT
# =============================================================================


class AssignmentError(WorkflowError):
    """Base for assignment violations."""
    pass


class InvalidTargetError(AssignmentError):
    """Assignment target is malformed or not allowed for this post."""
    pass


class NothingAssignedError(AssignmentError):
    """Unassign was requested on a post without an assignee."""
    pass


class AlreadyAssignedError(AssignmentError):
    """The post is already assigned to exactly this target."""
    pass


# =============================================================================
# VOTING
# =============================================================================


class VoteError(WorkflowError):
    """Base for vote-casting violations."""
    pass


class PollEndedError(VoteError):
    """Poll end date has passed."""
    pass


class InvalidOptionError(VoteError):
    """Option index is out of range."""
    pass


class NoPollError(VoteError):
    """The post has no poll to vote on."""
    pass


# =============================================================================
# CALLING LAYER
# =============================================================================


class PermissionDeniedError(WorkflowError):
    """Actor's role does not allow the operation."""
    pass


class PostNotFoundError(WorkflowError):
    """Post does not exist."""
    pass


class ConcurrencyError(WorkflowError):
    """Concurrent modification detected."""
    pass


class ActivityOrderError(WorkflowError):
    """Activity record would break the per-post append order."""
    pass


class RateLimitExceededError(WorkflowError):
    """Author submitted too many posts within the rate window."""
    pass
