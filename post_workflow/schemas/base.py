"""Base schemas, enumerations and their lookup tables."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, field_validator

from ..core.clock import ensure_utc


# =============================================================================
# ENUMS
# =============================================================================


class PostType(str, Enum):
    """Kind of content a post carries."""

    PROBLEM_REPORT = "problem_report"
    CREATIVE_CONTENT = "creative_content"
    TEAM_DISCUSSION = "team_discussion"
    IDEA_SUGGESTION = "idea_suggestion"


class PostStatus(str, Enum):
    """Status of a post in its workflow."""

    OPEN = "open"  # Just created
    ACKNOWLEDGED = "acknowledged"  # Admin has seen it
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"  # Investigating
    WORKING_ON = "working_on"  # Forwarded, awaiting response
    RESOLVED = "resolved"
    CLOSED = "closed"  # No action needed
    REJECTED = "rejected"  # Not valid or duplicate
    NOT_A_PROBLEM = "not_a_problem"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        PostStatus.RESOLVED,
        PostStatus.CLOSED,
        PostStatus.REJECTED,
        PostStatus.NOT_A_PROBLEM,
    }
)


class NotificationCadence(str, Enum):
    """How often admins are reminded about an unresolved post."""

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"
    NEVER = "never"


@dataclass(frozen=True)
class PriorityRule:
    """Escalation metadata attached to a priority."""

    level: int
    escalation_window: timedelta | None
    cadence: NotificationCadence


class PostPriority(str, Enum):
    """Priority of a post; each carries an escalation rule."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rule(self) -> PriorityRule:
        return PRIORITY_RULES[self]

    @property
    def level(self) -> int:
        return PRIORITY_RULES[self].level

    @property
    def escalation_window(self) -> timedelta | None:
        return PRIORITY_RULES[self].escalation_window

    @property
    def cadence(self) -> NotificationCadence:
        return PRIORITY_RULES[self].cadence


PRIORITY_RULES: "MappingProxyType[PostPriority, PriorityRule]" = MappingProxyType(
    {
        PostPriority.CRITICAL: PriorityRule(
            level=4,
            escalation_window=timedelta(hours=2),
            cadence=NotificationCadence.IMMEDIATE,
        ),
        PostPriority.HIGH: PriorityRule(
            level=3,
            escalation_window=timedelta(hours=24),
            cadence=NotificationCadence.DAILY,
        ),
        PostPriority.MEDIUM: PriorityRule(
            level=2,
            escalation_window=timedelta(hours=72),
            cadence=NotificationCadence.WEEKLY,
        ),
        PostPriority.LOW: PriorityRule(
            level=1,
            escalation_window=None,
            cadence=NotificationCadence.NEVER,
        ),
    }
)

DEFAULT_PRIORITY = PostPriority.MEDIUM


class AssignmentKind(str, Enum):
    """Who a post can be assigned to."""

    USER = "user"
    DEPARTMENT = "department"


class ActivityType(str, Enum):
    """Entries of a post's activity timeline."""

    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    DUE_DATE_SET = "due_date_set"
    DUE_DATE_CHANGED = "due_date_changed"
    ADMIN_COMMENT = "admin_comment"
    RESOLVED = "resolved"
    REOPENED = "reopened"


class UserRole(str, Enum):
    """Platform roles."""

    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    HR = "hr"
    EMPLOYEE = "employee"

    @property
    def is_admin(self) -> bool:
        return self in ADMIN_ROLES


ADMIN_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.COMPANY_ADMIN, UserRole.HR})


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class WorkflowBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        validate_assignment=True,
    )


def utc_or_none(value: datetime | None) -> datetime | None:
    """Validator helper: normalize optional timestamps to aware UTC."""
    if value is None:
        return None
    return ensure_utc(value)


class Actor(WorkflowBaseModel):
    """Identity performing an operation."""

    id: str
    name: str = ""
    role: UserRole = UserRole.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("actor id must not be blank")
        return v

