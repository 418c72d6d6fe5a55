"""
Notifications: who should hear about a workflow change.

Delivery (email, push, in-app) is handled elsewhere; this module derives
notification intents from activity records and hands them to a ``Notifier``.

Rules:
- Status changes and admin comments notify the post author.
- Priority changes notify the author only when raised to high or critical.
- Assigning a post to a user notifies that user.
- Anonymous posts never notify their author directly.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..schemas import ActivityRecord, ActivityType, AssignmentKind, Post, PostPriority


logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    ADMIN_COMMENT = "admin_comment"
    ASSIGNED = "assigned"
    ESCALATION = "escalation"


@dataclass
class NotificationIntent:
    """A message that should reach one recipient."""
    recipient_id: str
    kind: NotificationKind
    post_id: str
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


_AUTHOR_ALERT_PRIORITIES = {PostPriority.CRITICAL.value, PostPriority.HIGH.value}

# Recipient of admin-facing notifications (escalations)
ADMINS_RECIPIENT = "admins"


def intents_for(post: Post, records: list[ActivityRecord]) -> list[NotificationIntent]:
    """Translate the records produced by one operation into intents."""
    intents: list[NotificationIntent] = []

    for record in records:
        if record.type == ActivityType.ASSIGNED:
            assignee = record.metadata.get("assignee", {})
            if assignee.get("kind") == AssignmentKind.USER.value:
                intents.append(NotificationIntent(
                    recipient_id=assignee["id"],
                    kind=NotificationKind.ASSIGNED,
                    post_id=post.id,
                    title="New assignment",
                    message=f"You've been assigned to: {post.title}",
                ))
            continue

        if post.is_anonymous or not post.author_id:
            # Anonymous authors follow their posts from their own dashboard
            continue

        if record.type == ActivityType.STATUS_CHANGED:
            new_status = record.metadata.get("new_status")
            intents.append(NotificationIntent(
                recipient_id=post.author_id,
                kind=NotificationKind.STATUS_CHANGED,
                post_id=post.id,
                title="Post status updated",
                message=f"Your post status changed to: {new_status}",
                data={"status": new_status, "comment": record.metadata.get("comment")},
            ))
        elif record.type == ActivityType.REOPENED:
            intents.append(NotificationIntent(
                recipient_id=post.author_id,
                kind=NotificationKind.STATUS_CHANGED,
                post_id=post.id,
                title="Post reopened",
                message="Your post was reopened",
                data={"reason": record.metadata.get("reason")},
            ))
        elif record.type == ActivityType.PRIORITY_CHANGED:
            new_priority = record.metadata.get("new_priority")
            if new_priority in _AUTHOR_ALERT_PRIORITIES:
                intents.append(NotificationIntent(
                    recipient_id=post.author_id,
                    kind=NotificationKind.PRIORITY_CHANGED,
                    post_id=post.id,
                    title="Post priority updated",
                    message=f"Your post priority changed to: {new_priority}",
                    data={"priority": new_priority},
                ))
        elif record.type == ActivityType.ADMIN_COMMENT:
            comment = record.metadata.get("comment", "")
            intents.append(NotificationIntent(
                recipient_id=post.author_id,
                kind=NotificationKind.ADMIN_COMMENT,
                post_id=post.id,
                title="Admin commented on your post",
                message=f"{record.actor_name or record.actor_id}: {comment}",
            ))

    return intents


def escalation_intent(post: Post, overdue_for_hours: float) -> NotificationIntent:
    """Reminder for admins that a post outlived its escalation window."""
    return NotificationIntent(
        recipient_id=ADMINS_RECIPIENT,
        kind=NotificationKind.ESCALATION,
        post_id=post.id,
        title=f"Overdue {post.priority.value} post",
        message=(
            f"'{post.title}' has been {post.status.value} for "
            f"{overdue_for_hours:.1f}h past its escalation window"
        ),
        data={
            "priority": post.priority.value,
            "status": post.status.value,
            "assigned_to": post.assigned_to.describe() if post.assigned_to else None,
        },
    )


# =============================================================================
# NOTIFIERS
# =============================================================================


class Notifier(ABC):
    """Delivery collaborator."""

    @abstractmethod
    def notify(self, intent: NotificationIntent) -> None:
        """Hand one intent over for delivery."""


class LoggingNotifier(Notifier):
    """Default notifier: writes intents to the log."""

    def notify(self, intent: NotificationIntent) -> None:
        logger.info(
            f"[{intent.kind.value}] to={intent.recipient_id} post={intent.post_id}: "
            f"{intent.message}"
        )


class CollectingNotifier(Notifier):
    """Keeps intents in memory. Used by tests and dry runs."""

    def __init__(self) -> None:
        self.sent: list[NotificationIntent] = []

    def notify(self, intent: NotificationIntent) -> None:
        self.sent.append(intent)
