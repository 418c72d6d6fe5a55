"""
Escalation Policy: overdue detection and notification timing.

Pure functions over a post and an instant. Acting on the answers (raising
priority, sending reminders) belongs to the scheduler that calls this policy.

Each priority carries an escalation window and a notification cadence:

    critical   2h    immediate
    high      24h    daily
    medium    72h    weekly
    low       none   never

The window is measured from the last status change, or from creation when
the status never changed.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ..core.clock import ensure_utc
from ..core.config import Settings
from ..schemas import NotificationCadence, Post, PostPriority


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class EscalationConfig:
    """Calendar used to place daily and weekly notifications."""

    # IANA zone whose midnight starts a notification day
    timezone: str = "UTC"

    # Weekday starting a notification week (0 = Monday)
    week_start_day: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EscalationConfig":
        return cls(
            timezone=settings.notification_timezone,
            week_start_day=settings.week_start_day,
        )


DEFAULT_CONFIG = EscalationConfig()

# Ascending by level
_PRIORITY_LADDER = sorted(PostPriority, key=lambda p: p.level)


# =============================================================================
# ESCALATION POLICY
# =============================================================================


class EscalationPolicy:
    """Answers "is this post overdue?" and "when is the next reminder due?"."""

    def __init__(self, config: EscalationConfig = DEFAULT_CONFIG):
        self._config = config
        self._zone = ZoneInfo(config.timezone)

    def escalation_deadline(self, post: Post) -> datetime | None:
        """Instant after which the post counts as overdue, if it ever does."""
        window = post.priority.escalation_window
        if window is None:
            return None
        return post.clock_started_at + window

    def is_overdue(self, post: Post, now: datetime) -> bool:
        if post.is_terminal:
            return False

        window = post.priority.escalation_window
        if window is None:
            return False

        return ensure_utc(now) - post.clock_started_at > window

    def next_notification_due(self, post: Post, now: datetime) -> datetime | None:
        """When admins should next hear about this post, per its cadence."""
        now = ensure_utc(now)
        cadence = post.priority.cadence

        if cadence == NotificationCadence.IMMEDIATE:
            return now
        if cadence == NotificationCadence.DAILY:
            return self._next_midnight(now)
        if cadence == NotificationCadence.WEEKLY:
            return self._next_week_start(now)
        return None

    def next_reminder_due(self, post: Post) -> datetime | None:
        """
        When the next escalation reminder for ``post`` should go out.

        The first reminder follows the cadence from the escalation deadline;
        later ones follow it from ``last_escalation_notified_at``. Immediate
        cadence reminds once per window. None means no reminder is owed.
        """
        deadline = self.escalation_deadline(post)
        if deadline is None or post.is_terminal:
            return None

        last = post.last_escalation_notified_at
        if post.priority.cadence == NotificationCadence.IMMEDIATE:
            return deadline if last is None else None

        return self.next_notification_due(post, last or deadline)

    @staticmethod
    def next_priority(priority: PostPriority) -> PostPriority | None:
        """One step up the ladder, or None at the top."""
        index = _PRIORITY_LADDER.index(PostPriority(priority))
        if index + 1 >= len(_PRIORITY_LADDER):
            return None
        return _PRIORITY_LADDER[index + 1]

    # =========================================================================
    # CALENDAR HELPERS
    # =========================================================================

    def _local_midnight(self, day: date) -> datetime:
        return ensure_utc(datetime.combine(day, time.min, tzinfo=self._zone))

    def _next_midnight(self, now: datetime) -> datetime:
        local_today = now.astimezone(self._zone).date()
        return self._local_midnight(local_today + timedelta(days=1))

    def _next_week_start(self, now: datetime) -> datetime:
        local_today = now.astimezone(self._zone).date()
        days_ahead = (self._config.week_start_day - local_today.weekday()) % 7
        if days_ahead == 0:
            days_ahead = 7
        return self._local_midnight(local_today + timedelta(days=days_ahead))
