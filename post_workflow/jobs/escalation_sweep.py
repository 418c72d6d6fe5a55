"""
Escalation Sweep: periodic check of active posts against their windows.

This module runs as a scheduled job (via cron or similar). Raising a
priority stays an explicit admin action through ``PostService.change_priority``;
the sweep only reminds admins and records when it last did so.

Reminder timing per cadence:
- immediate: once, as soon as the post is overdue
- daily / weekly: at each local midnight / week start after the deadline

Typical cron schedule: */15 * * * * (every 15 minutes)
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Any

from ..core.clock import SystemClock, ensure_utc
from ..core.config import get_settings
from ..core.database import build_engine, build_session_factory, get_session_context
from ..services.errors import ConcurrencyError
from ..services.escalation import EscalationConfig, EscalationPolicy
from ..services.notifications import (
    LoggingNotifier,
    NotificationIntent,
    Notifier,
    escalation_intent,
)
from ..services.store import SqlPostStore


logger = logging.getLogger(__name__)


def run_escalation_sweep(
    database_url: str | None = None,
    now: datetime | None = None,
    notifier: Notifier | None = None,
    config: EscalationConfig | None = None,
) -> dict[str, Any]:
    """
    Main entry point for the escalation sweep.

    This function:
    1. Loads every active post
    2. Flags posts past their escalation window
    3. Reminds admins about overdue posts whose reminder is due, and
       stamps ``last_escalation_notified_at`` so the next run skips them
    4. Reports when the others are next due for a reminder

    Reminders are handed to the notifier only after the stamps commit.

    Returns:
        Job result summary
    """
    settings = get_settings()
    now = ensure_utc(now) if now is not None else SystemClock().now()
    notifier = notifier or LoggingNotifier()
    policy = EscalationPolicy(config or EscalationConfig.from_settings(settings))

    logger.info(f"Starting escalation sweep at {now.isoformat()}")

    engine = build_engine(database_url or settings.database_url, echo=settings.database_echo)
    session_factory = build_session_factory(engine)

    results: dict[str, Any] = {
        "started_at": now.isoformat(),
        "scanned": 0,
        "overdue": [],
        "notified": 0,
        "scheduled": [],
        "next_priorities": {},
        "conflicts": [],
    }
    pending: list[NotificationIntent] = []

    try:
        with get_session_context(session_factory) as session:
            store = SqlPostStore(session)
            posts = store.list_active()
            results["scanned"] = len(posts)

            for post in posts:
                if not policy.is_overdue(post, now):
                    continue

                deadline = policy.escalation_deadline(post)
                overdue_hours = (now - deadline).total_seconds() / 3600
                results["overdue"].append(post.id)

                suggested = policy.next_priority(post.priority)
                if suggested is not None:
                    results["next_priorities"][post.id] = suggested.value

                due_at = policy.next_reminder_due(post)
                if due_at is None:
                    continue

                if due_at > now:
                    results["scheduled"].append(
                        {"post_id": post.id, "notify_at": due_at.isoformat()}
                    )
                    continue

                try:
                    store.save(post.model_copy(update={"last_escalation_notified_at": now}))
                except ConcurrencyError:
                    # Modified since it was listed; the next run sees the fresh state
                    logger.warning(f"Post {post.id} changed during the sweep, skipping reminder")
                    results["conflicts"].append(post.id)
                    continue

                pending.append(escalation_intent(post, overdue_hours))

    finally:
        engine.dispose()

    for intent in pending:
        notifier.notify(intent)
    results["notified"] = len(pending)

    logger.info(
        f"Escalation sweep done: {results['scanned']} scanned, "
        f"{len(results['overdue'])} overdue, {results['notified']} notified, "
        f"{len(results['scheduled'])} scheduled"
    )
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main() -> None:
    """CLI entry point for the escalation sweep."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Flag posts past their escalation window")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy database URL",
    )
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Evaluate as of this ISO timestamp instead of the current time",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = run_escalation_sweep(database_url=args.database_url, now=args.now)
        print(f"Sweep completed: {results}")
    except Exception as e:
        logger.error(f"Escalation sweep failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
