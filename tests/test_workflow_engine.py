"""
Tests for the Post Workflow Engine - Verifying the status state machine.

These tests verify:
1. TERMINAL LOCK: terminal posts only leave through reopen
2. RESOLVE: resolving emits STATUS_CHANGED followed by RESOLVED
3. PRIORITY / DUE DATE: changes are recorded with old and new values
4. NO SIDE EFFECTS: the post passed in is never modified
"""

from datetime import timedelta

import pytest

from post_workflow.schemas import (
    ActivityRecord,
    ActivityType,
    Poll,
    PostPriority,
    PostStatus,
    PostType,
    TERMINAL_STATUSES,
)
from post_workflow.services import (
    ActivityOrderError,
    ActivityRecorder,
    EmptyCommentError,
    EmptyTitleError,
    InvalidDueDateError,
    InvalidPollError,
    InvalidTransitionError,
    PostIsTerminalError,
    PostNotTerminalError,
    SqlActivityRecorder,
    WorkflowTransitionError,
)

from conftest import NOW


def timeline_types(recorder, post):
    return [r.type for r in recorder.list_for(post.id)]


# =============================================================================
# TEST: CREATE
# =============================================================================


class TestCreatePost:

    def test_create_records_created(self, workflow, recorder, author):
        post = workflow.create_post(PostType.IDEA_SUGGESTION, "  Standing desks  ", author)

        assert post.title == "Standing desks"
        assert post.status == PostStatus.OPEN
        assert post.priority == PostPriority.MEDIUM
        assert post.author_id == author.id
        assert post.created_at == NOW
        assert post.revision == 0

        records = recorder.list_for(post.id)
        assert [r.type for r in records] == [ActivityType.CREATED]
        assert records[0].metadata == {
            "type": "idea_suggestion",
            "priority": "medium",
            "has_poll": False,
        }

    def test_blank_title_is_rejected(self, workflow, recorder, author):
        with pytest.raises(EmptyTitleError):
            workflow.create_post(PostType.PROBLEM_REPORT, "   ", author)

    def test_invalid_poll_is_rejected_with_errors(self, workflow, author):
        poll = Poll.create("Lunch?", ["Pizza"])

        with pytest.raises(InvalidPollError) as exc_info:
            workflow.create_post(PostType.TEAM_DISCUSSION, "Lunch vote", author, poll=poll)

        assert exc_info.value.errors == ["Poll must have at least 2 options"]
        assert isinstance(exc_info.value, WorkflowTransitionError)

    def test_post_with_poll(self, workflow, recorder, author):
        poll = Poll.create("Lunch?", ["Pizza", "Salad"], end_date=NOW + timedelta(days=2))

        post = workflow.create_post(PostType.TEAM_DISCUSSION, "Lunch vote", author, poll=poll)

        assert post.poll is not None
        assert recorder.list_for(post.id)[0].metadata["has_poll"] is True


# =============================================================================
# TEST: STATUS CHANGES
# =============================================================================


class TestChangeStatus:

    def test_status_change_is_recorded(self, workflow, recorder, clock, open_post, admin):
        clock.advance(minutes=5)

        updated = workflow.change_status(open_post, PostStatus.ACKNOWLEDGED, admin, "On it")

        assert updated.status == PostStatus.ACKNOWLEDGED
        assert updated.status_changed_at == clock.now()
        assert updated.updated_at == clock.now()

        record = recorder.list_for(open_post.id)[-1]
        assert record.type == ActivityType.STATUS_CHANGED
        assert record.actor_id == admin.id
        assert record.actor_name == admin.name
        assert record.created_at == clock.now()
        assert record.metadata == {
            "old_status": "open",
            "new_status": "acknowledged",
            "comment": "On it",
        }

    def test_input_post_is_not_modified(self, workflow, open_post, admin):
        workflow.change_status(open_post, PostStatus.IN_PROGRESS, admin)

        assert open_post.status == PostStatus.OPEN
        assert open_post.status_changed_at is None

    def test_same_status_is_rejected(self, workflow, recorder, open_post, admin):
        with pytest.raises(InvalidTransitionError):
            workflow.change_status(open_post, PostStatus.OPEN, admin)

        assert timeline_types(recorder, open_post) == [ActivityType.CREATED]

    def test_states_can_be_skipped(self, workflow, open_post, admin):
        post = workflow.change_status(open_post, PostStatus.WORKING_ON, admin)
        post = workflow.change_status(post, PostStatus.NOT_A_PROBLEM, admin)

        assert post.status == PostStatus.NOT_A_PROBLEM
        assert post.is_terminal

    def test_resolve_emits_status_changed_then_resolved(self, workflow, recorder, open_post, admin):
        workflow.change_status(open_post, PostStatus.RESOLVED, admin, "Replaced the reader")

        records = recorder.list_for(open_post.id)
        assert [r.type for r in records] == [
            ActivityType.CREATED,
            ActivityType.STATUS_CHANGED,
            ActivityType.RESOLVED,
        ]
        assert records[-1].metadata == {"old_status": "open", "comment": "Replaced the reader"}

    def test_closing_does_not_emit_resolved(self, workflow, recorder, open_post, admin):
        workflow.change_status(open_post, PostStatus.CLOSED, admin)

        assert timeline_types(recorder, open_post) == [
            ActivityType.CREATED,
            ActivityType.STATUS_CHANGED,
        ]


class TestTerminalLock:

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    @pytest.mark.parametrize("target", list(PostStatus))
    def test_terminal_post_rejects_every_status(self, workflow, recorder, open_post, admin, terminal, target):
        post = workflow.change_status(open_post, terminal, admin)
        before = timeline_types(recorder, open_post)

        with pytest.raises(PostIsTerminalError):
            workflow.change_status(post, target, admin)

        assert timeline_types(recorder, open_post) == before

    def test_reopen_round_trip(self, workflow, recorder, open_post, admin):
        resolved = workflow.change_status(open_post, PostStatus.RESOLVED, admin)

        reopened = workflow.reopen(resolved, admin, "Still broken")

        assert reopened.status == PostStatus.OPEN
        assert timeline_types(recorder, open_post) == [
            ActivityType.CREATED,
            ActivityType.STATUS_CHANGED,
            ActivityType.RESOLVED,
            ActivityType.REOPENED,
        ]
        assert recorder.list_for(open_post.id)[-1].metadata == {
            "reason": "Still broken",
            "old_status": "resolved",
        }

    def test_reopened_post_accepts_status_changes(self, workflow, open_post, admin):
        post = workflow.change_status(open_post, PostStatus.REJECTED, admin)
        post = workflow.reopen(post, admin, "Duplicate was wrong")

        post = workflow.change_status(post, PostStatus.IN_PROGRESS, admin)

        assert post.status == PostStatus.IN_PROGRESS

    def test_reopen_requires_terminal_post(self, workflow, open_post, admin):
        with pytest.raises(PostNotTerminalError):
            workflow.reopen(open_post, admin, "Nothing to reopen")

    def test_reopen_restarts_escalation_window(self, workflow, clock, open_post, admin):
        post = workflow.change_status(open_post, PostStatus.CLOSED, admin)
        clock.advance(days=3)

        post = workflow.reopen(post, admin, "Came back")

        assert post.clock_started_at == clock.now()


# =============================================================================
# TEST: PRIORITY
# =============================================================================


class TestChangePriority:

    def test_escalation_is_recorded(self, workflow, recorder, open_post, admin):
        post = workflow.change_priority(open_post, PostPriority.CRITICAL, admin)

        assert post.priority == PostPriority.CRITICAL
        record = recorder.list_for(open_post.id)[-1]
        assert record.type == ActivityType.PRIORITY_CHANGED
        assert record.metadata == {"old_priority": "medium", "new_priority": "critical"}

    def test_de_escalation_is_allowed(self, workflow, open_post, admin):
        post = workflow.change_priority(open_post, PostPriority.CRITICAL, admin)

        post = workflow.change_priority(post, PostPriority.LOW, admin)

        assert post.priority == PostPriority.LOW

    def test_same_priority_is_rejected(self, workflow, open_post, admin):
        with pytest.raises(InvalidTransitionError):
            workflow.change_priority(open_post, PostPriority.MEDIUM, admin)

    def test_priority_change_keeps_escalation_window(self, workflow, clock, open_post, admin):
        clock.advance(hours=1)

        post = workflow.change_priority(open_post, PostPriority.HIGH, admin)

        assert post.status_changed_at is None
        assert post.clock_started_at == NOW


# =============================================================================
# TEST: DUE DATE
# =============================================================================


class TestSetDueDate:

    def test_first_due_date_is_set_then_changed(self, workflow, recorder, open_post, admin):
        first = NOW + timedelta(days=7)
        second = NOW + timedelta(days=14)

        post = workflow.set_due_date(open_post, first, admin)
        post = workflow.set_due_date(post, second, admin)

        assert post.due_date == second
        records = recorder.list_for(open_post.id)
        assert [r.type for r in records[1:]] == [
            ActivityType.DUE_DATE_SET,
            ActivityType.DUE_DATE_CHANGED,
        ]
        assert records[1].metadata == {"old_due_date": None, "new_due_date": first.isoformat()}
        assert records[2].metadata == {
            "old_due_date": first.isoformat(),
            "new_due_date": second.isoformat(),
        }

    def test_past_due_date_is_rejected(self, workflow, recorder, open_post, admin):
        with pytest.raises(InvalidDueDateError):
            workflow.set_due_date(open_post, NOW - timedelta(seconds=1), admin)

        assert timeline_types(recorder, open_post) == [ActivityType.CREATED]

    def test_naive_due_date_is_treated_as_utc(self, workflow, open_post, admin):
        naive = (NOW + timedelta(days=1)).replace(tzinfo=None)

        post = workflow.set_due_date(open_post, naive, admin)

        assert post.due_date == NOW + timedelta(days=1)


# =============================================================================
# TEST: ADMIN COMMENTS
# =============================================================================


class TestAdminComment:

    def test_comment_is_recorded(self, workflow, recorder, open_post, admin):
        record = workflow.add_admin_comment(open_post, admin, "  Facilities notified  ")

        assert record.type == ActivityType.ADMIN_COMMENT
        assert record.metadata == {"comment": "Facilities notified"}
        assert recorder.list_for(open_post.id)[-1] == record

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_comment_is_rejected(self, workflow, open_post, admin, text):
        with pytest.raises(EmptyCommentError):
            workflow.add_admin_comment(open_post, admin, text)


# =============================================================================
# TEST: ACTIVITY ORDER
# =============================================================================


class TestActivityOrder:

    def test_timeline_follows_call_order(self, workflow, recorder, clock, open_post, admin):
        post = open_post
        for status in (PostStatus.ACKNOWLEDGED, PostStatus.UNDER_REVIEW, PostStatus.IN_PROGRESS):
            clock.advance(minutes=1)
            post = workflow.change_status(post, status, admin)

        records = recorder.list_for(open_post.id)
        assert [r.metadata.get("new_status") for r in records[1:]] == [
            "acknowledged",
            "under_review",
            "in_progress",
        ]
        assert [r.created_at for r in records] == sorted(r.created_at for r in records)

    def test_recorder_rejects_backdated_entries(self, recorder, open_post, author):
        backdated = ActivityRecord(
            post_id=open_post.id,
            type=ActivityType.ADMIN_COMMENT,
            actor_id=author.id,
            metadata={"comment": "late"},
            created_at=NOW - timedelta(minutes=1),
        )

        with pytest.raises(ActivityOrderError):
            recorder.append(backdated)

    def test_recorders_expose_no_removal(self, recorder):
        for cls in (type(recorder), SqlActivityRecorder, ActivityRecorder):
            public = {name for name in dir(cls) if not name.startswith("_")}
            assert public == {"append", "list_for"}, cls.__name__

    def test_limit_returns_latest_in_order(self, workflow, recorder, clock, open_post, admin):
        post = open_post
        for status in (PostStatus.ACKNOWLEDGED, PostStatus.UNDER_REVIEW, PostStatus.IN_PROGRESS):
            clock.advance(minutes=1)
            post = workflow.change_status(post, status, admin)

        latest = recorder.list_for(open_post.id, limit=2)

        assert [r.metadata["new_status"] for r in latest] == ["under_review", "in_progress"]
        assert recorder.list_for(open_post.id, limit=0) == []
        assert len(recorder.list_for(open_post.id, limit=10)) == 4


# =============================================================================
# TEST: ESCALATION REMINDER RESET
# =============================================================================


class TestReminderReset:

    @pytest.fixture
    def reminded_post(self, open_post):
        return open_post.model_copy(update={"last_escalation_notified_at": NOW})

    def test_status_change_clears_reminder(self, workflow, reminded_post, admin):
        post = workflow.change_status(reminded_post, PostStatus.IN_PROGRESS, admin)

        assert post.last_escalation_notified_at is None

    def test_priority_change_clears_reminder(self, workflow, reminded_post, admin):
        post = workflow.change_priority(reminded_post, PostPriority.CRITICAL, admin)

        assert post.last_escalation_notified_at is None

    def test_reopen_clears_reminder(self, workflow, open_post, admin):
        post = workflow.change_status(open_post, PostStatus.CLOSED, admin)
        post = post.model_copy(update={"last_escalation_notified_at": NOW})

        assert workflow.reopen(post, admin, "Back again").last_escalation_notified_at is None

    def test_due_date_keeps_reminder(self, workflow, reminded_post, admin):
        post = workflow.set_due_date(reminded_post, NOW + timedelta(days=1), admin)

        assert post.last_escalation_notified_at == NOW


# =============================================================================
# TEST: UNKNOWN VALUES
# =============================================================================


class TestUnknownValues:

    def test_unknown_status(self, workflow, recorder, open_post, admin):
        with pytest.raises(InvalidTransitionError, match="Unknown PostStatus"):
            workflow.change_status(open_post, "archived", admin)

        assert timeline_types(recorder, open_post) == [ActivityType.CREATED]

    def test_unknown_priority(self, workflow, open_post, admin):
        with pytest.raises(InvalidTransitionError, match="Unknown PostPriority"):
            workflow.change_priority(open_post, "urgent", admin)

    def test_plain_string_values_are_accepted(self, workflow, open_post, admin):
        post = workflow.change_status(open_post, "in_progress", admin)

        assert post.status == PostStatus.IN_PROGRESS
