"""
Tests for the Poll Engine - Verifying vote toggling and tallies.

These tests verify:
1. SINGLE CHOICE: a voter holds at most one vote, the last one cast
2. MULTIPLE CHOICE: options toggle independently
3. STATS: percentages add up to 100 (within rounding)
4. VALIDATION: every shape problem is reported
"""

from datetime import timedelta

import pytest

from post_workflow.schemas import Poll, PollOption
from post_workflow.services import InvalidOptionError, PollEndedError, PollEngine

from conftest import NOW


@pytest.fixture
def lunch_poll() -> Poll:
    return Poll.create("Lunch?", ["Pizza", "Salad"])


@pytest.fixture
def three_way_poll() -> Poll:
    return Poll.create("Offsite location?", ["Lake", "Mountains", "City"])


# =============================================================================
# TEST: SINGLE CHOICE
# =============================================================================


class TestSingleChoiceVoting:

    def test_lunch_scenario(self, poll_engine: PollEngine, lunch_poll: Poll):
        """Voting moves the voter's single vote from Pizza to Salad."""
        poll = poll_engine.cast_vote(lunch_poll, 0, "u1", NOW)
        stats = poll_engine.stats(poll, NOW)

        assert stats.total_votes == 1
        assert stats.options[0].votes == 1
        assert stats.options[0].percentage == 100.0
        assert stats.options[1].votes == 0
        assert stats.options[1].percentage == 0.0

        poll = poll_engine.cast_vote(poll, 1, "u1", NOW)
        stats = poll_engine.stats(poll, NOW)

        assert stats.options[0].votes == 0
        assert stats.options[1].votes == 1
        assert stats.total_votes == 1

    def test_same_option_twice_toggles_off(self, poll_engine, lunch_poll):
        poll = poll_engine.cast_vote(lunch_poll, 0, "u1", NOW)
        poll = poll_engine.cast_vote(poll, 0, "u1", NOW)

        assert poll.total_votes == 0
        assert poll_engine.has_voted(poll, "u1") is False

    def test_voter_keeps_at_most_one_vote_and_last_wins(self, poll_engine, three_way_poll):
        """Across any vote sequence, the active vote is the last one not toggled off."""
        poll = three_way_poll
        active = None

        for index in [0, 2, 1, 1, 0, 2, 2, 2, 1]:
            poll = poll_engine.cast_vote(poll, index, "u1", NOW)
            active = None if active == index else index

            held = poll_engine.votes_of(poll, "u1")
            assert len(held) <= 1
            assert held == ({active} if active is not None else set())

    def test_other_voters_are_untouched(self, poll_engine, lunch_poll):
        poll = poll_engine.cast_vote(lunch_poll, 0, "u1", NOW)
        poll = poll_engine.cast_vote(poll, 0, "u2", NOW)
        poll = poll_engine.cast_vote(poll, 1, "u1", NOW)

        assert poll.options[0].votes == {"u2"}
        assert poll.options[1].votes == {"u1"}
        assert poll.voters == {"u1", "u2"}

    def test_input_poll_is_not_mutated(self, poll_engine, lunch_poll):
        poll_engine.cast_vote(lunch_poll, 0, "u1", NOW)

        assert lunch_poll.total_votes == 0


# =============================================================================
# TEST: MULTIPLE CHOICE
# =============================================================================


class TestMultipleChoiceVoting:

    def test_votes_accumulate_across_options(self, poll_engine, three_way_poll):
        poll = three_way_poll.model_copy(update={"multiple_choice": True})

        poll = poll_engine.cast_vote(poll, 0, "u1", NOW)
        poll = poll_engine.cast_vote(poll, 1, "u1", NOW)

        assert "u1" in poll.options[0].votes
        assert "u1" in poll.options[1].votes
        assert poll_engine.votes_of(poll, "u1") == {0, 1}

    def test_revote_removes_only_that_option(self, poll_engine, three_way_poll):
        poll = three_way_poll.model_copy(update={"multiple_choice": True})

        poll = poll_engine.cast_vote(poll, 0, "u1", NOW)
        poll = poll_engine.cast_vote(poll, 1, "u1", NOW)
        poll = poll_engine.cast_vote(poll, 0, "u1", NOW)

        assert poll_engine.votes_of(poll, "u1") == {1}
        assert poll.total_votes == 1


# =============================================================================
# TEST: VOTE REJECTIONS
# =============================================================================


class TestVoteRejections:

    def test_ended_poll_rejects_votes(self, poll_engine, lunch_poll):
        poll = lunch_poll.model_copy(update={"end_date": NOW - timedelta(minutes=1)})

        with pytest.raises(PollEndedError):
            poll_engine.cast_vote(poll, 0, "u1", NOW)

    def test_poll_accepts_votes_at_its_end_instant(self, poll_engine, lunch_poll):
        poll = lunch_poll.model_copy(update={"end_date": NOW})

        poll = poll_engine.cast_vote(poll, 0, "u1", NOW)

        assert poll.total_votes == 1

    @pytest.mark.parametrize("index", [-1, 2, 99])
    def test_out_of_range_option(self, poll_engine, lunch_poll, index):
        with pytest.raises(InvalidOptionError):
            poll_engine.cast_vote(lunch_poll, index, "u1", NOW)

    def test_end_check_uses_engine_clock_by_default(self, poll_engine, clock, lunch_poll):
        poll = lunch_poll.model_copy(update={"end_date": NOW + timedelta(hours=1)})
        clock.advance(hours=2)

        with pytest.raises(PollEndedError):
            poll_engine.cast_vote(poll, 0, "u1")


# =============================================================================
# TEST: STATS
# =============================================================================


class TestPollStats:

    def test_no_votes_gives_zero_percentages(self, poll_engine, three_way_poll):
        stats = poll_engine.stats(three_way_poll, NOW)

        assert stats.total_votes == 0
        assert [o.percentage for o in stats.options] == [0.0, 0.0, 0.0]

    def test_percentages_sum_to_hundred_within_rounding(self, poll_engine, three_way_poll):
        poll = three_way_poll
        for voter, index in [("u1", 0), ("u2", 1), ("u3", 2)]:
            poll = poll_engine.cast_vote(poll, index, voter, NOW)

        stats = poll_engine.stats(poll, NOW)
        total = sum(o.percentage for o in stats.options)

        assert [o.percentage for o in stats.options] == [33.3, 33.3, 33.3]
        assert abs(total - 100) <= 0.1 * len(stats.options)

    def test_uneven_split(self, poll_engine, three_way_poll):
        poll = three_way_poll
        for voter, index in [("u1", 0), ("u2", 0), ("u3", 1), ("u4", 0), ("u5", 2), ("u6", 0)]:
            poll = poll_engine.cast_vote(poll, index, voter, NOW)

        stats = poll_engine.stats(poll, NOW)

        assert [o.votes for o in stats.options] == [4, 1, 1]
        assert [o.percentage for o in stats.options] == [66.7, 16.7, 16.7]

    def test_has_ended_flag(self, poll_engine, lunch_poll):
        poll = lunch_poll.model_copy(update={"end_date": NOW - timedelta(seconds=1)})

        assert poll_engine.stats(poll, NOW).has_ended is True
        assert poll_engine.stats(lunch_poll, NOW).has_ended is False


# =============================================================================
# TEST: VALIDATION
# =============================================================================


class TestPollValidation:

    def test_valid_poll(self, poll_engine):
        poll = Poll.create("Lunch?", ["Pizza", "Salad"], end_date=NOW + timedelta(days=1))

        result = poll_engine.validate(poll, NOW)

        assert result.is_valid is True
        assert result.errors == []

    def test_collects_every_error(self, poll_engine):
        poll = Poll(
            question="   ",
            options=[PollOption(text=" ")],
            end_date=NOW - timedelta(days=1),
        )

        result = poll_engine.validate(poll, NOW)

        assert result.is_valid is False
        assert result.errors == [
            "Poll question is required",
            "Poll must have at least 2 options",
            "All poll options must have text",
            "Poll end date must be in the future",
        ]

    def test_too_many_options(self, poll_engine):
        poll = Poll.create("Pick one", [f"Option {i}" for i in range(11)])

        result = poll_engine.validate(poll, NOW)

        assert result.errors == ["Poll cannot have more than 10 options"]

    def test_ten_options_is_fine(self, poll_engine):
        poll = Poll.create("Pick one", [f"Option {i}" for i in range(10)])

        assert poll_engine.validate(poll, NOW).is_valid is True

    def test_end_date_equal_to_now_is_rejected(self, poll_engine):
        poll = Poll.create("Lunch?", ["Pizza", "Salad"], end_date=NOW)

        assert poll_engine.validate(poll, NOW).errors == ["Poll end date must be in the future"]
