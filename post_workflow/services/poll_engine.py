"""
Poll Engine: validation and vote tallying for polls attached to posts.

Voting is a toggle:
- Single choice: voting for the option you hold removes the vote, voting
  for another option moves it there. A voter holds at most one vote.
- Multiple choice: each option is toggled independently.

The engine never mutates the poll it is given; it returns an updated copy
and the caller persists it.
"""

from datetime import datetime

from ..core.clock import Clock, SystemClock, ensure_utc
from ..schemas import Poll, PollOptionStats, PollStats, PollValidation
from .errors import InvalidOptionError, PollEndedError


MIN_OPTIONS = 2
MAX_OPTIONS = 10


class PollEngine:
    """Pure vote-tallying and validation logic over a poll value object."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, poll: Poll, now: datetime | None = None) -> PollValidation:
        """Collect every shape problem of a poll instead of failing on the first."""
        now = self._now(now)
        errors: list[str] = []

        if not poll.question or not poll.question.strip():
            errors.append("Poll question is required")

        if len(poll.options) < MIN_OPTIONS:
            errors.append(f"Poll must have at least {MIN_OPTIONS} options")

        if len(poll.options) > MAX_OPTIONS:
            errors.append(f"Poll cannot have more than {MAX_OPTIONS} options")

        if any(not option.text or not option.text.strip() for option in poll.options):
            errors.append("All poll options must have text")

        if poll.end_date is not None and poll.end_date <= now:
            errors.append("Poll end date must be in the future")

        return PollValidation(is_valid=not errors, errors=errors)

    # =========================================================================
    # VOTING
    # =========================================================================

    def cast_vote(
        self,
        poll: Poll,
        option_index: int,
        voter_id: str,
        now: datetime | None = None,
    ) -> Poll:
        """
        Toggle ``voter_id``'s vote on ``option_index``.

        Raises:
            PollEndedError: the poll's end date has passed
            InvalidOptionError: the index does not name an option
        """
        now = self._now(now)

        if self.has_ended(poll, now):
            raise PollEndedError("This poll has ended")

        if option_index < 0 or option_index >= len(poll.options):
            raise InvalidOptionError(
                f"Invalid poll option index {option_index} "
                f"(poll has {len(poll.options)} options)"
            )

        updated = poll.model_copy(deep=True)
        chosen = updated.options[option_index]

        if voter_id in chosen.votes:
            # Toggle off, in both modes
            chosen.votes.discard(voter_id)
            return updated

        if not updated.multiple_choice:
            for option in updated.options:
                option.votes.discard(voter_id)

        chosen.votes.add(voter_id)
        return updated

    # =========================================================================
    # READ MODELS
    # =========================================================================

    def stats(self, poll: Poll, now: datetime | None = None) -> PollStats:
        """Votes and percentages per option."""
        now = self._now(now)
        total = poll.total_votes

        options = []
        for option in poll.options:
            votes = option.vote_count
            percentage = round(votes / total * 100, 1) if total > 0 else 0.0
            options.append(
                PollOptionStats(text=option.text, votes=votes, percentage=percentage)
            )

        return PollStats(
            total_votes=total,
            options=options,
            has_ended=self.has_ended(poll, now),
            multiple_choice=poll.multiple_choice,
            end_date=poll.end_date,
        )

    def has_ended(self, poll: Poll, now: datetime | None = None) -> bool:
        return poll.end_date is not None and self._now(now) > poll.end_date

    @staticmethod
    def has_voted(poll: Poll, voter_id: str) -> bool:
        return any(voter_id in option.votes for option in poll.options)

    @staticmethod
    def votes_of(poll: Poll, voter_id: str) -> set[int]:
        return {
            index
            for index, option in enumerate(poll.options)
            if voter_id in option.votes
        }

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _now(self, now: datetime | None) -> datetime:
        return ensure_utc(now) if now is not None else self._clock.now()
