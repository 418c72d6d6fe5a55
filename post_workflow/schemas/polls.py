"""Pydantic schemas for polls embedded in posts."""

from datetime import datetime

from pydantic import Field, field_serializer, field_validator

from .base import WorkflowBaseModel, utc_or_none


class PollOption(WorkflowBaseModel):
    """One answer of a poll and the ids of the users who picked it."""

    text: str
    votes: set[str] = Field(default_factory=set)

    @property
    def vote_count(self) -> int:
        return len(self.votes)

    @field_serializer("votes")
    def serialize_votes(self, votes: set[str]) -> list[str]:
        return sorted(votes)


class Poll(WorkflowBaseModel):
    """A structured vote attached to a post.

    Shape constraints (question, option count, option text, end date) are
    checked by ``PollEngine.validate`` rather than here, so that an invalid
    draft can still be loaded and reported on.
    """

    question: str
    options: list[PollOption] = Field(default_factory=list)
    multiple_choice: bool = False
    end_date: datetime | None = None

    @field_validator("end_date")
    @classmethod
    def normalize_end_date(cls, v: datetime | None) -> datetime | None:
        return utc_or_none(v)

    @classmethod
    def create(
        cls,
        question: str,
        options: list[str],
        multiple_choice: bool = False,
        end_date: datetime | None = None,
    ) -> "Poll":
        """Build a fresh poll from option texts."""
        return cls(
            question=question,
            options=[PollOption(text=text) for text in options],
            multiple_choice=multiple_choice,
            end_date=end_date,
        )

    @property
    def total_votes(self) -> int:
        return sum(len(option.votes) for option in self.options)

    @property
    def voters(self) -> set[str]:
        voters: set[str] = set()
        for option in self.options:
            voters |= option.votes
        return voters


class PollValidation(WorkflowBaseModel):
    """Result of validating a poll."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class PollOptionStats(WorkflowBaseModel):
    text: str
    votes: int
    percentage: float  # rounded to one decimal


class PollStats(WorkflowBaseModel):
    """Tally of a poll at a given instant."""

    total_votes: int
    options: list[PollOptionStats]
    has_ended: bool
    multiple_choice: bool = False
    end_date: datetime | None = None
