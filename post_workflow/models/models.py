"""SQLAlchemy ORM models for posts and their activity timeline."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, mapped_column

from ..schemas.base import (
    ActivityType,
    PostPriority,
    PostStatus,
    PostType,
)
from .base import Base, TimestampMixin, UTCDateTime


def _enum_column(enum_cls: type, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda x: [e.value for e in x],
        native_enum=False,
        length=32,
    )


class ImmutableRecordError(Exception):
    """An activity row was about to be updated or deleted."""
    pass


# =============================================================================
# POSTS
# =============================================================================


class PostRecord(Base, TimestampMixin):
    """A post row. The poll and assignee are embedded JSON documents."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[PostType] = mapped_column(_enum_column(PostType, "post_type"), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    author_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[PostStatus] = mapped_column(
        _enum_column(PostStatus, "post_status"), nullable=False
    )
    priority: Mapped[PostPriority] = mapped_column(
        _enum_column(PostPriority, "post_priority"), nullable=False
    )
    assigned_to: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_escalation_notified_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    poll: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Compare-and-swap counter, bumped on every save
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_posts_status_priority", "status", "priority"),
    )


# =============================================================================
# ACTIVITY TIMELINE (append-only)
# =============================================================================


class PostActivityLog(Base):
    """One immutable timeline entry. ``seq`` preserves append order."""

    __tablename__ = "post_activities"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    # No foreign key: the timeline outlives and may precede the post row
    post_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[ActivityType] = mapped_column(
        _enum_column(ActivityType, "activity_type"), nullable=False
    )
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    details: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("ix_post_activities_post_id_seq", "post_id", "seq"),
    )


@event.listens_for(PostActivityLog, "before_update")
def _reject_activity_update(mapper, connection, target: PostActivityLog) -> None:
    raise ImmutableRecordError(f"Activity {target.id} is append-only and cannot be updated")


@event.listens_for(PostActivityLog, "before_delete")
def _reject_activity_delete(mapper, connection, target: PostActivityLog) -> None:
    raise ImmutableRecordError(f"Activity {target.id} is append-only and cannot be deleted")


@event.listens_for(Session, "do_orm_execute")
def _reject_activity_bulk_write(state: ORMExecuteState) -> None:
    """
    Refuse UPDATE/DELETE statements aimed at ``post_activities``.

    The mapper events above only see unit-of-work flushes; statements such as
    ``session.execute(delete(PostActivityLog))`` bypass them. This hook covers
    ORM and Core statements run through a Session. Statements executed on a
    bare Connection never reach it.
    """
    if not (state.is_update or state.is_delete):
        return

    table = getattr(state.statement, "table", None)
    if getattr(table, "name", None) == PostActivityLog.__tablename__:
        verb = "updated" if state.is_update else "deleted"
        raise ImmutableRecordError(f"Activity rows are append-only and cannot be {verb}")
