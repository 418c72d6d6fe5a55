"""SQLAlchemy ORM Models for the post workflow."""

from .base import Base, TimestampMixin, UTCDateTime
from .models import ImmutableRecordError, PostActivityLog, PostRecord

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Posts
    "PostRecord",
    # Activity
    "PostActivityLog",
    "ImmutableRecordError",
]
