# src/shuriken_ratings/models/vote.py
"""Models capturing individual votes on ratings."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from shuriken_ratings.db.session import Base
from shuriken_ratings.db.time import utcnow


class Vote(Base):
    """Per-voter vote on a rating.

    Members are identified by a non-zero ``user_id``; guests carry
    ``user_id = 0`` and the client IP. ``voter_key`` folds both into one
    column so a single unique constraint covers members and guests.
    """

    __tablename__ = "vote"
    __table_args__ = (
        CheckConstraint("rating_value >= 1", name="ck_vote_rating_value"),
        # One vote per voter per rating; a repeat submission updates this row.
        UniqueConstraint("rating_id", "voter_key", name="uq_vote_rating_voter"),
        Index("ix_vote_rating_id", "rating_id"),
        Index("ix_vote_voter_activity", "voter_key", "date_modified"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Always the source rating, never a mirror.
    rating_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("rating.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    user_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    voter_key: Mapped[str] = mapped_column(String(64), nullable=False)

    rating_value: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def is_guest(self) -> bool:
        return self.user_id == 0

    def __repr__(self) -> str:
        return f"<Vote {self.id}: rating={self.rating_id} voter={self.voter_key} value={self.rating_value}>"
