# src/shuriken_ratings/models/rating.py
"""SQLAlchemy model for named ratings and their aggregate totals."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from shuriken_ratings.db.session import Base
from shuriken_ratings.db.time import utcnow


class EffectType(StrEnum):
    """How a child rating's votes move its parent's aggregate."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


def compute_average(total_rating: int, total_votes: int) -> float:
    """Return the mean vote rounded half-up to one decimal, or 0 without votes."""
    if total_votes <= 0:
        return 0.0
    mean = Decimal(total_rating) / Decimal(total_votes)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class Rating(Base):
    """A named item that collects votes.

    A rating is either standalone, a child contributing to a parent, a parent
    whose totals are aggregated from its children, or a mirror that shows
    another rating's totals under its own name.
    """

    __tablename__ = "rating"
    __table_args__ = (
        CheckConstraint("total_votes >= 0", name="ck_rating_total_votes"),
        CheckConstraint("total_rating >= 0", name="ck_rating_total_rating"),
        CheckConstraint(
            "effect_type IN ('positive', 'negative')",
            name="ck_rating_effect_type",
        ),
        Index("ix_rating_parent_id", "parent_id"),
        Index("ix_rating_mirror_of", "mirror_of"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Sub-ratings point at their parent; cleared when the parent is deleted.
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("rating.id", ondelete="SET NULL"),
        nullable=True,
    )
    effect_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=EffectType.POSITIVE.value,
    )
    display_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Mirrors have no votes of their own; totals are read from this rating.
    mirror_of: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("rating.id", ondelete="SET NULL"),
        nullable=True,
    )

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def is_mirror(self) -> bool:
        return self.mirror_of is not None

    @property
    def is_negative(self) -> bool:
        return self.effect_type == EffectType.NEGATIVE.value

    @property
    def source_id(self) -> int:
        """Identifier that votes for this rating must target."""
        return self.mirror_of if self.mirror_of is not None else self.id

    @property
    def average(self) -> float:
        return compute_average(self.total_rating, self.total_votes)

    def __repr__(self) -> str:
        return f"<Rating {self.id}: {self.name!r} votes={self.total_votes} sum={self.total_rating}>"
