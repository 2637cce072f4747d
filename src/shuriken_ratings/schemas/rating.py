"""Rating-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shuriken_ratings.db.time import as_utc
from shuriken_ratings.models.rating import EffectType


class RatingCreate(BaseModel):
    """Input for creating a rating."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    parent_id: int | None = Field(default=None, gt=0)
    effect_type: EffectType = EffectType.POSITIVE
    display_only: bool = False
    mirror_of: int | None = Field(default=None, gt=0)


class RatingUpdate(BaseModel):
    """Partial update for a rating.

    Only fields explicitly present are applied, so ``parent_id=None`` detaches
    a sub-rating while an absent ``parent_id`` leaves it alone. Totals are not
    patchable; they change only through votes and aggregation.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    parent_id: int | None = Field(default=None, gt=0)
    effect_type: EffectType | None = None
    display_only: bool | None = None
    mirror_of: int | None = Field(default=None, gt=0)


class RatingView(BaseModel):
    """Resolved read model of a rating.

    For mirrors, ``name`` is the mirror's own while the totals, average and
    ``display_only`` come from the source; ``source_id`` tells callers where
    a vote must be sent.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    total_votes: int
    total_rating: int
    average: float
    parent_id: int | None
    effect_type: EffectType
    display_only: bool
    mirror_of: int | None
    source_id: int
    date_created: datetime

    @field_validator("date_created")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class RatingPage(BaseModel):
    """One page of ratings plus paging metadata."""

    ratings: list[RatingView]
    total_count: int
    current_page: int
    per_page: int
    total_pages: int
