"""Schemas returned by the analytics service."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class OverallStats(BaseModel):
    total_ratings: int
    total_votes: int
    overall_average: float
    unique_voters: int


class VoteCounts(BaseModel):
    period_votes: int
    member_votes: int
    guest_votes: int


class RatingSummary(BaseModel):
    """Compact ranking entry."""

    id: int
    name: str
    total_votes: int
    total_rating: int
    average: float


class RecentVote(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rating_id: int
    rating_name: str
    rating_value: int
    user_id: int
    user_ip: str | None
    date_modified: datetime
