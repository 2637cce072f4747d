"""Pydantic schemas for rating engine inputs and read models."""

from .rating import RatingCreate, RatingPage, RatingUpdate, RatingView
from .stats import OverallStats, RatingSummary, RecentVote, VoteCounts
from .vote import RecordOutcome, Voter, VoteOut, VoteResult

__all__ = [
    "OverallStats",
    "RatingCreate",
    "RatingPage",
    "RatingSummary",
    "RatingUpdate",
    "RatingView",
    "RecentVote",
    "RecordOutcome",
    "VoteCounts",
    "VoteOut",
    "VoteResult",
    "Voter",
]
