"""Query helpers over a SQLAlchemy session."""

from .rating_repo import RatingRepository
from .vote_repo import VoteRepository

__all__ = ["RatingRepository", "VoteRepository"]
