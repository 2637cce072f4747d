"""Configuration and error types shared by every component."""

from .errors import (
    InvalidTopologyError,
    NotFoundError,
    RateLimitError,
    RatingError,
    StorageError,
    ValidationError,
    VotingNotAllowedError,
)
from .settings import Settings, VoteLimits

__all__ = [
    "InvalidTopologyError",
    "NotFoundError",
    "RateLimitError",
    "RatingError",
    "Settings",
    "StorageError",
    "ValidationError",
    "VoteLimits",
    "VotingNotAllowedError",
]
