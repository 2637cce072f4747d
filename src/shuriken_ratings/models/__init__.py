# src/shuriken_ratings/models/__init__.py
"""SQLAlchemy models for the rating engine."""

from .rating import EffectType, Rating, compute_average
from .vote import Vote

__all__ = [
    "EffectType", "Rating", "compute_average",
    "Vote",
]
