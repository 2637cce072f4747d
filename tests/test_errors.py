# tests/test_errors.py
from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shuriken_ratings.core.errors import (
    NotFoundError,
    RateLimitError,
    RatingError,
    StorageError,
    ValidationError,
    VotingNotAllowedError,
)
from shuriken_ratings.db.session import atomic, get_db
from shuriken_ratings.models import Rating
from shuriken_ratings.schemas.rating import RatingCreate


def test_errors_share_a_base_and_serialize() -> None:
    error = VotingNotAllowedError("nope", rating_id=3, reason="mirror", source_id=1)

    assert isinstance(error, RatingError)
    assert error.to_dict() == {
        "code": "voting_not_allowed",
        "message": "nope",
        "details": {"rating_id": 3, "reason": "mirror", "source_id": 1},
    }


def test_rate_limit_error_carries_retry_after() -> None:
    error = RateLimitError("slow down", reason="cooldown", retry_after=12, limit=60)

    assert error.retry_after == 12
    assert error.code == "rate_limited"
    assert error.details["limit"] == 60


def test_validation_error_helpers() -> None:
    out_of_range = ValidationError.out_of_range("rating_value", 9, 1, 5)
    assert out_of_range.message == "rating_value must be between 1 and 5"
    assert out_of_range.details["maximum"] == 5

    with pytest.raises(PydanticValidationError) as excinfo:
        RatingCreate(name="")
    converted = ValidationError.from_pydantic(excinfo.value)
    assert converted.field == "name"
    assert converted.value == ""


def test_not_found_factories() -> None:
    assert NotFoundError.rating(4).message == "Rating 4 not found"
    assert NotFoundError.vote(8).resource == "Vote"


def test_atomic_commits_on_success(db_session) -> None:
    with atomic(db_session, "insert rating"):
        db_session.add(Rating(name="Committed"))

    db_session.expunge_all()
    assert db_session.query(Rating).filter_by(name="Committed").count() == 1


def test_atomic_wraps_database_errors(db_session) -> None:
    with pytest.raises(StorageError) as excinfo:
        with atomic(db_session, "insert bad rating"):
            db_session.add(Rating(name="Bad", total_votes=-1))
            db_session.flush()

    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert excinfo.value.details == {"operation": "insert bad rating"}
    assert db_session.execute(text("SELECT COUNT(*) FROM rating")).scalar_one() == 0


def test_atomic_rolls_back_domain_errors(db_session) -> None:
    with pytest.raises(NotFoundError):
        with atomic(db_session):
            db_session.add(Rating(name="Discarded"))
            db_session.flush()
            raise NotFoundError.rating(1)

    assert db_session.execute(text("SELECT COUNT(*) FROM rating")).scalar_one() == 0


def test_get_db_yields_a_session_and_closes_it(mocker) -> None:
    generator = get_db()
    session = next(generator)
    close = mocker.spy(session, "close")

    assert isinstance(session, Session)
    generator.close()
    close.assert_called_once()
