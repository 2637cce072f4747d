"""Exception hierarchy for the rating engine.

Every error carries a machine readable ``code`` and a ``details`` mapping
with the identifiers and values involved, so callers can render a precise
message without parsing the text.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError


class RatingError(RuntimeError):
    """Base exception raised for rating engine failures."""

    code = "rating_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        """Return a serializable description of the error."""
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class ValidationError(RatingError):
    """Raised when input is malformed (value out of range, empty name, ...)."""

    code = "validation_error"

    def __init__(self, message: str, *, field: str, value: Any = None, **details: Any) -> None:
        super().__init__(message, field=field, value=value, **details)
        self.field = field
        self.value = value

    @classmethod
    def out_of_range(cls, field: str, value: Any, minimum: int, maximum: int) -> ValidationError:
        return cls(
            f"{field} must be between {minimum} and {maximum}",
            field=field,
            value=value,
            minimum=minimum,
            maximum=maximum,
        )

    @classmethod
    def required(cls, field: str) -> ValidationError:
        return cls(f"The {field} field is required", field=field)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> ValidationError:
        """Convert the first error reported by pydantic."""
        first = exc.errors()[0]
        location = first.get("loc") or ("input",)
        field = ".".join(str(part) for part in location)
        return cls(f"Invalid value for {field}: {first['msg']}", field=field, value=first.get("input"))


class NotFoundError(RatingError):
    """Raised when a referenced rating or vote does not exist."""

    code = "not_found"

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(f"{resource} {identifier} not found", resource=resource, id=identifier)
        self.resource = resource
        self.identifier = identifier

    @classmethod
    def rating(cls, rating_id: Any) -> NotFoundError:
        return cls("Rating", rating_id)

    @classmethod
    def vote(cls, vote_id: Any) -> NotFoundError:
        return cls("Vote", vote_id)


class InvalidTopologyError(RatingError):
    """Raised when a parent or mirror reference would break the hierarchy.

    Covers circular references, mirrors of mirrors, mirrors with a parent
    and mirrors that are display-only.
    """

    code = "invalid_topology"


class VotingNotAllowedError(RatingError):
    """Raised when a vote targets a display-only rating, a parent or a mirror."""

    code = "voting_not_allowed"

    def __init__(self, message: str, *, rating_id: int, reason: str, **details: Any) -> None:
        super().__init__(message, rating_id=rating_id, reason=reason, **details)
        self.rating_id = rating_id
        self.reason = reason


class RateLimitError(RatingError):
    """Raised when a voter exceeds the cooldown, hourly or daily limit."""

    code = "rate_limited"

    def __init__(self, message: str, *, reason: str, retry_after: int, limit: int = 0) -> None:
        super().__init__(message, reason=reason, retry_after=retry_after, limit=limit)
        self.reason = reason
        self.retry_after = retry_after
        self.limit = limit


class StorageError(RatingError):
    """Raised when the underlying transaction failed and was rolled back."""

    code = "storage_error"
