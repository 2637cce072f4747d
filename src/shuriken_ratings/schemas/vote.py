"""Vote-related Pydantic schemas."""

from __future__ import annotations

import ipaddress
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shuriken_ratings.db.time import as_utc
from shuriken_ratings.schemas.rating import RatingView


class Voter(BaseModel):
    """Identity of whoever is casting a vote.

    Exactly one of ``user_id`` (authenticated member) or ``ip`` (guest) is
    set. ``privileged`` is supplied by the identity provider and feeds the
    rate-limit bypass policy.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int = Field(default=0, ge=0)
    ip: str | None = None
    privileged: bool = False

    @field_validator("ip")
    @classmethod
    def _normalize_ip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return str(ipaddress.ip_address(value.strip()))

    @model_validator(mode="after")
    def _check_identity(self) -> Voter:
        if self.user_id > 0 and self.ip is not None:
            raise ValueError("a voter is either an authenticated member or a guest, not both")
        if self.user_id == 0 and self.ip is None:
            raise ValueError("guest voters must supply an IP address")
        return self

    @classmethod
    def member(cls, user_id: int, *, privileged: bool = False) -> Voter:
        return cls(user_id=user_id, privileged=privileged)

    @classmethod
    def guest(cls, ip: str) -> Voter:
        return cls(ip=ip)

    @property
    def is_guest(self) -> bool:
        return self.user_id == 0

    @property
    def key(self) -> str:
        """Stable identifier stored alongside each vote."""
        if self.is_guest:
            return f"ip:{self.ip}"
        return f"user:{self.user_id}"


class VoteOut(BaseModel):
    """Read model of a stored vote."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    rating_id: int
    user_id: int
    user_ip: str | None
    rating_value: int
    date_created: datetime
    date_modified: datetime

    @field_validator("date_created", "date_modified")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class RecordOutcome(BaseModel):
    """What a ledger write did."""

    vote: VoteOut
    is_update: bool
    previous_value: int | None = None


class VoteResult(BaseModel):
    """Response to a vote submission: the written vote and fresh views."""

    vote: VoteOut
    is_update: bool
    rating: RatingView
    parent: RatingView | None = None
