"""Application settings and configuration.

This module defines every configuration option used by the rating engine.
Settings are loaded from environment variables with sensible defaults and
are frozen once built, so a single instance can be handed to each service
at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from shuriken_ratings.schemas.vote import Voter


@dataclass(frozen=True)
class VoteLimits:
    """Throttling parameters that apply to one class of voter.

    A value of 0 disables the corresponding check.
    """

    enabled: bool
    cooldown_seconds: int
    hourly_limit: int
    daily_limit: int


class Settings(BaseSettings):
    """Rating engine settings loaded from environment variables.

    Values can be overridden via environment variables or a `.env` file.
    Instances are immutable.
    """

    # Database configuration
    database_url: str = Field(default="sqlite:///./shuriken.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Vote scale (votes are integers in 1..max_vote_value)
    max_vote_value: int = Field(default=5, ge=1, le=100, alias="MAX_VOTE_VALUE")

    # Rate limiting
    rate_limiting_enabled: bool = Field(default=False, alias="RATE_LIMITING_ENABLED")
    vote_cooldown_seconds: int = Field(default=60, ge=0, alias="VOTE_COOLDOWN_SECONDS")
    member_hourly_vote_limit: int = Field(default=30, ge=0, alias="MEMBER_HOURLY_VOTE_LIMIT")
    member_daily_vote_limit: int = Field(default=100, ge=0, alias="MEMBER_DAILY_VOTE_LIMIT")
    guest_hourly_vote_limit: int = Field(default=10, ge=0, alias="GUEST_HOURLY_VOTE_LIMIT")
    guest_daily_vote_limit: int = Field(default=30, ge=0, alias="GUEST_DAILY_VOTE_LIMIT")

    model_config = SettingsConfigDict(
        env_file=".env",
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def inversion_constant(self) -> int:
        """Value a negative-effect vote is subtracted from when aggregated.

        On a 1-5 scale this is 6, so a 5 star vote contributes 1 point and a
        1 star vote contributes 5.
        """
        return self.max_vote_value + 1

    @property
    def member_limits(self) -> VoteLimits:
        return VoteLimits(
            enabled=self.rate_limiting_enabled,
            cooldown_seconds=self.vote_cooldown_seconds,
            hourly_limit=self.member_hourly_vote_limit,
            daily_limit=self.member_daily_vote_limit,
        )

    @property
    def guest_limits(self) -> VoteLimits:
        return VoteLimits(
            enabled=self.rate_limiting_enabled,
            cooldown_seconds=self.vote_cooldown_seconds,
            hourly_limit=self.guest_hourly_vote_limit,
            daily_limit=self.guest_daily_vote_limit,
        )

    def limits_for(self, voter: Voter) -> VoteLimits:
        """Return the limits that apply to a voter (guests are stricter)."""
        return self.guest_limits if voter.is_guest else self.member_limits


settings = Settings()
