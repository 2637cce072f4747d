# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shuriken_ratings.core.settings import Settings
from shuriken_ratings.db.session import Base
from shuriken_ratings.schemas.vote import Voter
from shuriken_ratings.services import RatingServices, build_services

TEST_DB_URL = "sqlite://"
START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


def make_settings(**overrides: Any) -> Settings:
    """Build settings from field names, ignoring the environment's .env file."""
    return Settings(_env_file=None, **overrides)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record) -> None:  # pragma: no cover
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so wipe every table for the next test.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with rate limiting off and a 1-5 vote scale."""
    return make_settings(max_vote_value=5, rate_limiting_enabled=False)


@pytest.fixture()
def make_services(db_session: Session, clock: FakeClock) -> Callable[..., RatingServices]:
    """Return a factory wiring services to the test session and clock."""

    def _make(settings: Settings | None = None, **kwargs: Any) -> RatingServices:
        return build_services(db_session, settings or make_settings(), clock=clock, **kwargs)

    return _make


@pytest.fixture()
def services(make_services: Callable[..., RatingServices], test_settings: Settings) -> RatingServices:
    return make_services(test_settings)


@pytest.fixture()
def store(services: RatingServices):
    return services.store


@pytest.fixture()
def ledger(services: RatingServices):
    return services.ledger


@pytest.fixture()
def aggregation(services: RatingServices):
    return services.aggregation


@pytest.fixture()
def voting(services: RatingServices):
    return services.voting


@pytest.fixture()
def analytics(services: RatingServices):
    return services.analytics


@pytest.fixture()
def member() -> Voter:
    return Voter.member(1)


@pytest.fixture()
def guest() -> Voter:
    return Voter.guest("203.0.113.7")
