"""Utility script to prepare the configured rating database."""
from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from sqlalchemy.engine import make_url

from shuriken_ratings.core.settings import settings
from shuriken_ratings.db.session import build_engine, create_tables, drop_tables


def to_psycopg_url(uri: str) -> str:
    """Return a Postgres URI suitable for psycopg.connect().

    Strips quotes and whitespace and drops any SQLAlchemy driver suffix
    (``postgresql+psycopg`` becomes ``postgresql``).
    """
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")
    url = make_url(uri)
    if url.get_backend_name() != "postgresql":
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return url.set(drivername="postgresql").render_as_string(hide_password=False)


def ensure_postgres_database(db_url: str) -> None:
    """Create the Postgres database named in ``db_url`` if it is missing."""
    import psycopg
    from psycopg import sql

    url = make_url(to_psycopg_url(db_url))
    target_db = url.database or "postgres"
    admin_url = url.set(database="postgres").render_as_string(hide_password=False)

    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is None:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
            print(f"[ensure_db] created database {target_db}")
        else:
            print(f"[ensure_db] database {target_db} already exists")


def ensure_schema(db_url: str, *, drop: bool = False) -> None:
    """Create the rating and vote tables, optionally dropping them first."""
    engine = build_engine(db_url)
    try:
        if drop:
            drop_tables(engine)
            print("[ensure_db] dropped rating tables")
        create_tables(engine)
        print("[ensure_db] rating tables are in place")
    finally:
        engine.dispose()


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Ensure or reset the configured rating database")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop the rating tables before recreating them.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    args = parser.parse_args(argv)

    db_url = args.url or settings.effective_database_url
    try:
        if make_url(db_url).get_backend_name() == "postgresql":
            ensure_postgres_database(db_url)
        ensure_schema(db_url, drop=args.drop_tables)
    except Exception as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
