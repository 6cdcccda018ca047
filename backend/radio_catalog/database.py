"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides the
request-scoped session dependency used by the HTTP handlers.
"""

from sqlmodel import SQLModel, create_engine, Session

from .config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; deployments that manage the
    schema explicitly apply `migrations/*.sql` with `run_migrations.py`.
    """
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    One pooled connection is checked out for the request and released when
    the session closes at the end of the request scope.
    """
    with Session(engine) as session:
        yield session
